"""Prometheus metrics for lazyhttp exchanges."""

from __future__ import annotations

from typing import Iterable, Optional

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

_REGISTRY = CollectorRegistry()


def _histogram(name: str, documentation: str, *, buckets: Iterable[float]) -> Histogram:
    return Histogram(name, documentation, buckets=tuple(buckets), registry=_REGISTRY)


def _counter(name: str, documentation: str, *, label_names: Optional[Iterable[str]] = None) -> Counter:
    if label_names:
        return Counter(name, documentation, labelnames=list(label_names), registry=_REGISTRY)
    return Counter(name, documentation, registry=_REGISTRY)


REQUESTS = _counter(
    "lazyhttp_requests",
    "Completed HTTP exchanges grouped by method and status code.",
    label_names=["method", "status"],
)
FAILURES = _counter(
    "lazyhttp_failures",
    "HTTP exchanges that raised before a status code was read.",
    label_names=["method", "error"],
)
REDIRECTS = _counter(
    "lazyhttp_redirects",
    "Redirect hops followed grouped by redirect status.",
    label_names=["status"],
)
EXCHANGE_DURATION = _histogram(
    "lazyhttp_exchange_seconds",
    "Time from opening a connection to reading the status line.",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30),
)


def record_exchange(method: str, status: int, duration: float) -> None:
    REQUESTS.labels(method=method, status=str(status)).inc()
    EXCHANGE_DURATION.observe(duration)


def record_failure(method: str, error: str) -> None:
    FAILURES.labels(method=method, error=error).inc()


def record_redirect(status: int) -> None:
    REDIRECTS.labels(status=str(status)).inc()


def sample(name: str, labels: Optional[dict[str, str]] = None) -> float:
    """Return the current value of a sample, ``0.0`` if it was never recorded."""

    value = _REGISTRY.get_sample_value(name, labels or {})
    return 0.0 if value is None else value


def metrics_payload() -> tuple[bytes, str]:
    """Return the Prometheus exposition payload and its content type."""

    return generate_latest(_REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "metrics_payload",
    "record_exchange",
    "record_failure",
    "record_redirect",
    "sample",
]
