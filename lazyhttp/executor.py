"""Opening a connection for a request.

A :class:`ConnectionExecutor` opens a transport handle and runs an ordered
pipeline around ``connect()``: pre-connect steps configure the handle,
post-connect steps send the body and collect cookies. The pipelines are
plain tuples fixed at construction; a response may add its own steps
between the two phases.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Sequence, Tuple

from . import metrics
from .config import get_settings
from .cookies import CookieJar
from .exceptions import ConfigurationError
from .redirects import RedirectResolver
from .transport import HTTPTransport

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .response import Response

LOGGER = logging.getLogger(__name__)

Step = Callable[["Response", Any], None]
MethodOverride = Callable[[Any, str], bool]


def force_method(handle: Any, method: str, overrides: Sequence[MethodOverride] = ()) -> None:
    """Set ``method`` on ``handle``, falling back to ``overrides`` in order.

    Raises :class:`ConfigurationError` when neither the handle nor any
    override ends up with the requested method.
    """

    if not handle.set_method(method):
        for override in overrides:
            if override(handle, method):
                break
    if handle.method != method:
        raise ConfigurationError(f"Transport does not support the {method!r} method")


def set_method(response: "Response", handle: Any) -> None:
    force_method(handle, response.request.method, response.executor.method_overrides)


def set_headers(response: "Response", handle: Any) -> None:
    headers = response.request.headers
    for key in sorted(headers, key=str.lower):
        handle.set_header(key, headers[key])


def set_cookies(response: "Response", handle: Any) -> None:
    cookies = response.request.cookies
    if cookies is None:
        return
    jar = CookieJar(cookies).merge(response._cookies)
    response._cookies.merge(jar)
    handle.set_header("Cookie", str(jar))


def set_timeouts(response: "Response", handle: Any) -> None:
    timeout = response.request.timeout
    handle.set_timeouts(timeout, timeout)


def set_tls(response: "Response", handle: Any) -> None:
    request = response.request
    if request.is_https:
        handle.set_tls(request.ssl_context, request.hostname_verifier)


def disable_redirects(response: "Response", handle: Any) -> None:
    handle.disable_auto_redirect()


def write_body(response: "Response", handle: Any) -> None:
    body = response.request.body
    if body:
        handle.write_body(body)


def _read_chunks(source: Any, chunk_size: int) -> Iterator[bytes]:
    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            return
        yield chunk


def stream_body(response: "Response", handle: Any) -> None:
    request = response.request
    source = request.streaming_source
    if request.files or source is None:
        return
    chunk_size = response.executor.upload_chunk_size
    written = 0
    with handle.open_output_stream() as output:
        if isinstance(source, Path):
            with source.open("rb") as stream:
                for chunk in _read_chunks(stream, chunk_size):
                    written += output.write(chunk)
        else:
            for chunk in _read_chunks(source, chunk_size):
                written += output.write(chunk)
    LOGGER.debug("Streamed %d byte(s) of request body to %s", written, request.url)


def collect_cookies(response: "Response", handle: Any) -> None:
    for name, value in handle.response_headers():
        if name.lower() == "set-cookie" and value:
            response._cookies.add_header(value)


DEFAULT_PRE_CONNECT: Tuple[Step, ...] = (
    set_method,
    set_headers,
    set_cookies,
    set_timeouts,
    set_tls,
    disable_redirects,
)

DEFAULT_POST_CONNECT: Tuple[Step, ...] = (
    write_body,
    stream_body,
    collect_cookies,
)


@dataclass(frozen=True)
class ConnectionExecutor:
    transport: Any = field(default_factory=HTTPTransport)
    pre_connect: Tuple[Step, ...] = DEFAULT_PRE_CONNECT
    post_connect: Tuple[Step, ...] = DEFAULT_POST_CONNECT
    method_overrides: Tuple[MethodOverride, ...] = ()
    upload_chunk_size: int = field(default_factory=lambda: get_settings().upload_chunk_size)
    resolver: RedirectResolver = field(default_factory=RedirectResolver)

    def open(self, response: "Response") -> Any:
        """Open, configure and connect a handle for ``response.request``."""

        request = response.request
        handle = self.transport.open(request.url, request.proxy)
        started = time.monotonic()
        try:
            for step in (*self.pre_connect, *response.initializers):
                step(response, handle)
            LOGGER.debug(
                "Connecting for %(method)s %(url)s with headers %(headers)s",
                {"method": request.method, "url": request.url, "headers": dict(request.headers)},
            )
            handle.connect()
            for step in self.post_connect:
                step(response, handle)
            status = handle.status_code()
        except Exception as exc:
            handle.close()
            metrics.record_failure(request.method, type(exc).__name__)
            LOGGER.warning("%s %s failed: %s", request.method, request.url, exc)
            raise
        metrics.record_exchange(request.method, status, time.monotonic() - started)
        LOGGER.debug("%s %s -> %s", request.method, request.url, status)
        return handle

    def with_steps(
        self,
        pre_connect: Optional[Sequence[Step]] = None,
        post_connect: Optional[Sequence[Step]] = None,
    ) -> "ConnectionExecutor":
        """Return a copy with replaced pipelines."""

        return ConnectionExecutor(
            transport=self.transport,
            pre_connect=tuple(self.pre_connect if pre_connect is None else pre_connect),
            post_connect=tuple(self.post_connect if post_connect is None else post_connect),
            method_overrides=self.method_overrides,
            upload_chunk_size=self.upload_chunk_size,
            resolver=self.resolver,
        )


__all__ = [
    "ConnectionExecutor",
    "DEFAULT_POST_CONNECT",
    "DEFAULT_PRE_CONNECT",
    "force_method",
]
