"""Module-level request helpers."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from .executor import ConnectionExecutor, Step
from .models import build_request
from .response import Response


def request(
    method: str,
    url: str,
    *,
    executor: Optional[ConnectionExecutor] = None,
    initializers: Sequence[Step] = (),
    **options: Any,
) -> Response:
    """Build a request and return its unevaluated :class:`Response`.

    ``options`` are the keyword arguments of
    :func:`~lazyhttp.models.build_request`. Nothing touches the network
    until a response field is read.
    """

    return Response(build_request(method, url, **options), executor=executor, initializers=initializers)


def get(url: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Response:
    return request("GET", url, params=params, **kwargs)


def head(url: str, **kwargs: Any) -> Response:
    return request("HEAD", url, **kwargs)


def options(url: str, **kwargs: Any) -> Response:
    return request("OPTIONS", url, **kwargs)


def post(url: str, data: Any = None, json: Any = None, **kwargs: Any) -> Response:
    return request("POST", url, data=data, json=json, **kwargs)


def put(url: str, data: Any = None, **kwargs: Any) -> Response:
    return request("PUT", url, data=data, **kwargs)


def patch(url: str, data: Any = None, **kwargs: Any) -> Response:
    return request("PATCH", url, data=data, **kwargs)


def delete(url: str, **kwargs: Any) -> Response:
    return request("DELETE", url, **kwargs)


__all__ = ["delete", "get", "head", "options", "patch", "post", "put", "request"]
