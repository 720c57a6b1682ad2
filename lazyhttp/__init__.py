"""lazyhttp: an HTTP client whose responses are evaluated on first access."""

from __future__ import annotations

# Semantic version for package consumers.
__version__ = "0.1.0"

from .api import delete, get, head, options, patch, post, put, request  # noqa: E402
from .cookies import Cookie, CookieJar  # noqa: E402
from .exceptions import (  # noqa: E402
    ConfigurationError,
    HTTPClientError,
    StateError,
    Timeout,
    TLSVerificationError,
    TooManyRedirects,
    TransportError,
)
from .models import Request, build_request  # noqa: E402
from .response import Response  # noqa: E402
from .structures import BasicAuthorization, FileLike, Proxy  # noqa: E402

__all__ = [
    "BasicAuthorization",
    "ConfigurationError",
    "Cookie",
    "CookieJar",
    "FileLike",
    "HTTPClientError",
    "Proxy",
    "Request",
    "Response",
    "StateError",
    "TLSVerificationError",
    "Timeout",
    "TooManyRedirects",
    "TransportError",
    "__version__",
    "build_request",
    "delete",
    "get",
    "head",
    "options",
    "patch",
    "post",
    "put",
    "request",
]
