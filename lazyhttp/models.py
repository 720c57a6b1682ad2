"""Request values and the builder that normalises them."""

from __future__ import annotations

import logging
import ssl
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from .body import BodyEncoder, form_encode
from .config import get_settings
from .exceptions import ConfigurationError
from .lazy import lazy
from .structures import Authorization, CaseInsensitiveDict, FileLike, Proxy
from .transport import TOKEN, HostnameVerifier, default_hostname_verifier

LOGGER = logging.getLogger(__name__)

SUPPORTED_SCHEMES = frozenset({"http", "https"})

DEFAULT_HEADERS: Dict[str, str] = {
    "Accept": "*/*",
    "Accept-Encoding": "gzip, deflate",
}


def base_headers() -> Dict[str, str]:
    """The headers applied last, beneath caller and content-type headers."""

    return {**DEFAULT_HEADERS, "User-Agent": get_settings().user_agent}


_REBUILD_FIELDS = (
    "method",
    "params",
    "data",
    "json",
    "files",
    "auth",
    "cookies",
    "timeout",
    "allow_redirects",
    "stream",
    "ssl_context",
    "hostname_verifier",
    "proxy",
)


@dataclass(frozen=True, eq=False)
class Request:
    """An immutable, fully normalised request description.

    Instances come from :func:`build_request`. The encoded body is computed
    on first access of :attr:`body` and cached for the life of the request.
    """

    method: str
    url: str
    # The caller's URL before ``params`` were appended.
    base_url: str = field(repr=False)
    params: Dict[str, str]
    headers: CaseInsensitiveDict
    data: Any
    json: Any
    files: Tuple[FileLike, ...]
    auth: Optional[Authorization]
    cookies: Optional[Dict[str, str]]
    timeout: float
    allow_redirects: bool
    stream: bool
    ssl_context: Optional[ssl.SSLContext]
    hostname_verifier: HostnameVerifier
    proxy: Optional[Proxy]
    encoder: BodyEncoder = field(repr=False)

    @lazy
    def body(self) -> bytes:
        return self.encoder.encode(self.headers.get("Content-Type"))

    @property
    def streaming_source(self) -> Any:
        return self.encoder.streaming_source

    @property
    def is_https(self) -> bool:
        return self.url.startswith("https:")

    def replace(self, **changes: Any) -> "Request":
        """Return a new request with ``changes`` applied.

        The result goes through :func:`build_request` again: the URL is
        normalised with ``params`` re-applied and the body is encoded anew.
        Headers, including defaults filled in for this request, carry over
        unless ``headers`` is one of the changes.
        """

        options: Dict[str, Any] = {name: getattr(self, name) for name in _REBUILD_FIELDS}
        options["url"] = self.base_url
        options["headers"] = dict(self.headers)
        options.update(changes)
        return build_request(**options)

    def __repr__(self) -> str:
        return f"<Request [{self.method} {self.url}]>"


def normalize_url(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Return ``url`` with an ASCII host, re-encoded query and ``params`` appended."""

    try:
        parsed = parse_url(url)
    except LocationParseError as exc:
        raise ConfigurationError(f"Invalid URL {url!r}: {exc}") from exc
    scheme = (parsed.scheme or "").lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise ConfigurationError(
            f"Invalid schema in {url!r}. Only http:// and https:// are supported."
        )
    if not parsed.host:
        raise ConfigurationError(f"Invalid URL {url!r}: no host supplied")
    query = parsed.query
    if params:
        encoded = form_encode(params)
        query = f"{query}&{encoded}" if query else encoded
    return parsed._replace(scheme=scheme, path=parsed.path or "/", query=query).url


def validate_header(name: str, value: str) -> None:
    """Raise :class:`ConfigurationError` unless ``name: value`` can go on the wire."""

    if not TOKEN.match(name):
        raise ConfigurationError(f"Invalid header name {name!r}")
    if "\r" in value or "\n" in value:
        raise ConfigurationError(f"Header {name!r} must not contain line breaks")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise ConfigurationError(f"Header {name!r} must be latin-1 encodable, got {value!r}") from exc


def merge_headers(
    headers: Optional[Mapping[str, Optional[str]]],
    *defaults: Mapping[str, str],
    auth: Optional[Authorization] = None,
) -> CaseInsensitiveDict:
    """Merge caller headers over ``defaults`` case-insensitively.

    Defaults only fill keys the caller did not set; a caller value of
    ``None`` suppresses a default. The auth header always wins.
    """

    merged: CaseInsensitiveDict = CaseInsensitiveDict()
    for key, value in (headers or {}).items():
        merged[key] = None if value is None else str(value)
    for layer in defaults:
        for key, value in layer.items():
            if key not in merged:
                merged[key] = value
    if auth is not None:
        name, value = auth.header
        merged[name] = value
    items = sorted(((key, value) for key, value in merged.items() if value is not None), key=lambda item: item[0].lower())
    for key, value in items:
        validate_header(key, value)
    return CaseInsensitiveDict(items)


def build_request(
    method: str,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, Optional[str]]] = None,
    data: Any = None,
    json: Any = None,
    files: Optional[Sequence[FileLike]] = None,
    auth: Optional[Authorization] = None,
    cookies: Optional[Mapping[str, Any]] = None,
    timeout: Optional[float] = None,
    allow_redirects: Optional[bool] = None,
    stream: bool = False,
    ssl_context: Optional[ssl.SSLContext] = None,
    hostname_verifier: Optional[Callable[..., bool]] = None,
    proxy: Optional[Proxy] = None,
) -> Request:
    """Validate and normalise a request description.

    Raises :class:`ConfigurationError` for unsupported schemes, malformed
    URLs and bodies that cannot be encoded. No connection is attempted.
    """

    method = method.upper()
    normalized = normalize_url(url, params)
    encoder = BodyEncoder(data=data, json=json, files=files)
    merged = merge_headers(headers, encoder.default_headers, base_headers(), auth=auth)
    if timeout is None:
        timeout = get_settings().timeout
    if timeout <= 0:
        raise ConfigurationError(f"timeout must be positive, not {timeout!r}")
    if allow_redirects is None:
        allow_redirects = method != "HEAD"

    if cookies is not None:
        cookies = {str(key): str(value) for key, value in cookies.items()}
        for name, value in cookies.items():
            if not TOKEN.match(name) or ";" in value:
                raise ConfigurationError(f"Invalid cookie {name}={value!r}")
            validate_header("Cookie", value)

    request = Request(
        method=method,
        url=normalized,
        base_url=url,
        params={str(key): str(value) for key, value in (params or {}).items()},
        headers=merged,
        data=data,
        json=json,
        files=encoder.files,
        auth=auth,
        cookies=cookies,
        timeout=float(timeout),
        allow_redirects=allow_redirects,
        stream=stream,
        ssl_context=ssl_context,
        hostname_verifier=hostname_verifier or default_hostname_verifier,
        proxy=proxy,
        encoder=encoder,
    )
    LOGGER.debug("Built request %s %s (body kind: %s)", method, normalized, encoder.kind)
    return request


__all__ = [
    "DEFAULT_HEADERS",
    "Request",
    "SUPPORTED_SCHEMES",
    "base_headers",
    "build_request",
    "merge_headers",
    "normalize_url",
    "validate_header",
]
