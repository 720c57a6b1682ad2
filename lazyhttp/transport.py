"""Blocking HTTP/1.1 connections on top of :mod:`http.client`.

:class:`HTTPConnectionHandle` is configured first (method, headers,
timeouts, TLS), then connected, then optionally given a request body, and
finally asked for the response. The request head is sent lazily: by the
first body write, or by the first read of the response when there is no
body.
"""

from __future__ import annotations

import http.client
import logging
import re
import socket
import ssl
from typing import Any, Callable, List, NamedTuple, Optional, Tuple
from urllib.parse import urlsplit

from .exceptions import ConfigurationError, Timeout, TLSVerificationError, TransportError
from .structures import Proxy

LOGGER = logging.getLogger(__name__)

# RFC 9110 token, used for methods and header names.
TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class TLSSession(NamedTuple):
    """What a hostname verifier is told about a completed handshake."""

    peer_host: str
    peer_cert: Optional[dict]
    cipher: Optional[Tuple[str, str, int]]


HostnameVerifier = Callable[[str, TLSSession], bool]


def default_hostname_verifier(hostname: str, session: TLSSession) -> bool:
    """Accept the peer when it is the host that was asked for."""

    return hostname.lower() == (session.peer_host or "").lower()


def _wrap_errors(action: str, exc: BaseException) -> TransportError:
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return Timeout(f"Timed out while {action}: {exc}")
    return TransportError(f"Failed while {action}: {exc}")


class _ChunkedOutput:
    """Writes the request body with chunked transfer coding."""

    def __init__(self, handle: "HTTPConnectionHandle") -> None:
        self._handle = handle
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed output stream")
        if data:
            self._handle._send(b"%X\r\n" % len(data) + bytes(data) + b"\r\n")
        return len(data)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._handle._send(b"0\r\n\r\n")

    def __enter__(self) -> "_ChunkedOutput":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class HTTPConnectionHandle:
    """One request/response exchange over a single connection."""

    def __init__(self, url: str, proxy: Optional[Proxy] = None) -> None:
        self.url = url
        self.proxy = proxy
        parts = urlsplit(url)
        self.scheme = parts.scheme
        self.host = parts.hostname or ""
        self.port = parts.port or (443 if self.scheme == "https" else 80)
        self.target = parts.path or "/"
        if parts.query:
            self.target = f"{self.target}?{parts.query}"

        self.method = "GET"
        self.headers: List[Tuple[str, str]] = []
        self.connect_timeout: Optional[float] = None
        self.read_timeout: Optional[float] = None
        self.ssl_context: Optional[ssl.SSLContext] = None
        self.hostname_verifier: HostnameVerifier = default_hostname_verifier
        self.follow_redirects = False

        self._connection: Optional[http.client.HTTPConnection] = None
        self._head_sent = False
        self._output: Optional[_ChunkedOutput] = None
        self._response: Optional[http.client.HTTPResponse] = None

    # Configuration, before connect().

    def set_method(self, method: str) -> bool:
        if not TOKEN.match(method):
            return False
        self.method = method
        return True

    def set_header(self, name: str, value: str) -> None:
        self.headers = [(key, item) for key, item in self.headers if key.lower() != name.lower()]
        self.headers.append((name, value))

    def get_header(self, name: str) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None

    def set_timeouts(self, connect: Optional[float], read: Optional[float]) -> None:
        self.connect_timeout = connect
        self.read_timeout = read

    def set_tls(self, context: Optional[ssl.SSLContext], verifier: HostnameVerifier) -> None:
        self.ssl_context = context
        self.hostname_verifier = verifier

    def disable_auto_redirect(self) -> None:
        # http.client never follows redirects itself.
        self.follow_redirects = False

    # Connection.

    @property
    def connected(self) -> bool:
        return self._connection is not None

    def connect(self) -> None:
        if self._connection is not None:
            return
        connection = self._new_connection()
        try:
            connection.connect()
            if connection.sock is not None and self.read_timeout is not None:
                connection.sock.settimeout(self.read_timeout)
            if self.scheme == "https":
                self._verify_peer(connection.sock)
        except TransportError:
            connection.close()
            raise
        except (OSError, http.client.HTTPException) as exc:
            connection.close()
            raise _wrap_errors(f"connecting to {self.host}:{self.port}", exc) from exc
        self._connection = connection
        LOGGER.debug("Connected to %s:%s for %s %s", self.host, self.port, self.method, self.url)

    def _new_connection(self) -> http.client.HTTPConnection:
        host, port = (self.proxy.host, self.proxy.port) if self.proxy else (self.host, self.port)
        if self.scheme == "https":
            context = self.ssl_context or ssl.create_default_context()
            connection: http.client.HTTPConnection = http.client.HTTPSConnection(
                host, port, timeout=self.connect_timeout, context=context
            )
            if self.proxy:
                connection.set_tunnel(self.host, self.port)
        else:
            connection = http.client.HTTPConnection(host, port, timeout=self.connect_timeout)
            if self.proxy:
                self.target = self.url
        return connection

    def _verify_peer(self, sock: Any) -> None:
        if not isinstance(sock, ssl.SSLSocket):
            return
        session = TLSSession(
            peer_host=sock.server_hostname or "",
            peer_cert=sock.getpeercert(),
            cipher=sock.cipher(),
        )
        if not self.hostname_verifier(self.host, session):
            raise TLSVerificationError(f"Hostname {self.host!r} rejected by verifier")

    def _require_connection(self) -> http.client.HTTPConnection:
        if self._connection is None:
            self.connect()
        assert self._connection is not None
        return self._connection

    def _send_head(self, content_length: Optional[int]) -> None:
        if self._head_sent:
            return
        connection = self._require_connection()
        try:
            connection.putrequest(
                self.method,
                self.target,
                skip_host=self.get_header("Host") is not None,
                skip_accept_encoding=True,
            )
            for name, value in self.headers:
                connection.putheader(name, value)
            if content_length is not None:
                connection.putheader("Content-Length", str(content_length))
            elif self._output is not None:
                connection.putheader("Transfer-Encoding", "chunked")
            connection.endheaders()
        except (OSError, http.client.HTTPException) as exc:
            raise _wrap_errors("sending request headers", exc) from exc
        except ValueError as exc:
            # http.client rejects header names, values or targets it cannot encode.
            raise ConfigurationError(f"Cannot send request head for {self.url}: {exc}") from exc
        self._head_sent = True

    def _send(self, data: bytes) -> None:
        connection = self._require_connection()
        try:
            connection.send(data)
        except (OSError, http.client.HTTPException) as exc:
            raise _wrap_errors("writing request body", exc) from exc

    # Request body, after connect().

    def write_body(self, body: bytes) -> None:
        self._send_head(len(body))
        self._send(body)

    def open_output_stream(self) -> _ChunkedOutput:
        if self._head_sent:
            raise TransportError("Request headers were already sent")
        self._output = _ChunkedOutput(self)
        self._send_head(None)
        return self._output

    # Response.

    def _ensure_response(self) -> http.client.HTTPResponse:
        if self._response is None:
            if not self._head_sent:
                self._send_head(0 if self.method in _BODY_METHODS else None)
            if self._output is not None and not self._output.closed:
                self._output.close()
            connection = self._require_connection()
            try:
                self._response = connection.getresponse()
            except (OSError, http.client.HTTPException) as exc:
                raise _wrap_errors("reading response", exc) from exc
        return self._response

    def status_code(self) -> int:
        return self._ensure_response().status

    def reason(self) -> str:
        return self._ensure_response().reason

    def response_headers(self) -> List[Tuple[str, str]]:
        return self._ensure_response().getheaders()

    def input_stream(self) -> http.client.HTTPResponse:
        response = self._ensure_response()
        if response.status >= 400:
            raise TransportError(f"Server returned HTTP {response.status} for {self.url}")
        return response

    def error_stream(self) -> Optional[http.client.HTTPResponse]:
        response = self._ensure_response()
        return response if response.status >= 400 else None

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()


class HTTPTransport:
    """Factory for :class:`HTTPConnectionHandle` objects."""

    handle_class = HTTPConnectionHandle

    def open(self, url: str, proxy: Optional[Proxy] = None) -> HTTPConnectionHandle:
        scheme = urlsplit(url).scheme
        if scheme not in ("http", "https"):
            raise ConfigurationError(f"Unsupported URL scheme: {scheme}")
        return self.handle_class(url, proxy)


__all__ = [
    "HTTPConnectionHandle",
    "HTTPTransport",
    "HostnameVerifier",
    "TLSSession",
    "default_hostname_verifier",
]
