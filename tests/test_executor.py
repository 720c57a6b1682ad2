"""Unit tests for the connection pipeline using an in-memory handle."""

from __future__ import annotations

import io

import pytest

from lazyhttp.cookies import CookieJar
from lazyhttp.exceptions import ConfigurationError, TooManyRedirects, TransportError
from lazyhttp.executor import DEFAULT_POST_CONNECT, DEFAULT_PRE_CONNECT, ConnectionExecutor, force_method
from lazyhttp.models import build_request
from lazyhttp.redirects import RedirectResolver
from lazyhttp.response import Response


class RecordingOutput:
    def __init__(self, handle: "FakeHandle") -> None:
        self.handle = handle

    def write(self, data: bytes) -> int:
        self.handle.chunks.append(data)
        return len(data)

    def __enter__(self) -> "RecordingOutput":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.handle.calls.append("close-output")


class FakeHandle:
    def __init__(self, url: str, *, status: int = 200, headers=(), verbs=("GET", "POST", "HEAD")) -> None:
        self.url = url
        self.method = "GET"
        self.verbs = set(verbs)
        self.calls: list = []
        self.headers: list = []
        self.chunks: list = []
        self.status = status
        self._response_headers = list(headers)
        self.fail_connect = False
        self.closed = False

    def set_method(self, method):
        self.calls.append(("method", method))
        if method not in self.verbs:
            return False
        self.method = method
        return True

    def set_header(self, name, value):
        self.calls.append(("header", name))
        self.headers.append((name, value))

    def set_timeouts(self, connect, read):
        self.calls.append(("timeouts", connect, read))

    def set_tls(self, context, verifier):
        self.calls.append(("tls", context, verifier))

    def disable_auto_redirect(self):
        self.calls.append("no-redirect")

    def connect(self):
        if self.fail_connect:
            raise TransportError("refused")
        self.calls.append("connect")

    def write_body(self, body):
        self.calls.append(("body", body))

    def open_output_stream(self):
        self.calls.append("open-output")
        return RecordingOutput(self)

    def status_code(self):
        return self.status

    def reason(self):
        return "OK"

    def response_headers(self):
        return list(self._response_headers)

    def input_stream(self):
        return io.BytesIO(b"payload")

    def error_stream(self):
        return io.BytesIO(b"error")

    def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, **handle_options) -> None:
        self.handle_options = handle_options
        self.opened: list[FakeHandle] = []

    def open(self, url, proxy=None):
        handle = FakeHandle(url, **self.handle_options)
        self.opened.append(handle)
        return handle


def _response(request, transport, **executor_options) -> Response:
    return Response(request, ConnectionExecutor(transport=transport, **executor_options))


def test_pre_connect_steps_run_in_order_before_connect():
    transport = FakeTransport()
    request = build_request("GET", "http://example.com", headers={"b": "2", "A": "1"}, cookies={"c": "3"}, timeout=1.5)

    handle = _response(request, transport).connection

    names = [call if isinstance(call, str) else call[0] for call in handle.calls]
    assert names.index("method") < names.index("header") < names.index("timeouts")
    assert names.index("timeouts") < names.index("no-redirect") < names.index("connect")
    assert ("timeouts", 1.5, 1.5) in handle.calls
    assert "tls" not in names
    header_names = [name for name, _ in handle.headers]
    assert header_names[:-1] == sorted(header_names[:-1], key=str.lower)
    assert handle.headers[-1] == ("Cookie", "c=3")


def test_tls_is_configured_for_https():
    transport = FakeTransport()
    request = build_request("GET", "https://example.com")

    handle = _response(request, transport).connection

    tls = [call for call in handle.calls if isinstance(call, tuple) and call[0] == "tls"]
    assert tls == [("tls", None, request.hostname_verifier)]


def test_cookie_header_merges_accumulated_cookies():
    transport = FakeTransport()
    response = _response(build_request("GET", "http://example.com", cookies={"a": "1", "b": "old"}), transport)
    response._cookies.merge({"b": "new"})

    handle = response.connection

    assert dict(handle.headers)["Cookie"] == "a=1; b=new"
    assert response._cookies.as_dict() == {"b": "new", "a": "1"}


def test_body_is_written_after_connect():
    transport = FakeTransport()

    handle = _response(build_request("POST", "http://example.com", data="hello"), transport).connection

    assert handle.calls.index("connect") < handle.calls.index(("body", b"hello"))
    assert "open-output" not in handle.calls


def test_stream_sources_are_sent_in_bounded_chunks():
    transport = FakeTransport()
    request = build_request("POST", "http://example.com", data=io.BytesIO(b"x" * 10))

    handle = _response(request, transport, upload_chunk_size=4).connection

    assert handle.chunks == [b"xxxx", b"xxxx", b"xx"]
    assert handle.calls[-1] == "close-output"


def test_stream_body_reads_paths(tmp_path):
    source = tmp_path / "upload.bin"
    source.write_bytes(b"from disk")
    transport = FakeTransport()

    handle = _response(build_request("POST", "http://example.com", data=source), transport).connection

    assert b"".join(handle.chunks) == b"from disk"


def test_set_cookie_headers_are_collected():
    transport = FakeTransport(headers=[("Set-Cookie", "b=2; Path=/"), ("set-cookie", ""), ("X", "y")])
    response = _response(build_request("GET", "http://example.com", cookies={"a": "1"}), transport)

    assert response.cookies.as_dict() == {"a": "1", "b": "2"}


def test_unsupported_method_without_override_is_fatal():
    transport = FakeTransport()
    response = _response(build_request("BREW", "http://example.com"), transport)

    with pytest.raises(ConfigurationError, match="BREW"):
        response.status_code
    assert transport.opened[0].closed


def test_method_override_is_used_when_transport_refuses():
    def override(handle, method):
        handle.method = method
        return True

    transport = FakeTransport()
    response = _response(build_request("BREW", "http://example.com"), transport, method_overrides=(override,))

    assert response.connection.method == "BREW"


def test_force_method_rejects_override_that_lies():
    handle = FakeHandle("http://example.com")

    with pytest.raises(ConfigurationError):
        force_method(handle, "BREW", [lambda h, m: True])


def test_initializers_run_between_phases():
    seen = []
    transport = FakeTransport()
    request = build_request("GET", "http://example.com")
    response = Response(
        request,
        ConnectionExecutor(transport=transport),
        initializers=[lambda resp, handle: seen.append(list(handle.calls))],
    )

    response.connection

    assert "no-redirect" in seen[0]
    assert "connect" not in seen[0]


def test_connect_failure_closes_handle_and_propagates():
    transport = FakeTransport()
    executor = ConnectionExecutor(transport=transport, pre_connect=DEFAULT_PRE_CONNECT + (_fail_connect,))
    response = Response(build_request("GET", "http://example.com"), executor)

    with pytest.raises(TransportError, match="refused"):
        response.content
    with pytest.raises(TransportError, match="refused"):
        response.status_code
    assert len(transport.opened) == 1
    assert transport.opened[0].closed


def _fail_connect(response, handle):
    handle.fail_connect = True


def test_with_steps_replaces_pipelines():
    executor = ConnectionExecutor(transport=FakeTransport())

    trimmed = executor.with_steps(post_connect=())

    assert trimmed.pre_connect == DEFAULT_PRE_CONNECT
    assert trimmed.post_connect == ()
    assert executor.post_connect == DEFAULT_POST_CONNECT


def test_redirect_cap_stops_endless_chains():
    # Every fake hop answers 302.
    transport = FakeTransport(status=302, headers=[("Location", "/next")])
    executor = ConnectionExecutor(transport=transport, resolver=RedirectResolver(max_redirects=2))
    response = Response(build_request("GET", "http://example.com/start"), executor)
    with pytest.raises(TooManyRedirects):
        response.connection
    assert [hop.request.url for hop in response.history] == ["http://example.com/next"] * 2
    assert transport.opened[0].url == "http://example.com/start"
    assert all(handle.closed for handle in transport.opened)


def test_cookie_jar_type():
    assert isinstance(_response(build_request("GET", "http://example.com"), FakeTransport()).cookies, CookieJar)
