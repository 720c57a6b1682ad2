import gzip
import http.server
import json
import os
import sys
import threading
import zlib
from pathlib import Path
from urllib.parse import parse_qsl, urlsplit

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lazyhttp.config import get_settings, load_environment  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    for name in list(os.environ):
        if name.startswith("LAZYHTTP_"):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    load_environment.cache_clear()
    yield
    get_settings.cache_clear()
    load_environment.cache_clear()


class MockHandler(http.server.BaseHTTPRequestHandler):
    hits: list = []

    def _read_body(self) -> bytes:
        if self.headers.get("Transfer-Encoding", "").lower() == "chunked":
            body = b""
            while True:
                size = int(self.rfile.readline().strip(), 16)
                if size == 0:
                    self.rfile.readline()
                    return body
                body += self.rfile.read(size)
                self.rfile.readline()
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length else b""

    def _reply(self, status, body=b"", headers=()):
        self.send_response(status)
        for name, value in headers:
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _dispatch(self) -> None:  # noqa: C901 - flat routing table
        parts = urlsplit(self.path)
        path, query = parts.path, dict(parse_qsl(parts.query))
        body = self._read_body()
        type(self).hits.append((self.command, path))

        if path == "/echo":
            payload = {
                "method": self.command,
                "path": self.path,
                "headers": {key: value for key, value in self.headers.items()},
                "body": body.decode("latin-1"),
            }
            return self._reply(200, json.dumps(payload).encode(), [("Content-Type", "application/json")])
        if path == "/redirect":
            return self._reply(302, b"moved", [("Location", "/next")])
        if path == "/next":
            return self._reply(200, b"next page", [("Content-Type", "text/plain")])
        if path.startswith("/chain/"):
            remaining = int(path.rsplit("/", 1)[1])
            if remaining == 0:
                return self._reply(200, b"done")
            return self._reply(301, b"", [("Location", f"/chain/{remaining - 1}")])
        if path == "/see-other":
            return self._reply(303, b"", [("Location", "/echo")])
        if path == "/temporary":
            return self._reply(307, b"", [("Location", "http://127.0.0.1:%d/echo" % self.server.server_address[1])])
        if path == "/loop":
            return self._reply(302, b"", [("Location", "/loop")])
        if path == "/redirect-with-cookie":
            return self._reply(302, b"", [("Set-Cookie", "hop=1; Path=/"), ("Location", "/echo")])
        if path == "/set-cookie":
            headers = [("Set-Cookie", f"{key}={value}; HttpOnly") for key, value in query.items()]
            return self._reply(200, b"ok", headers)
        if path == "/gzip":
            return self._reply(200, gzip.compress(b"compressed payload"), [("Content-Encoding", "gzip")])
        if path == "/deflate":
            return self._reply(200, zlib.compress(b"deflated payload"), [("Content-Encoding", "deflate")])
        if path == "/charset":
            return self._reply(
                200, "café".encode("latin-1"), [("Content-Type", "text/plain; charset=ISO-8859-1")]
            )
        if path == "/lines":
            return self._reply(200, b"ab\r\ncd\r\ne", [("Content-Type", "text/plain")])
        if path == "/multi-header":
            return self._reply(200, b"", [("X-Multi", "a"), ("X-Multi", "b")])
        if path == "/missing":
            return self._reply(404, b"missing", [("Content-Type", "text/plain")])
        return self._reply(500, b"unknown route")

    do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_HEAD = do_OPTIONS = _dispatch

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return


@pytest.fixture(scope="session")
def mock_server():
    server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), MockHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def base_url(mock_server) -> str:
    MockHandler.hits.clear()
    host, port = mock_server.server_address
    return f"http://{host}:{port}"


@pytest.fixture
def hits():
    return MockHandler.hits
