"""Responses whose fields are computed on first access.

Reading any of :attr:`Response.status_code`, :attr:`~Response.headers`,
:attr:`~Response.raw`, :attr:`~Response.content`, :attr:`~Response.text` or
:attr:`~Response.cookies` opens the connection (following redirects into
:attr:`~Response.history`) exactly once; each field is cached afterwards.
"""

from __future__ import annotations

import codecs
import http.client
import io
import json as jsonlib
import logging
import zlib
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from . import decoders
from .cookies import CookieJar
from .exceptions import ConfigurationError, StateError, TransportError
from .executor import ConnectionExecutor, Step
from .iterators import ChunkIterator, LineIterator
from .lazy import State, lazy, state_of
from .models import Request
from .structures import CaseInsensitiveDict

LOGGER = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """Return the ``charset`` parameter of a Content-Type value, if usable."""

    if not content_type:
        return None
    for segment in content_type.split(";"):
        key, sep, value = segment.partition("=")
        if sep and key.strip().lower() == "charset":
            charset = value.strip().strip("\"'")
            try:
                return codecs.lookup(charset).name
            except LookupError:
                return None
    return None


class Response:
    """The lazily evaluated result of sending a :class:`Request`."""

    def __init__(
        self,
        request: Request,
        executor: Optional[ConnectionExecutor] = None,
        *,
        initializers: Sequence[Step] = (),
        origin: Optional["Response"] = None,
    ) -> None:
        self.request = request
        self.executor = executor or ConnectionExecutor()
        self.initializers: Tuple[Step, ...] = tuple(initializers)
        # The response that started the redirect chain this one is a hop of.
        self.origin = origin
        self._cookies = CookieJar()
        self._history: List[Response] = []
        self._encoding: Optional[str] = None
        self._stream_taken = False

    @property
    def history(self) -> Tuple["Response", ...]:
        """Redirect hops in order.

        The first read opens the connection and so runs the redirect chain.
        After a failed chain the hops recorded before the failure remain.
        """

        if state_of(self, "connection") is State.UNEVALUATED:
            self.connection
        return tuple(self._history)

    @lazy
    def connection(self) -> Any:
        handle = self.executor.open(self)
        try:
            self.executor.resolver.resolve(self, handle)
        except Exception:
            handle.close()
            raise
        return handle

    @lazy
    def status_code(self) -> int:
        return self.connection.status_code()

    @lazy
    def reason(self) -> str:
        return self.connection.reason()

    @lazy
    def headers(self) -> CaseInsensitiveDict:
        grouped: dict[str, Tuple[str, List[str]]] = {}
        for name, value in self.connection.response_headers():
            key = name.lower()
            if key not in grouped:
                grouped[key] = (name, [])
            grouped[key][1].append(value)
        return CaseInsensitiveDict({name: ", ".join(values) for name, values in grouped.values()})

    @lazy
    def raw(self) -> Any:
        handle = self.connection
        stream = handle.error_stream() if self.status_code >= 400 else handle.input_stream()
        return decoders.wrap(stream, self.headers.get("Content-Encoding"))

    def _take_stream(self) -> Any:
        if self._stream_taken:
            raise StateError(f"Body stream of {self.request.url} was already consumed")
        self._stream_taken = True
        return self.raw

    @lazy
    def content(self) -> bytes:
        raw = self._take_stream()
        try:
            return raw.read()
        except TransportError:
            raise
        except (OSError, http.client.HTTPException, zlib.error) as exc:
            raise TransportError(f"Failed while reading body of {self.request.url}: {exc}") from exc
        finally:
            raw.close()

    @lazy
    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")

    @lazy
    def cookies(self) -> CookieJar:
        self.evaluate()
        return self._cookies

    @property
    def encoding(self) -> str:
        """The override if one was set, else the Content-Type charset, else UTF-8."""

        if self._encoding is not None:
            return self._encoding
        return charset_from_content_type(self.headers.get("Content-Type")) or DEFAULT_ENCODING

    @encoding.setter
    def encoding(self, value: str) -> None:
        try:
            self._encoding = codecs.lookup(value).name
        except LookupError as exc:
            raise ConfigurationError(f"Unknown encoding {value!r}") from exc

    @property
    def url(self) -> str:
        return self.connection.url

    def json(self, **kwargs: Any) -> Any:
        return jsonlib.loads(self.text, **kwargs)

    def evaluate(self) -> "Response":
        """Connect, and download the content unless the request is streaming."""

        if self.request.stream:
            self.connection
        else:
            self.content
        return self

    def iter_content(self, chunk_size: int = 1) -> ChunkIterator:
        if self.request.stream and state_of(self, "content") is not State.EVALUATED:
            stream = self._take_stream()
        else:
            stream = io.BytesIO(self.content)
        return ChunkIterator(stream, chunk_size)

    def iter_lines(self, chunk_size: int = 512, delimiter: Optional[bytes] = None) -> Iterator[bytes]:
        return LineIterator(self.iter_content(chunk_size), delimiter)

    def close(self) -> None:
        """Release the connection if one was opened."""

        if state_of(self, "connection") is State.EVALUATED:
            self.connection.close()

    def __enter__(self) -> "Response":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Response [{self.status_code}]>"


__all__ = ["Response", "charset_from_content_type"]
