"""Forward-only iteration over response bodies.

:class:`ChunkIterator` cuts a stream into byte chunks of at most
``chunk_size`` bytes. :class:`LineIterator` reassembles those chunks into
delimited records, keeping undelimited trailing bytes between reads so a
record (or its delimiter) may span any number of chunks. Neither can be
restarted.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Deque, Iterator, Optional, Protocol

from .exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)

_NEWLINE = re.compile(rb"\r\n|\r|\n")


class ReadableStream(Protocol):
    def read(self, size: int = -1) -> bytes: ...

    def close(self) -> None: ...


class ChunkIterator(Iterator[bytes]):
    """Yield chunks of a stream, closing it once exhausted."""

    def __init__(self, stream: ReadableStream, chunk_size: int = 1) -> None:
        if chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, not {chunk_size}")
        self._stream = stream
        self.chunk_size = chunk_size
        self._pending = b""
        self.closed = False

    def has_next(self) -> bool:
        """Probe one byte ahead; the probed byte is kept for the next chunk."""

        if self.closed:
            return False
        if self._pending:
            return True
        probe = self._stream.read(1)
        if not probe:
            self.close()
            return False
        self._pending = probe
        return True

    def __next__(self) -> bytes:
        if not self.has_next():
            raise StopIteration
        head, self._pending = self._pending, b""
        if self.chunk_size == len(head):
            return head
        return head + self._stream.read(self.chunk_size - len(head))

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._pending = b""
            self._stream.close()


class LineIterator(Iterator[bytes]):
    """Yield records split on ``delimiter`` or on ``\\r\\n``, ``\\r`` and ``\\n``.

    The final undelimited bytes, if any, are returned as the last record.
    """

    def __init__(self, chunks: Iterator[bytes], delimiter: Optional[bytes] = None) -> None:
        if delimiter is not None and not delimiter:
            raise ConfigurationError("delimiter must not be empty")
        self._chunks = chunks
        self.delimiter = delimiter
        self._carry = b""
        self._overflow: Deque[bytes] = deque()
        self._finished = False

    def __next__(self) -> bytes:
        while not self._overflow:
            if self._finished:
                raise StopIteration
            try:
                chunk = next(self._chunks)
            except StopIteration:
                self._finished = True
                tail, self._carry = self._carry, b""
                if self.delimiter is None and tail.endswith(b"\r"):
                    return tail[:-1]
                if tail:
                    return tail
                raise
            self._split(self._carry + chunk)
        return self._overflow.popleft()

    def _split(self, content: bytes) -> None:
        if self.delimiter is None:
            # A trailing \r may be the first half of \r\n.
            held = b""
            if content.endswith(b"\r"):
                content, held = content[:-1], b"\r"
            records = _NEWLINE.split(content)
        else:
            held = b""
            records = content.split(self.delimiter)
        self._carry = records.pop() + held
        self._overflow.extend(records)


__all__ = ["ChunkIterator", "LineIterator"]
