"""Content-Encoding decompression for response streams."""

from __future__ import annotations

import io
from typing import Any, Optional

from urllib3.response import DeflateDecoder, GzipDecoder

_DECODERS = {
    "gzip": GzipDecoder,
    "x-gzip": GzipDecoder,
    "deflate": DeflateDecoder,
}

READ_SIZE = 8192


class DecodingReader(io.RawIOBase):
    """Decompress a raw stream on the fly."""

    def __init__(self, raw: Any, decoder: Any) -> None:
        super().__init__()
        self._raw = raw
        self._decoder = decoder
        self._buffer = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, target: Any) -> int:
        while not self._buffer and not self._eof:
            data = self._raw.read(READ_SIZE)
            if data:
                self._buffer = self._decoder.decompress(data)
            else:
                self._buffer = self._decoder.flush()
                self._eof = True
        size = min(len(target), len(self._buffer))
        target[:size] = self._buffer[:size]
        self._buffer = self._buffer[size:]
        return size

    def close(self) -> None:
        if not self.closed:
            self._raw.close()
        super().close()


def wrap(stream: Any, content_encoding: Optional[str]) -> Any:
    """Return ``stream`` decoded for ``content_encoding``, or unchanged."""

    decoder = _DECODERS.get((content_encoding or "").strip().lower())
    if decoder is None:
        return stream
    return io.BufferedReader(DecodingReader(stream, decoder()))


__all__ = ["DecodingReader", "wrap"]
