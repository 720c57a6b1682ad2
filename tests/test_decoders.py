from __future__ import annotations

import gzip
import io
import zlib

from lazyhttp import decoders


class _TrackingStream(io.BytesIO):
    def __init__(self, payload: bytes) -> None:
        super().__init__(payload)
        self.reads = 0

    def read(self, size: int = -1) -> bytes:
        self.reads += 1
        return super().read(size)


def test_gzip_stream_is_decoded():
    stream = decoders.wrap(io.BytesIO(gzip.compress(b"hello " * 1000)), "gzip")

    assert stream.read() == b"hello " * 1000


def test_deflate_stream_is_decoded_in_small_reads():
    stream = decoders.wrap(io.BytesIO(zlib.compress(b"abcdef")), "Deflate")

    assert [stream.read(2) for _ in range(4)] == [b"ab", b"cd", b"ef", b""]


def test_raw_deflate_is_accepted():
    compressor = zlib.compressobj(wbits=-zlib.MAX_WBITS)
    payload = compressor.compress(b"raw deflate") + compressor.flush()

    assert decoders.wrap(io.BytesIO(payload), "deflate").read() == b"raw deflate"


def test_unknown_encodings_pass_through():
    stream = io.BytesIO(b"plain")

    assert decoders.wrap(stream, None) is stream
    assert decoders.wrap(stream, "br") is stream
    assert decoders.wrap(stream, "identity") is stream


def test_decoding_is_lazy_and_closes_source():
    source = _TrackingStream(gzip.compress(b"x" * 10))
    stream = decoders.wrap(source, "x-gzip")

    assert source.reads == 0
    assert stream.read(1) == b"x"
    stream.close()
    assert source.closed
