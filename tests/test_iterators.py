"""Tests for chunk and line iteration across chunk boundaries."""

from __future__ import annotations

import io

import pytest

from lazyhttp.exceptions import ConfigurationError
from lazyhttp.iterators import ChunkIterator, LineIterator


def _lines(data: bytes, chunk_size: int, delimiter: bytes | None = None) -> list[bytes]:
    return list(LineIterator(ChunkIterator(io.BytesIO(data), chunk_size), delimiter))


def test_chunks_respect_maximum_size():
    chunks = list(ChunkIterator(io.BytesIO(b"abcdefg"), 3))

    assert chunks == [b"abc", b"def", b"g"]


def test_exhaustion_closes_stream_and_is_permanent():
    stream = io.BytesIO(b"ab")
    iterator = ChunkIterator(stream, 8)

    assert next(iterator) == b"ab"
    assert iterator.has_next() is False
    assert stream.closed
    assert list(iterator) == []


def test_has_next_does_not_lose_the_probed_byte():
    iterator = ChunkIterator(io.BytesIO(b"xyz"), 2)

    assert iterator.has_next()
    assert iterator.has_next()
    assert list(iterator) == [b"xy", b"z"]


def test_empty_stream_yields_nothing():
    assert list(ChunkIterator(io.BytesIO(b""), 4)) == []


def test_chunk_size_must_be_positive():
    with pytest.raises(ConfigurationError):
        ChunkIterator(io.BytesIO(b""), 0)


@pytest.mark.parametrize("chunk_size", range(1, 12))
def test_generic_newlines_are_reassembled_for_every_chunk_size(chunk_size):
    assert _lines(b"ab\r\ncd\r\ne", chunk_size) == [b"ab", b"cd", b"e"]


@pytest.mark.parametrize("chunk_size", [1, 2, 3, 64])
def test_mixed_newline_conventions(chunk_size):
    assert _lines(b"a\nb\rc\r\n\r\nd\r", chunk_size) == [b"a", b"b", b"c", b"", b"d"]


@pytest.mark.parametrize("chunk_size", [1, 2, 5, 64])
def test_explicit_delimiter_spanning_chunks(chunk_size):
    assert _lines(b"one<>two<><>three", chunk_size, b"<>") == [b"one", b"two", b"", b"three"]


def test_trailing_delimiter_does_not_add_empty_record():
    assert _lines(b"a,b,", 2, b",") == [b"a", b"b"]
    assert _lines(b"a\n", 1) == [b"a"]


def test_undelimited_stream_is_one_record():
    assert _lines(b"no newline here", 4) == [b"no newline here"]


def test_empty_stream_has_no_records():
    assert _lines(b"", 4) == []


def test_line_iterator_is_not_restartable():
    iterator = LineIterator(ChunkIterator(io.BytesIO(b"a\nb"), 1))

    assert list(iterator) == [b"a", b"b"]
    assert list(iterator) == []


def test_empty_delimiter_is_rejected():
    with pytest.raises(ConfigurationError):
        LineIterator(iter([]), b"")
