import io

import brotli
import pytest

from ogma.errors import DecodeError
from ogma.storage.compression import (
    MAX_LEVEL,
    MIN_LEVEL,
    BrotliCompressor,
    CompressionLevel,
    IdentityCompressor,
    get_compressor,
)


@pytest.mark.parametrize("raw, expected", [(-7, MIN_LEVEL), (-1, MIN_LEVEL), (0, 0), (5, 5), (11, 11), (12, MAX_LEVEL), (22, MAX_LEVEL)])
def test_level_is_clamped(raw, expected):
    assert CompressionLevel(raw) == expected


def test_level_presets():
    assert CompressionLevel.FASTEST == MIN_LEVEL
    assert CompressionLevel.SMALLEST == MAX_LEVEL
    assert CompressionLevel.DEFAULT == CompressionLevel.BALANCED
    assert MIN_LEVEL < CompressionLevel.BALANCED < MAX_LEVEL


def test_level_parse_names_and_numbers():
    assert CompressionLevel.parse("smallest") == CompressionLevel.SMALLEST
    assert CompressionLevel.parse(" Fastest ") == CompressionLevel.FASTEST
    assert CompressionLevel.parse("7") == 7
    assert CompressionLevel.parse("-3") == MIN_LEVEL
    assert CompressionLevel.parse(None) == CompressionLevel.DEFAULT
    assert CompressionLevel.parse(100) == MAX_LEVEL
    with pytest.raises(ValueError):
        CompressionLevel.parse("tiny")


def test_brotli_writer_streams_into_raw():
    raw = io.BytesIO()
    payload = b"hello world " * 1000
    with BrotliCompressor(9).writer(raw) as w:
        for i in range(0, len(payload), 100):
            w.write(payload[i:i + 100])
    assert not raw.closed
    assert len(raw.getvalue()) < len(payload)
    assert brotli.decompress(raw.getvalue()) == payload


def test_brotli_reader_reads_in_chunks():
    payload = bytes(range(256)) * 300
    raw = io.BytesIO(brotli.compress(payload))
    reader = BrotliCompressor().reader(raw)
    head = reader.read(10)
    rest = reader.read()
    assert head + rest == payload


def test_brotli_reader_rejects_garbage():
    with pytest.raises(DecodeError):
        BrotliCompressor().reader(io.BytesIO(b"\xff" * 64)).read()


def test_brotli_reader_rejects_truncated_stream():
    data = brotli.compress(b"some fairly long payload " * 200)
    with pytest.raises(DecodeError):
        BrotliCompressor().reader(io.BytesIO(data[: len(data) // 2])).read()


def test_identity_passthrough():
    raw = io.BytesIO()
    with IdentityCompressor().writer(raw) as w:
        w.write(b"abc")
    assert raw.getvalue() == b"abc"
    raw.seek(0)
    assert IdentityCompressor().reader(raw).read() == b"abc"


def test_writer_abandoned_on_error_does_not_finish():
    raw = io.BytesIO()
    with pytest.raises(RuntimeError):
        with BrotliCompressor().writer(raw) as w:
            w.write(b"x" * 10)
            raise RuntimeError("stop")
    assert w.closed
    with pytest.raises(ValueError):
        w.write(b"more")


def test_get_compressor():
    c = get_compressor("brotli", 99)
    assert isinstance(c, BrotliCompressor)
    assert c.level == MAX_LEVEL
    assert isinstance(get_compressor("none"), IdentityCompressor)
    with pytest.raises(ValueError):
        get_compressor("lzma")
