"""Compression collaborators for the store body.

A compressor wraps the open file handle with a streaming writer or reader
so the encoded document is never buffered twice. `BrotliCompressor` is the
default; `IdentityCompressor` writes the body as-is, which is handy when
inspecting a store file by hand.
"""
from __future__ import annotations

import logging
from typing import BinaryIO, Callable, Optional, Protocol, Union

import brotli

from ogma.errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

MIN_LEVEL = 0
MAX_LEVEL = 11
READ_CHUNK_SIZE = 64 * 1024


class CompressionLevel(int):
    """Brotli quality, always clamped into ``[MIN_LEVEL, MAX_LEVEL]``.

    Out-of-range input is never an error: ``CompressionLevel(99)`` is the
    maximum level and ``CompressionLevel(-3)`` the minimum.
    """

    FASTEST: "CompressionLevel"
    BALANCED: "CompressionLevel"
    SMALLEST: "CompressionLevel"
    DEFAULT: "CompressionLevel"

    def __new__(cls, level: int = 5) -> "CompressionLevel":
        return super().__new__(cls, max(MIN_LEVEL, min(MAX_LEVEL, int(level))))

    def __repr__(self) -> str:
        return f"CompressionLevel({int(self)})"

    @classmethod
    def parse(cls, value: Union[int, str, None]) -> "CompressionLevel":
        """Accept an int (clamped) or a preset name such as ``"smallest"``."""
        if value is None:
            return cls.DEFAULT
        if isinstance(value, str):
            name = value.strip().lower()
            if name.lstrip("-").isdigit():
                return cls(int(name))
            try:
                return PRESETS[name]
            except KeyError:
                raise ValueError(
                    f"unknown compression preset {value!r}; expected one of {sorted(PRESETS)}"
                ) from None
        return cls(value)


CompressionLevel.FASTEST = CompressionLevel(MIN_LEVEL)
CompressionLevel.BALANCED = CompressionLevel(5)
CompressionLevel.SMALLEST = CompressionLevel(MAX_LEVEL)
CompressionLevel.DEFAULT = CompressionLevel.BALANCED

PRESETS = {
    "fastest": CompressionLevel.FASTEST,
    "balanced": CompressionLevel.BALANCED,
    "default": CompressionLevel.DEFAULT,
    "smallest": CompressionLevel.SMALLEST,
}


class CompressedWriter:
    """Write-only stream that compresses into ``raw`` as data arrives.

    `close()` emits the end of the compressed stream and flushes ``raw``
    but leaves it open; the caller owns the file handle.
    """

    def __init__(self, raw: BinaryIO, process: Callable[[bytes], bytes], finish: Callable[[], bytes]) -> None:
        self._raw = raw
        self._process = process
        self._finish = finish
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed CompressedWriter")
        try:
            out = self._process(bytes(data))
        except brotli.error as exc:
            raise EncodeError(f"compression failed: {exc}") from exc
        if out:
            self._raw.write(out)
        return len(data)

    def flush(self) -> None:
        self._raw.flush()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            tail = self._finish()
        except brotli.error as exc:
            raise EncodeError(f"compression failed: {exc}") from exc
        if tail:
            self._raw.write(tail)
        self._raw.flush()

    def __enter__(self) -> "CompressedWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            # the output is being abandoned, do not finish the stream
            self.closed = True


class CompressedReader:
    """Read-only stream that decompresses ``raw`` chunk by chunk."""

    def __init__(
        self,
        raw: BinaryIO,
        process: Callable[[bytes], bytes],
        is_finished: Optional[Callable[[], bool]] = None,
        chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self._raw = raw
        self._process = process
        self._is_finished = is_finished
        self._chunk_size = chunk_size
        self._buffer = bytearray()
        self._eof = False

    def _fill(self) -> None:
        chunk = self._raw.read(self._chunk_size)
        if not chunk:
            self._eof = True
            if self._is_finished is not None and not self._is_finished():
                raise DecodeError("compressed stream is truncated")
            return
        try:
            self._buffer += self._process(chunk)
        except brotli.error as exc:
            raise DecodeError(f"decompression failed: {exc}") from exc

    def read(self, size: int = -1) -> bytes:
        while not self._eof and (size < 0 or len(self._buffer) < size):
            self._fill()
        if size < 0:
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data


class Compressor(Protocol):
    """Wraps a binary file handle for streaming compression/decompression."""

    name: str

    def writer(self, raw: BinaryIO) -> CompressedWriter: ...

    def reader(self, raw: BinaryIO) -> CompressedReader: ...


class BrotliCompressor:
    name = "brotli"

    def __init__(self, level: Union[int, CompressionLevel] = CompressionLevel.DEFAULT) -> None:
        self.level = CompressionLevel(level)

    def writer(self, raw: BinaryIO) -> CompressedWriter:
        comp = brotli.Compressor(quality=int(self.level))
        return CompressedWriter(raw, comp.process, comp.finish)

    def reader(self, raw: BinaryIO) -> CompressedReader:
        decomp = brotli.Decompressor()
        return CompressedReader(raw, decomp.process, decomp.is_finished)

    def __repr__(self) -> str:
        return f"BrotliCompressor(level={int(self.level)})"


class IdentityCompressor:
    name = "none"

    def writer(self, raw: BinaryIO) -> CompressedWriter:
        return CompressedWriter(raw, lambda data: data, lambda: b"")

    def reader(self, raw: BinaryIO) -> CompressedReader:
        return CompressedReader(raw, lambda data: data)

    def __repr__(self) -> str:
        return "IdentityCompressor()"


def get_compressor(name: str, level: Union[int, CompressionLevel] = CompressionLevel.DEFAULT) -> Compressor:
    """Return a compressor by configuration name (``brotli`` or ``none``)."""
    key = (name or "brotli").strip().lower()
    if key == "brotli":
        return BrotliCompressor(level)
    if key in ("none", "identity"):
        return IdentityCompressor()
    raise ValueError(f"unknown compression {name!r}; expected 'brotli' or 'none'")
