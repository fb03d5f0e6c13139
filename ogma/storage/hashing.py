"""Stream wrappers that hash everything passing through them."""
from __future__ import annotations

import hashlib
from typing import BinaryIO


class HashingWriter:
    """Forward writes to ``inner`` while feeding a BLAKE2b hasher.

    ``hexdigest()`` covers exactly the bytes that reached ``inner``.
    """

    def __init__(self, inner: BinaryIO, digest_size: int = 32) -> None:
        self.inner = inner
        self._hasher = hashlib.blake2b(digest_size=digest_size)

    def write(self, data: bytes) -> int:
        written = self.inner.write(data)
        # unbuffered raw streams may accept a short write
        n = len(data) if written is None else written
        self._hasher.update(memoryview(data)[:n])
        return n

    def flush(self) -> None:
        self.inner.flush()

    def fileno(self) -> int:
        return self.inner.fileno()

    def hexdigest(self) -> str:
        return self._hasher.hexdigest()


class HashingReader:
    """Read from ``inner`` while feeding a BLAKE2b hasher.

    Once the stream has been read to the end, ``hexdigest()`` matches the
    `HashingWriter` digest of the same bytes.
    """

    def __init__(self, inner: BinaryIO, digest_size: int = 32) -> None:
        self.inner = inner
        self._hasher = hashlib.blake2b(digest_size=digest_size)

    def read(self, size: int = -1) -> bytes:
        data = self.inner.read(size)
        if data:
            self._hasher.update(data)
        return data

    def hexdigest(self) -> str:
        return self._hasher.hexdigest()
