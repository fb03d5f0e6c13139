from __future__ import annotations

from dataclasses import dataclass
from typing import Any, BinaryIO, Optional

from ogma.storage.compression import CompressedWriter


@dataclass
class Address:
    street: str
    apt: Optional[str]
    city: str
    state: str
    zip: str


@dataclass
class Person:
    first_name: str
    middle_initial: Optional[str]
    last_name: str
    age: int
    address: Address


class ExplodingSerializer:
    """Serializer whose dump always fails, to interrupt a save mid-way."""

    name = "exploding"
    plain = False

    def dump(self, value: Any) -> bytes:
        raise RuntimeError("boom")

    def load(self, data: bytes) -> Any:
        raise RuntimeError("boom")


class ExplodingCompressor:
    """Compressor that writes some bytes and then fails."""

    name = "exploding"

    def writer(self, raw: BinaryIO) -> CompressedWriter:
        def process(data: bytes) -> bytes:
            raw.write(data[:3])
            raise OSError(28, "No space left on device")

        return CompressedWriter(raw, process, lambda: b"")

    def reader(self, raw: BinaryIO):
        raise NotImplementedError
