"""ogma: a typed key-value map persisted to a single compressed file."""
from ogma.errors import (
    DecodeError,
    EncodeError,
    InvalidFileError,
    StoreError,
    StoreIOError,
    WrongVersionError,
)
from ogma.storage import CompressionLevel, Store, StoreOptions, create_store

__version__ = "0.2.0"

__all__ = [
    "CompressionLevel",
    "DecodeError",
    "EncodeError",
    "InvalidFileError",
    "Store",
    "StoreError",
    "StoreIOError",
    "StoreOptions",
    "WrongVersionError",
    "create_store",
]
