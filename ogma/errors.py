"""Exception hierarchy for the ogma store.

Every failure raised by `Store.open` / `Store.save` is a subclass of
`StoreError`, so callers can catch the whole family in one place and
still tell "corrupt" apart from "incompatible" apart from "I/O".
"""
from __future__ import annotations

__all__ = [
    "StoreError",
    "StoreIOError",
    "InvalidFileError",
    "WrongVersionError",
    "DecodeError",
    "EncodeError",
]


class StoreError(Exception):
    """Root exception for all store errors."""


class StoreIOError(StoreError):
    """A filesystem or stream operation failed.

    The original `OSError` is available as `__cause__`.
    """

    def __init__(self, message: str, errno: int | None = None) -> None:
        super().__init__(message)
        self.errno = errno

    @classmethod
    def from_os_error(cls, exc: OSError, action: str) -> "StoreIOError":
        filename = f" {exc.filename}" if exc.filename else ""
        return cls(f"{action} failed{filename}: {exc.strerror or exc}", exc.errno)


class InvalidFileError(StoreError):
    """The file does not start with the store's magic identifier."""

    def __init__(self, message: str = "file is not a valid store file or is corrupted") -> None:
        super().__init__(message)


class WrongVersionError(StoreError):
    """The magic matched but the format version is not the supported one."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"file format is version {actual}, but this library only supports version {expected}"
        )
        self.expected = expected
        self.actual = actual


class DecodeError(StoreError):
    """The body could not be decompressed or decoded into the expected types."""


class EncodeError(StoreError):
    """The in-memory document could not be encoded."""
