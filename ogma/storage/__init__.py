"""Storage package: container format, codecs and the typed store."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from .compression import BrotliCompressor, CompressionLevel, IdentityCompressor
from .options import StoreOptions
from .serializer import get_serializer
from .store import Store

__all__ = [
    "BrotliCompressor",
    "CompressionLevel",
    "IdentityCompressor",
    "Store",
    "StoreOptions",
    "create_store",
]


def create_store(
    path: Union[str, Path],
    *,
    serializer: str = "pickle",
    compression: str = "brotli",
    compression_level: Union[int, str, None] = None,
    key_type: Any = Any,
    value_type: Any = Any,
    load: bool = True,
    **serializer_options: Any,
) -> Store:
    """Create a Store from simple names.

    Example:
        create_store("data/people.ogma", serializer="json", value_type=Person)

    With ``load`` left True the file is opened if it exists; otherwise an
    empty store is returned without looking at the disk.
    """
    level = CompressionLevel.parse(compression_level)
    options = StoreOptions(
        path=Path(path),
        compression_level=level,
        serializer=get_serializer(serializer, **serializer_options),
        compression=compression,
    )
    if load:
        return Store.open(options, key_type, value_type)
    return Store.new(options, key_type, value_type)
