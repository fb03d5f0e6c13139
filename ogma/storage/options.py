"""Store configuration.

Options are supplied fresh every time a store is created or opened; none
of them are written into the store file.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

from ogma.storage.compression import BrotliCompressor, CompressionLevel, Compressor, get_compressor
from ogma.storage.serializer import PickleSerializer, Serializer, get_serializer

DEFAULT_PATH = Path("./store.ogma")


@dataclass(frozen=True)
class StoreOptions:
    """Path of the backing file plus the codec configuration.

    ``compression_level`` is clamped on construction. ``compression`` names
    the codec (``brotli`` or ``none``) built at ``compression_level`` for
    every save and open. ``compressor`` is an escape hatch for a custom
    `Compressor` object and takes precedence over ``compression``; a
    `BrotliCompressor` given there is rebuilt by `with_compression_level`.
    """

    path: Path = DEFAULT_PATH
    compression_level: CompressionLevel = CompressionLevel.DEFAULT
    serializer: Serializer = field(default_factory=PickleSerializer)
    compression: str = "brotli"
    compressor: Optional[Compressor] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))
        object.__setattr__(self, "compression_level", CompressionLevel.parse(self.compression_level))
        # fail on unknown codec names here rather than at the first save
        get_compressor(self.compression, self.compression_level)

    def with_compression_level(self, level: Union[int, str]) -> "StoreOptions":
        level = CompressionLevel.parse(level)
        compressor = self.compressor
        if isinstance(compressor, BrotliCompressor):
            compressor = BrotliCompressor(level)
        return dataclasses.replace(self, compression_level=level, compressor=compressor)

    def with_path(self, path: Union[str, Path]) -> "StoreOptions":
        return dataclasses.replace(self, path=Path(path))

    def get_compressor(self) -> Compressor:
        if self.compressor is not None:
            return self.compressor
        return get_compressor(self.compression, self.compression_level)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base_dir: Optional[Path] = None) -> "StoreOptions":
        """Build options from a config mapping.

        Recognised keys: ``path``, ``compression_level`` (int or preset
        name), ``serializer`` (name, or a mapping with ``name`` plus
        serializer arguments) and ``compression`` (``brotli`` or ``none``).
        Relative paths resolve against ``base_dir`` when given.
        """
        path = Path(data.get("path") or DEFAULT_PATH)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        level = CompressionLevel.parse(data.get("compression_level"))

        ser_cfg = data.get("serializer") or "pickle"
        if isinstance(ser_cfg, Mapping):
            ser_args = dict(ser_cfg)
            ser_name = ser_args.pop("name", "pickle")
            serializer = get_serializer(ser_name, **ser_args)
        else:
            serializer = get_serializer(str(ser_cfg))

        compression = str(data.get("compression") or "brotli")
        return cls(path=path, compression_level=level, serializer=serializer, compression=compression)

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> "StoreOptions":
        config_path = Path(config_path)
        with config_path.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
        if not isinstance(cfg, Mapping):
            raise ValueError(f"{config_path}: expected a mapping at top level")
        return cls.from_mapping(cfg, base_dir=config_path.parent)
