"""Typed key-value store persisted to a single container file.

A `Store` is a plain in-memory mapping. Nothing touches the disk except
`Store.open` and `Store.save`; dropping a store without saving discards
its changes.

Example::

    store: Store[int, Person] = Store(StoreOptions("people.ogma"), int, Person)
    store.set(5, person)
    store.save()

    again = Store.open(StoreOptions("people.ogma"), int, Person)
    assert again.get(5) == person
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Generic, Hashable, ItemsView, Iterator, KeysView, Optional, TypeVar, ValuesView

from pydantic import TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError
from pydantic_core import PydanticSerializationError

from ogma.errors import DecodeError, EncodeError
from ogma.storage import container
from ogma.storage.options import StoreOptions

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class Store(Generic[K, V]):
    """Mapping from unique keys to values with explicit `save`/`open`.

    ``key_type`` and ``value_type`` matter only for plain codecs (JSON,
    YAML, msgpack). There they drive the conversion to plain data before
    saving and the validation back into those types after loading, which
    is how such stores get dataclasses or models back. A save refuses any
    entry whose plain form would not load back equal to it, e.g. a tuple
    or datetime in an untyped JSON store.

    With pickle the types are informational: objects round-trip as they
    are, including classes pydantic knows nothing about.

    Not thread-safe; callers arrange exclusive access for mutation.
    """

    def __init__(self, options: Optional[StoreOptions] = None, key_type: Any = Any, value_type: Any = Any) -> None:
        self._options = options or StoreOptions()
        self._key_type = key_type
        self._value_type = value_type
        # built on first use by a plain codec
        self._adapters: Dict[str, TypeAdapter] = {}
        self._map: Dict[K, V] = {}
        self._digest: Optional[str] = None

    @classmethod
    def new(cls, options: Optional[StoreOptions] = None, key_type: Any = Any, value_type: Any = Any) -> "Store[K, V]":
        """Return an empty store; never fails and never touches the disk."""
        return cls(options, key_type, value_type)

    @classmethod
    def open(cls, options: Optional[StoreOptions] = None, key_type: Any = Any, value_type: Any = Any) -> "Store[K, V]":
        """Load the store at ``options.path``, or an empty one if there is no file.

        Raises `InvalidFileError`, `WrongVersionError`, `DecodeError` or
        `StoreIOError`.
        """
        store = cls(options, key_type, value_type)
        opts = store._options
        loaded = container.open_or_default(opts.path, opts.serializer, opts.get_compressor())
        for raw_key, raw_value in loaded.pairs:
            key, value = store._decode_record(raw_key, raw_value)
            # later duplicates win, like repeated dict assignment
            store._map[key] = value
        store._digest = loaded.digest
        logger.info("Opened store %s (%d entries)", opts.path, len(store._map))
        return store

    def _adapter(self, role: str) -> TypeAdapter:
        adapter = self._adapters.get(role)
        if adapter is None:
            adapter = TypeAdapter(self._key_type if role == "key" else self._value_type)
            self._adapters[role] = adapter
        return adapter

    def _decode_record(self, raw_key: Any, raw_value: Any) -> tuple:
        key, value = raw_key, raw_value
        if self._options.serializer.plain:
            try:
                key = self._adapter("key").validate_python(raw_key)
                value = self._adapter("value").validate_python(raw_value)
            except ValidationError as exc:
                raise DecodeError(f"record does not match the store types: {exc}") from exc
            except PydanticSchemaGenerationError as exc:
                raise DecodeError(f"{self._options.serializer.name} cannot decode these types: {exc}") from exc
        try:
            hash(key)
        except TypeError as exc:
            raise DecodeError(f"decoded key {key!r} is not hashable") from exc
        return key, value

    def _to_plain(self, role: str, obj: Any) -> Any:
        adapter = self._adapter(role)
        plain = adapter.dump_python(obj, mode="json")
        if adapter.validate_python(plain) != obj:
            raise EncodeError(
                f"{role} {obj!r} would not load back unchanged from {self._options.serializer.name}; "
                "declare key/value types or use the pickle serializer"
            )
        return plain

    def _document(self) -> Any:
        pairs = self._map.items()
        if not self._options.serializer.plain:
            return container.make_document(pairs)
        try:
            return container.make_document((self._to_plain("key", k), self._to_plain("value", v)) for k, v in pairs)
        except (PydanticSerializationError, PydanticSchemaGenerationError, ValueError, TypeError) as exc:
            raise EncodeError(f"cannot convert store entries for {self._options.serializer.name}: {exc}") from exc

    def save(self) -> str:
        """Persist the whole map atomically.

        Returns the BLAKE2b digest of the written file. On failure the
        previously saved file is unchanged. Raises `StoreIOError` or
        `EncodeError`.
        """
        opts = self._options
        document = self._document()
        digest = container.atomic_save(
            opts.path,
            lambda out: container.write_body(out, document, opts.serializer, opts.get_compressor()),
        )
        self._digest = digest
        logger.info("Saved store %s (%d entries)", opts.path, len(self._map))
        return digest

    @property
    def options(self) -> StoreOptions:
        return self._options

    @property
    def digest(self) -> Optional[str]:
        """BLAKE2b of the file as last opened or saved; None if neither happened."""
        return self._digest

    def get(self, key: K) -> Optional[V]:
        return self._map.get(key)

    def get_mut(self, key: K) -> Optional[V]:
        """Return the stored object itself so it can be mutated in place."""
        return self._map.get(key)

    def contains_key(self, key: K) -> bool:
        return key in self._map

    def set(self, key: K, value: V) -> Optional[V]:
        """Insert or replace; return the previous value, or None for a new key.

        A key that held None also returns None. Check `contains_key` first
        when stored Nones must be told apart from new keys.
        """
        previous = self._map.get(key)
        self._map[key] = value
        return previous

    def delete(self, key: K) -> Optional[V]:
        """Remove ``key``; return its value, or None if it was absent.

        Like `set`, a removed None is indistinguishable from a missing key;
        `pop` raises `KeyError` instead.
        """
        return self._map.pop(key, None)

    def pop(self, key: K, default: Any = _MISSING) -> V:
        """Remove ``key`` and return its value; `KeyError` if absent and no default."""
        if default is _MISSING:
            return self._map.pop(key)
        return self._map.pop(key, default)

    def clear(self) -> None:
        self._map.clear()

    def len(self) -> int:
        return len(self._map)

    def is_empty(self) -> bool:
        return not self._map

    def keys(self) -> KeysView[K]:
        return self._map.keys()

    def values(self) -> ValuesView[V]:
        return self._map.values()

    def values_mut(self) -> ValuesView[V]:
        # values are live objects; mutating them mutates the store
        return self._map.values()

    def items(self) -> ItemsView[K, V]:
        return self._map.items()

    def __len__(self) -> int:
        return len(self._map)

    def __contains__(self, key: object) -> bool:
        return key in self._map

    def __iter__(self) -> Iterator[K]:
        return iter(self._map)

    def __getitem__(self, key: K) -> V:
        return self._map[key]

    def __setitem__(self, key: K, value: V) -> None:
        self._map[key] = value

    def __delitem__(self, key: K) -> None:
        del self._map[key]

    def __repr__(self) -> str:
        return f"Store(path={str(self._options.path)!r}, entries={len(self._map)})"
