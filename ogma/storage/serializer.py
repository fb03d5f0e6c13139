"""Serializers turning the store document into bytes and back.

Pickle is the default. JSON, YAML and msgpack only carry plain data, and
`EncryptedSerializer` wraps any of them with Fernet.
"""
from __future__ import annotations

from typing import Any, Protocol
import base64
import json
import os
import pickle
import struct

import msgpack
import yaml


class Serializer(Protocol):
    """Encode/decode the store document to and from bytes.

    Implementations must round-trip values: ``load(dump(v)) == v``. The
    bytes themselves need not be stable across runs.

    ``plain`` tells the store whether the codec only understands primitive
    structures (dicts, lists, str, numbers, bool, None). For plain codecs
    the store converts keys and values to JSON-compatible data before
    ``dump`` and validates them back into their declared types after
    ``load``.
    """

    name: str
    plain: bool

    def dump(self, value: Any) -> bytes: ...

    def load(self, data: bytes) -> Any: ...


class PickleSerializer:
    """Default serializer using pickle (binary).

    Stored keys and values may be arbitrary picklable Python objects, so
    this works without declaring types on the store. Only open files you
    trust: unpickling can execute code.
    """

    name = "pickle"
    plain = False

    def dump(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)

    def load(self, data: bytes) -> Any:
        return pickle.loads(data)


class JSONSerializer:
    """Serializer using JSON (UTF-8 text)."""

    name = "json"
    plain = True

    def dump(self, value: Any) -> bytes:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def load(self, data: bytes) -> Any:
        return json.loads(data.decode("utf-8"))


class YAMLSerializer:
    """Serializer using YAML (text). Only safe tags are emitted and accepted."""

    name = "yaml"
    plain = True

    def dump(self, value: Any) -> bytes:
        return yaml.safe_dump(value, allow_unicode=True, sort_keys=False).encode("utf-8")

    def load(self, data: bytes) -> Any:
        return yaml.safe_load(data.decode("utf-8"))


class MsgpackSerializer:
    """Compact binary serializer using MessagePack."""

    name = "msgpack"
    plain = True

    def dump(self, value: Any) -> bytes:
        return msgpack.packb(value, use_bin_type=True)

    def load(self, data: bytes) -> Any:
        return msgpack.unpackb(data, raw=False, strict_map_key=False)


class EncryptedSerializer:
    """Serializer that encrypts another serializer's output with Fernet.

    Two modes are supported:

    - ``key``: a Fernet key (``Fernet.generate_key()``) used directly.
    - ``password``: a passphrase; every payload gets a fresh random salt and
      the key is derived with PBKDF2-SHA256.

    Frame layout: one mode byte (``K`` or ``P``); in password mode followed
    by a big-endian u32 iteration count and the 16-byte salt; then the
    Fernet token.
    """

    name = "encrypted"

    _MODE_KEY = b"K"
    _MODE_PASSWORD = b"P"
    _SALT_SIZE = 16

    def __init__(
        self,
        *,
        key: bytes | None = None,
        password: str | None = None,
        iterations: int = 390000,
        base_serializer: Serializer | None = None,
    ) -> None:
        if key is None and password is None:
            raise ValueError("EncryptedSerializer requires either `key` or `password`")
        self._key = key
        self._password = password
        self._iterations = iterations
        self.base_serializer = base_serializer or PickleSerializer()

    @property
    def plain(self) -> bool:
        return self.base_serializer.plain

    @staticmethod
    def _derive_key(password: str, salt: bytes, iterations: int) -> bytes:
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

        kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations)
        return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))

    def dump(self, value: Any) -> bytes:
        from cryptography.fernet import Fernet

        inner = self.base_serializer.dump(value)
        if self._password is not None:
            salt = os.urandom(self._SALT_SIZE)
            token = Fernet(self._derive_key(self._password, salt, self._iterations)).encrypt(inner)
            return self._MODE_PASSWORD + struct.pack(">I", self._iterations) + salt + token
        token = Fernet(self._key).encrypt(inner)
        return self._MODE_KEY + token

    def load(self, data: bytes) -> Any:
        from cryptography.fernet import Fernet

        mode, body = data[:1], data[1:]
        if mode == self._MODE_PASSWORD:
            if self._password is None:
                raise ValueError("payload is password-encrypted but no password was configured")
            header_size = 4 + self._SALT_SIZE
            if len(body) < header_size:
                raise ValueError("encrypted frame is truncated")
            (iterations,) = struct.unpack(">I", body[:4])
            salt = body[4:header_size]
            key = self._derive_key(self._password, salt, iterations)
            inner = Fernet(key).decrypt(body[header_size:])
        elif mode == self._MODE_KEY:
            if self._key is None:
                raise ValueError("payload is key-encrypted but no key was configured")
            inner = Fernet(self._key).decrypt(body)
        else:
            raise ValueError("unknown encrypted frame format")
        return self.base_serializer.load(inner)


_SERIALIZERS = {
    "pickle": PickleSerializer,
    "json": JSONSerializer,
    "yaml": YAMLSerializer,
    "msgpack": MsgpackSerializer,
}
_ENCRYPTED_OPTIONS = {"base", "key", "password", "iterations"}


def get_serializer(name: str, **kwargs: Any) -> Serializer:
    """Return a serializer by configuration name.

    ``encrypted`` accepts ``key``/``password``/``iterations`` and an optional
    ``base`` naming the inner serializer (default ``pickle``).
    """
    key = (name or "pickle").strip().lower()
    if key == "encrypted":
        unknown = set(kwargs) - _ENCRYPTED_OPTIONS
        if unknown:
            raise ValueError(f"unexpected options for serializer {name!r}: {sorted(unknown)}")
        base = get_serializer(kwargs.pop("base", "pickle"))
        return EncryptedSerializer(base_serializer=base, **kwargs)
    if kwargs:
        raise ValueError(f"serializer {name!r} takes no options, got {sorted(kwargs)}")
    try:
        return _SERIALIZERS[key]()
    except KeyError:
        raise ValueError(
            f"unknown serializer {name!r}; expected one of {sorted([*_SERIALIZERS, 'encrypted'])}"
        ) from None
