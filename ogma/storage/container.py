"""On-disk container format for store files.

Layout::

    offset 0   4 bytes  magic identifier b"OGMA"
    offset 4   2 bytes  format version, unsigned little-endian
    offset 6   N bytes  compressed, serialized document

The document is ``{"Store": [{"Key": k, "Value": v}, ...]}``. Header
validation happens before any decompression so foreign or incompatible
files are rejected cheaply.

Writes go to a sibling ``<name>.tmp`` file which is flushed, fsynced and
then renamed over the destination, so readers only ever see the previous
complete file or the new complete file.
"""
from __future__ import annotations

import logging
import os
import struct
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

from ogma.errors import DecodeError, EncodeError, InvalidFileError, StoreError, StoreIOError, WrongVersionError
from ogma.storage.compression import READ_CHUNK_SIZE, BrotliCompressor, Compressor
from ogma.storage.hashing import HashingReader, HashingWriter
from ogma.storage.serializer import PickleSerializer, Serializer

logger = logging.getLogger(__name__)

MAGIC = b"OGMA"
VERSION = 2
TMP_SUFFIX = ".tmp"

_VERSION = struct.Struct("<H")
HEADER_SIZE = len(MAGIC) + _VERSION.size

DOCUMENT_FIELD = "Store"
KEY_FIELD = "Key"
VALUE_FIELD = "Value"

PathLike = Union[str, "os.PathLike[str]"]
BodyDecoder = Callable[[BinaryIO, Serializer, Compressor], List[Tuple[Any, Any]]]

# format version -> body decoder; only versions listed here can be opened
_BODY_DECODERS: Dict[int, BodyDecoder] = {}


def body_decoder(version: int) -> Callable[[BodyDecoder], BodyDecoder]:
    def register(fn: BodyDecoder) -> BodyDecoder:
        _BODY_DECODERS[version] = fn
        return fn

    return register


def supported_versions() -> List[int]:
    return sorted(_BODY_DECODERS)


def write_header(out: BinaryIO, version: int = VERSION) -> None:
    """Write magic + version to ``out``."""
    out.write(MAGIC + _VERSION.pack(version))


def read_header(inp: BinaryIO) -> int:
    """Read the 6-byte header and return the version after checking the magic."""
    header = inp.read(HEADER_SIZE)
    if header[: len(MAGIC)] != MAGIC or len(header) < HEADER_SIZE:
        raise InvalidFileError()
    (version,) = _VERSION.unpack(header[len(MAGIC):])
    return version


def validate_header(inp: BinaryIO) -> int:
    """Read the header and fail unless this build can decode the version."""
    version = read_header(inp)
    if version not in _BODY_DECODERS:
        raise WrongVersionError(expected=VERSION, actual=version)
    logger.debug("Store header ok (version %d)", version)
    return version


def make_document(pairs: Iterable[Tuple[Any, Any]]) -> Dict[str, Any]:
    """Build the wire document from (key, value) pairs without copying them."""
    return {DOCUMENT_FIELD: [{KEY_FIELD: key, VALUE_FIELD: value} for key, value in pairs]}


def document_pairs(document: Any) -> List[Tuple[Any, Any]]:
    """Return the (key, value) pairs of a decoded document, checking its shape."""
    if not isinstance(document, dict) or DOCUMENT_FIELD not in document:
        raise DecodeError(f"document is missing the {DOCUMENT_FIELD!r} field")
    records = document[DOCUMENT_FIELD]
    if not isinstance(records, list):
        raise DecodeError(f"{DOCUMENT_FIELD!r} must be a list, got {type(records).__name__}")
    pairs: List[Tuple[Any, Any]] = []
    for index, record in enumerate(records):
        if not isinstance(record, dict) or KEY_FIELD not in record or VALUE_FIELD not in record:
            raise DecodeError(f"record {index} must have {KEY_FIELD!r} and {VALUE_FIELD!r} fields")
        pairs.append((record[KEY_FIELD], record[VALUE_FIELD]))
    return pairs


def write_body(out: BinaryIO, document: Any, serializer: Serializer, compressor: Compressor) -> None:
    """Serialize ``document`` and stream it through ``compressor`` into ``out``."""
    try:
        payload = serializer.dump(document)
    except StoreError:
        raise
    except Exception as exc:
        raise EncodeError(f"{serializer.name} encoding failed: {exc}") from exc
    with compressor.writer(out) as writer:
        writer.write(payload)


@body_decoder(VERSION)
def _decode_v2(inp: BinaryIO, serializer: Serializer, compressor: Compressor) -> List[Tuple[Any, Any]]:
    payload = compressor.reader(inp).read()
    try:
        document = serializer.load(payload)
    except StoreError:
        raise
    except Exception as exc:
        raise DecodeError(f"{serializer.name} decoding failed: {exc}") from exc
    return document_pairs(document)


def temp_path_for(path: PathLike) -> Path:
    path = Path(path)
    return path.with_name(path.name + TMP_SUFFIX)


def _discard(tmp: Path) -> None:
    try:
        tmp.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove temporary file %s: %s", tmp, exc)


def _fsync_dir(directory: Path) -> None:
    if os.name == "nt":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_save(path: PathLike, write_fn: Callable[[BinaryIO], None]) -> str:
    """Write header + body to a temp file and rename it over ``path``.

    ``write_fn`` receives the stream positioned right after the header and
    writes the body. On any failure before the rename the temp file is
    removed and ``path`` is left exactly as it was.

    Returns the hex BLAKE2b digest of the bytes written.
    """
    path = Path(path)
    tmp = temp_path_for(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "wb") as f:
            out = HashingWriter(f)
            write_header(out)
            write_fn(out)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
        _fsync_dir(path.parent)
    except OSError as exc:
        _discard(tmp)
        logger.warning("Saving %s failed: %s", path, exc)
        raise StoreIOError.from_os_error(exc, "save") from exc
    except BaseException as exc:
        _discard(tmp)
        logger.warning("Saving %s failed: %s", path, exc)
        raise
    digest = out.hexdigest()
    logger.debug("Wrote %s (blake2b %s)", path, digest)
    return digest


class LoadedDocument(NamedTuple):
    pairs: List[Tuple[Any, Any]]
    # BLAKE2b of the file as read, None when there was no file
    digest: Optional[str]


def read_document(
    path: PathLike,
    serializer: Serializer,
    compressor: Compressor,
) -> LoadedDocument:
    """Validate the header of an existing file and decode its pairs."""
    try:
        with open(path, "rb") as f:
            inp = HashingReader(f)
            version = validate_header(inp)
            pairs = _BODY_DECODERS[version](inp, serializer, compressor)
            while inp.read(READ_CHUNK_SIZE):
                pass
    except OSError as exc:
        raise StoreIOError.from_os_error(exc, "open") from exc
    digest = inp.hexdigest()
    logger.debug("Read %s (blake2b %s)", path, digest)
    return LoadedDocument(pairs, digest)


def open_or_default(
    path: PathLike,
    serializer: Optional[Serializer] = None,
    compressor: Optional[Compressor] = None,
) -> LoadedDocument:
    """Return the stored pairs, or no pairs when ``path`` is not a regular file."""
    path = Path(path)
    if not path.is_file():
        logger.debug("No store file at %s, starting empty", path)
        return LoadedDocument([], None)
    return read_document(path, serializer or PickleSerializer(), compressor or BrotliCompressor())
