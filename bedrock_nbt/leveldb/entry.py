from dataclasses import dataclass, field
from typing import Optional

from bedrock_nbt.errors import NbtError, NbtTypeError, EntryDecodeError
from bedrock_nbt.leveldb.build import Build
from bedrock_nbt.leveldb.key import DBKey, KeyVariant, classify
from bedrock_nbt.leveldb.parse import Parse
from bedrock_nbt.leveldb.registry import REGISTRY
from bedrock_nbt.logger import logger as l
from bedrock_nbt.options import NbtOptions, Flavor, RootPolicy, Compression, BEDROCK_OPTIONS

logger = l.create_sub_logger("leveldb")


@dataclass
class Entry:
    """A recognised key and its decoded value."""
    key: DBKey
    value: object

    @property
    def variant(self) -> KeyVariant:
        return self.key.variant


@dataclass
class RawEntry:
    """A key that matched no known layout; both halves are kept verbatim."""
    key: bytes
    value: bytes

    @property
    def variant(self) -> KeyVariant:
        return KeyVariant.UNKNOWN


@dataclass
class RawValue:
    """A recognised key whose value could not be decoded, kept as raw bytes."""
    key: DBKey
    value: bytes
    error: Optional[Exception] = field(default=None, compare=False, repr=False)

    @property
    def variant(self) -> KeyVariant:
        return self.key.variant


def _disk_options(options: NbtOptions) -> NbtOptions:
    return options.but(flavor=Flavor.BEDROCK, root_policy=RootPolicy.NAMED_COMPOUND_ONLY, compression=Compression.NONE)


def decode(key: bytes, value: bytes, lenient: bool = False, options: NbtOptions = BEDROCK_OPTIONS):
    """
    Decodes one LevelDB record.

    Returns a `RawEntry` for unrecognised keys and an `Entry` otherwise. A value that
    does not fit its key's layout raises `EntryDecodeError`, or with `lenient` comes
    back as a `RawValue` so nothing is lost.
    """
    key = bytes(key)
    db_key = classify(key)
    if db_key.variant is KeyVariant.UNKNOWN:
        return RawEntry(key, bytes(value))

    codec = REGISTRY[db_key.variant]
    try:
        with Parse(value, _disk_options(options)) as p:
            payload = codec.read(p)
            p.expect_end()
    except (NbtError, ValueError) as e:
        if not lenient:
            raise EntryDecodeError(key, db_key.variant, e) from e
        logger.warn(f"Keeping raw {db_key.variant.value} value for key {key[:100]!r}: {e}")
        return RawValue(db_key, bytes(value), e)
    return Entry(db_key, payload)


def encode(entry, options: NbtOptions = BEDROCK_OPTIONS):
    """Returns the (key, value) bytes for an `Entry`, `RawEntry` or `RawValue`."""
    if isinstance(entry, RawEntry):
        return bytes(entry.key), bytes(entry.value)
    if isinstance(entry, RawValue):
        return entry.key.to_bytes(), bytes(entry.value)

    codec = REGISTRY[entry.variant]
    if not isinstance(entry.value, codec.payload):
        raise NbtTypeError(f"{entry.variant.value} entries cannot hold a {type(entry.value).__name__}")
    with Build(_disk_options(options)) as b:
        codec.write(b, entry.value)
        value = b.get()
    return entry.key.to_bytes(), value
