import gzip
import struct
import zlib

from bedrock_nbt.binary.build import Build
from bedrock_nbt.binary.parse import Parse
from bedrock_nbt.errors import NbtIoError, RootPolicyViolation
from bedrock_nbt.options import NbtOptions, Flavor, RootPolicy, Compression, DEFAULT_OPTIONS
from bedrock_nbt.tag import NbtTag, TagId

def _options(options: NbtOptions, flavor: Flavor) -> NbtOptions:
    if flavor is not None and flavor is not options.flavor:
        return options.but(flavor=flavor)
    return options


def detect_compression(data) -> Compression:
    if data[:2] == b"\x1f\x8b":
        return Compression.GZIP
    # zlib header: CMF 0x78 and a CMF/FLG pair divisible by 31
    if len(data) >= 2 and data[0] == 0x78 and (data[0] << 8 | data[1]) % 31 == 0:
        return Compression.ZLIB
    return Compression.NONE


def decompress(data, compression: Compression):
    try:
        if compression is Compression.GZIP:
            return gzip.decompress(data)
        if compression is Compression.ZLIB:
            return zlib.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise NbtIoError(f"Failed to decompress {compression.value} data: {e}") from None
    return data


def compress(data: bytes, compression: Compression) -> bytes:
    if compression is Compression.GZIP:
        return gzip.compress(data)
    if compression is Compression.ZLIB:
        return zlib.compress(data)
    return data


def decode_prefix(data, offset: int = 0, options: NbtOptions = DEFAULT_OPTIONS, flavor: Flavor = None):
    """Reads one root tag starting at offset. Returns (name, tag, new_offset); no compression here."""
    options = _options(options, flavor)
    with Parse(data, options.flavor, options.depth_limit, options.preserve_order, offset, options.allow_invalid_strings) as p:
        name, tag = p.root(options.root_policy)
        return name, tag, p.offset


def decode(data, options: NbtOptions = DEFAULT_OPTIONS, flavor: Flavor = None):
    """
    Decodes a complete binary NBT document. Returns (name, tag).

    Trailing bytes after the root are an error; use `decode_prefix` or `decode_many` for streams.
    """
    options = _options(options, flavor)
    data = decompress(data, options.compression)
    name, tag, offset = decode_prefix(data, 0, options)
    if offset != len(data):
        raise NbtIoError(f"{len(data) - offset} trailing bytes after root tag", offset)
    return name, tag


def decode_many(data, options: NbtOptions = DEFAULT_OPTIONS, flavor: Flavor = None) -> list:
    """Decodes back-to-back root tags until the input is exhausted. Returns [(name, tag), ...]."""
    options = _options(options, flavor)
    data = decompress(data, options.compression)
    result = []
    offset = 0
    while offset < len(data):
        name, tag, offset = decode_prefix(data, offset, options)
        result.append((name, tag))
    return result


def encode(tag: NbtTag, name: str = "", options: NbtOptions = DEFAULT_OPTIONS, flavor: Flavor = None) -> bytes:
    options = _options(options, flavor)
    with Build(options.flavor, options.depth_limit, options.allow_invalid_strings) as b:
        b.root(tag, name, options.root_policy)
        data = b.get()
    return compress(data, options.compression)


def encode_many(pairs, options: NbtOptions = DEFAULT_OPTIONS, flavor: Flavor = None) -> bytes:
    options = _options(options, flavor)
    with Build(options.flavor, options.depth_limit, options.allow_invalid_strings) as b:
        for name, tag in pairs:
            b.root(tag, name, options.root_policy)
        data = b.get()
    return compress(data, options.compression)


def read_named_root(data, options: NbtOptions = DEFAULT_OPTIONS, flavor: Flavor = None):
    """Reads the usual file form: a named root Compound. Returns (name, tag)."""
    return decode(data, _options(options, flavor).but(root_policy=RootPolicy.NAMED_COMPOUND_ONLY))


def write_named_root(name: str, compound: NbtTag, options: NbtOptions = DEFAULT_OPTIONS, flavor: Flavor = None) -> bytes:
    if compound.id != TagId.COMPOUND:
        raise RootPolicyViolation(f"Root must be a Compound, got {compound.id.label}")
    return encode(compound, name, _options(options, flavor).but(root_policy=RootPolicy.NAMED_COMPOUND_ONLY))


#-----------------------------------------------------------
# Bedrock level.dat: i32 storage version, i32 payload length, then little-endian NBT

BEDROCK_HEADER = struct.Struct("<iI")


def read_bedrock_header(data):
    """Returns (storage_version, payload_length, header_size)."""
    if len(data) < BEDROCK_HEADER.size:
        raise NbtIoError("Unexpected end of data while reading Bedrock header", 0)
    version, length = BEDROCK_HEADER.unpack_from(data, 0)
    return version, length, BEDROCK_HEADER.size


def write_bedrock_header(version: int, payload: bytes) -> bytes:
    return BEDROCK_HEADER.pack(version, len(payload)) + payload


def read_level_dat(data, options: NbtOptions = DEFAULT_OPTIONS):
    """Returns (storage_version, name, tag) from a Bedrock level.dat file."""
    version, length, offset = read_bedrock_header(data)
    payload = data[offset:]
    if len(payload) != length:
        raise NbtIoError(f"Header says {length} payload bytes, found {len(payload)}", offset)
    name, tag = read_named_root(payload, options.but(compression=Compression.NONE), Flavor.BEDROCK)
    return version, name, tag


def write_level_dat(version: int, name: str, compound: NbtTag, options: NbtOptions = DEFAULT_OPTIONS) -> bytes:
    payload = write_named_root(name, compound, options.but(compression=Compression.NONE), Flavor.BEDROCK)
    return write_bedrock_header(version, payload)
