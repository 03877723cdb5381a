"""
Value layouts for the records Bedrock keeps in its LevelDB database.

Every layout is a `read_*` function taking a `Parse` cursor and a `write_*` function
taking a `Build` writer. Readers raise `ValueError` (or an `NbtError` from the cursor)
when the bytes do not fit the layout; the caller checks that all input was consumed.
"""
from array import array
from dataclasses import dataclass, field
from enum import IntEnum
from typing import NamedTuple, Optional
import re

from bedrock_nbt.leveldb.key import ActorID
from bedrock_nbt.leveldb.palette import PalettedStorage
from bedrock_nbt.tag import NbtTag

MAX_CHUNK_VERSION = 41
COLUMNS = 256
LEGACY_SUBCHUNK_VERSIONS = (0, 2, 3, 4, 5, 6, 7)
NIBBLES = 2048

LAYER_NUMBER = re.compile(r"^(0|[1-9][0-9]*)\Z")


class NamedTag(NamedTuple):
    """A root compound together with the (usually empty) name it was stored under."""
    name: str
    tag: NbtTag


def _named(entry) -> NamedTag:
    if isinstance(entry, NbtTag):
        return NamedTag("", entry)
    return NamedTag(*entry)


#-----------------------------------------------------------
# Single numbers

def read_chunk_version(p) -> int:
    version = p.u8()
    if version > MAX_CHUNK_VERSION:
        raise ValueError(f"Unknown chunk version {version}")
    return version


def write_chunk_version(b, version: int):
    if not 0 <= version <= MAX_CHUNK_VERSION:
        raise ValueError(f"Unknown chunk version {version}")
    b.u8(version)


def read_actor_digest_version(p) -> int:
    version = p.u8()
    if version != 0:
        raise ValueError(f"Unknown actor digest version {version}")
    return version


def write_actor_digest_version(b, version: int):
    if version != 0:
        raise ValueError(f"Unknown actor digest version {version}")
    b.u8(version)


def read_u64(p) -> int:
    return p.u64()


def write_u64(b, value: int):
    b.u64(value)


class FinalizedState(IntEnum):
    NEEDS_INSTATICKING = 0
    NEEDS_POPULATION = 1
    DONE = 2


def read_finalized_state(p) -> FinalizedState:
    return FinalizedState(p.u32())


def write_finalized_state(b, state):
    b.u32(FinalizedState(state))


#-----------------------------------------------------------
# Heightmaps and biomes

def _read_heightmap(p) -> array:
    return p.u16_array(COLUMNS)


def _write_heightmap(b, heightmap):
    if len(heightmap) != COLUMNS:
        raise ValueError(f"Heightmap needs {COLUMNS} entries, got {len(heightmap)}")
    b.u16_array(heightmap)


def _read_biome_palette(p, count: int) -> list:
    return list(p.u32_array(count))


def _write_biome_palette(b, palette):
    b.u32_array(palette)


@dataclass
class Data3D:
    heightmap: array
    # One storage per subchunk from the bottom of the world up
    biomes: list = field(default_factory=list)


def read_data_3d(p) -> Data3D:
    heightmap = _read_heightmap(p)
    biomes = []
    while not p.at_end():
        storage = PalettedStorage.read(p, _read_biome_palette)
        if not storage.runtime:
            raise ValueError(f"Biome storage {len(biomes)} does not use a runtime palette")
        biomes.append(storage)
    return Data3D(heightmap, biomes)


def write_data_3d(b, value: Data3D):
    _write_heightmap(b, value.heightmap)
    for storage in value.biomes:
        if not storage.runtime:
            raise ValueError("Data3D biome storages must use runtime palettes")
        storage.write(b, _write_biome_palette)


@dataclass
class Data2D:
    heightmap: array
    biomes: bytes


def read_data_2d(p) -> Data2D:
    return Data2D(_read_heightmap(p), p.raw(COLUMNS))


def write_data_2d(b, value: Data2D):
    if len(value.biomes) != COLUMNS:
        raise ValueError(f"Data2D needs {COLUMNS} biome ids, got {len(value.biomes)}")
    _write_heightmap(b, value.heightmap)
    b.raw(bytes(value.biomes))


class ColumnBiome(NamedTuple):
    biome: int
    red: int
    green: int
    blue: int


@dataclass
class LegacyData2D:
    heightmap: array
    biomes: list


def read_legacy_data_2d(p) -> LegacyData2D:
    heightmap = _read_heightmap(p)
    data = p.raw(COLUMNS * 4)
    biomes = [ColumnBiome(*data[i:i + 4]) for i in range(0, len(data), 4)]
    return LegacyData2D(heightmap, biomes)


def write_legacy_data_2d(b, value: LegacyData2D):
    if len(value.biomes) != COLUMNS:
        raise ValueError(f"LegacyData2D needs {COLUMNS} column biomes, got {len(value.biomes)}")
    _write_heightmap(b, value.heightmap)
    b.raw(bytes(byte for column in value.biomes for byte in column))


class BiomeState(NamedTuple):
    """(biome id, state) pairs. `wide` entries use u16 ids and a u16 count."""
    entries: list
    wide: bool = False


def read_biome_state(p) -> BiomeState:
    data = p.rest()
    if data and len(data) == 1 + 2 * data[0]:
        return BiomeState([(data[i], data[i + 1]) for i in range(1, len(data), 2)])
    if len(data) >= 2:
        count = int.from_bytes(data[:2], "little")
        if len(data) == 2 + 3 * count:
            entries = [(int.from_bytes(data[i:i + 2], "little"), data[i + 2]) for i in range(2, len(data), 3)]
            return BiomeState(entries, wide=True)
    raise ValueError(f"BiomeState of length {len(data)} matches neither entry width")


def write_biome_state(b, value: BiomeState):
    if value.wide:
        b.u16(len(value.entries))
        for biome, state in value.entries:
            b.u16(biome)
            b.u8(state)
    else:
        b.u8(len(value.entries))
        for biome, state in value.entries:
            b.u8(biome)
            b.u8(state)


#-----------------------------------------------------------
# Subchunk blocks

@dataclass
class LegacySubchunk:
    version: int
    block_ids: bytes
    # 4096 four-bit values each
    block_data: bytes
    skylight: Optional[bytes] = None
    blocklight: Optional[bytes] = None


@dataclass
class Subchunk:
    """Paletted block layers; version 1 holds one layer, 9 also stores its own y index."""
    version: int
    layers: list = field(default_factory=list)
    y_index: Optional[int] = None


def _read_block_palette(p, count: int) -> list:
    return [NamedTag(*p.compound(allow_invalid_strings=True)) for _ in range(count)]


def _write_block_palette(b, palette):
    for entry in palette:
        b.compound(*_named(entry), allow_invalid_strings=True)


def _read_layer(p) -> PalettedStorage:
    layer = PalettedStorage.read(p, _read_block_palette)
    if layer.runtime:
        raise ValueError("Block layers on disk must use a persistent palette")
    if layer.is_empty:
        raise ValueError("Block layers cannot be empty")
    return layer


def _read_legacy_subchunk(p, version: int) -> LegacySubchunk:
    extra = p.remaining() - 4096 - NIBBLES
    if extra not in (0, NIBBLES, 2 * NIBBLES):
        raise ValueError(f"Legacy subchunk has invalid length {p.remaining() + 1}")
    block_ids = p.raw(4096)
    block_data = p.raw(NIBBLES)
    skylight = p.raw(NIBBLES) if extra else None
    blocklight = p.raw(NIBBLES) if extra == 2 * NIBBLES else None
    return LegacySubchunk(version, block_ids, block_data, skylight, blocklight)


def read_subchunk(p):
    version = p.u8()
    if version in LEGACY_SUBCHUNK_VERSIONS:
        return _read_legacy_subchunk(p, version)
    if version == 1:
        return Subchunk(1, [_read_layer(p)])
    if version == 8:
        count = p.u8()
        return Subchunk(8, [_read_layer(p) for _ in range(count)])
    if version == 9:
        count = p.u8()
        y_index = p.i8()
        return Subchunk(9, [_read_layer(p) for _ in range(count)], y_index)
    raise ValueError(f"Unknown subchunk version {version}")


def _write_legacy_subchunk(b, value: LegacySubchunk):
    if value.version not in LEGACY_SUBCHUNK_VERSIONS:
        raise ValueError(f"{value.version} is not a legacy subchunk version")
    if len(value.block_ids) != 4096 or len(value.block_data) != NIBBLES:
        raise ValueError("Legacy subchunks need 4096 block ids and 2048 bytes of block data")
    b.u8(value.version)
    b.raw(value.block_ids)
    b.raw(value.block_data)
    if value.skylight is not None or value.blocklight is not None:
        b.raw(value.skylight if value.skylight is not None else bytes(NIBBLES))
    if value.blocklight is not None:
        b.raw(value.blocklight)


def write_subchunk(b, value):
    if isinstance(value, LegacySubchunk):
        _write_legacy_subchunk(b, value)
        return
    if value.version == 1 and len(value.layers) != 1:
        raise ValueError(f"Version 1 subchunks hold exactly one layer, got {len(value.layers)}")
    if value.version == 9 and value.y_index is None:
        raise ValueError("Version 9 subchunks need a y index")
    if value.version not in (1, 8, 9):
        raise ValueError(f"Unknown subchunk version {value.version}")
    b.u8(value.version)
    if value.version != 1:
        b.u8(len(value.layers))
    if value.version == 9:
        b.i8(value.y_index)
    for layer in value.layers:
        if layer.runtime or layer.is_empty:
            raise ValueError("Block layers on disk must be persistent and non-empty")
        layer.write(b, _write_block_palette)


#-----------------------------------------------------------
# NBT records

def read_compound(p) -> NamedTag:
    return NamedTag(*p.compound())


def write_compound(b, value):
    b.compound(*_named(value))


def read_compounds(p) -> list:
    """Back-to-back named compounds, as block entities and entities are stored."""
    result = []
    while not p.at_end():
        result.append(NamedTag(*p.compound(allow_invalid_strings=True)))
    return result


def write_compounds(b, value):
    for entry in value:
        b.compound(*_named(entry), allow_invalid_strings=True)


def read_meta_data_dictionary(p) -> dict:
    count = p.u32()
    result = {}
    for _ in range(count):
        meta_hash = p.u64()
        if meta_hash in result:
            raise ValueError(f"Duplicate metadata hash {meta_hash:#018x}")
        result[meta_hash] = NamedTag(*p.compound())
    return result


def write_meta_data_dictionary(b, value: dict):
    b.u32(len(value))
    for meta_hash, entry in value.items():
        b.u64(meta_hash)
        b.compound(*_named(entry))


#-----------------------------------------------------------
# Small binary records

class BorderColumn(NamedTuple):
    x: int
    z: int


def read_border_blocks(p) -> list:
    if p.at_end():
        return []
    count = p.u8() or 256
    return [BorderColumn(column & 0xF, column >> 4) for column in p.raw(count)]


def write_border_blocks(b, value):
    # An empty list is stored as no bytes at all
    if not value:
        return
    if len(value) > 256:
        raise ValueError(f"At most 256 border columns, got {len(value)}")
    for x, z in value:
        if not (0 <= x < 16 and 0 <= z < 16):
            raise ValueError(f"Border column ({x}, {z}) is outside the chunk")
    b.u8(len(value) & 0xFF)
    b.raw(bytes((z << 4) | x for x, z in value))


class SpawnerType(IntEnum):
    NETHER_FORTRESS = 1
    WITCH_HUT = 2
    OCEAN_MONUMENT = 3
    LEGACY_VILLAGE_CAT = 4
    PILLAGER_OUTPOST = 5
    NEWER_LEGACY_VILLAGE_CAT = 6


class HardcodedSpawner(NamedTuple):
    low: tuple
    high: tuple
    kind: SpawnerType


def _check_volume(low, high):
    if not all(a <= b for a, b in zip(low, high)):
        raise ValueError(f"Invalid spawner volume {low} .. {high}")


def read_hardcoded_spawners(p) -> list:
    count = p.u32()
    if p.remaining() != count * 25:
        raise ValueError(f"{count} spawners need {count * 25} bytes, found {p.remaining()}")
    result = []
    for _ in range(count):
        low = (p.i32(), p.i32(), p.i32())
        high = (p.i32(), p.i32(), p.i32())
        _check_volume(low, high)
        result.append(HardcodedSpawner(low, high, SpawnerType(p.u8())))
    return result


def write_hardcoded_spawners(b, value):
    b.u32(len(value))
    for low, high, kind in value:
        _check_volume(low, high)
        for coord in (*low, *high):
            b.i32(coord)
        b.u8(SpawnerType(kind))


class Checksum(NamedTuple):
    """xxHash64 of another record in the same chunk; `subtag` is the subchunk y for tag 47."""
    tag: int
    subtag: int
    hash: int


def _check_checksum_target(tag: int, subtag: int):
    if tag == 47 or (tag in (45, 49, 50) and subtag == 0):
        return
    raise ValueError(f"Checksum for unsupported record ({tag}, {subtag})")


def read_checksums(p) -> list:
    count = p.u32()
    if p.remaining() != count * 11:
        raise ValueError(f"{count} checksums need {count * 11} bytes, found {p.remaining()}")
    result = []
    for _ in range(count):
        checksum = Checksum(p.u16(), p.i8(), p.u64())
        _check_checksum_target(checksum.tag, checksum.subtag)
        result.append(checksum)
    return result


def write_checksums(b, value):
    b.u32(len(value))
    for tag, subtag, checksum in value:
        _check_checksum_target(tag, subtag)
        b.u16(tag)
        b.i8(subtag)
        b.u64(checksum)


def read_actor_digest(p) -> list:
    if p.remaining() % 8:
        raise ValueError(f"Actor digest length {p.remaining()} is not a multiple of 8")
    return [ActorID.parse(p.raw(8)) for _ in range(p.remaining() // 8)]


def write_actor_digest(b, value):
    for actor in value:
        b.raw(ActorID(*actor).to_bytes())


#-----------------------------------------------------------
# Text records

def read_flat_world_layers(p) -> list:
    text = p.rest().decode("ascii")
    if not (text.startswith("[") and text.endswith("]")):
        raise ValueError(f"Flat world layers must be bracketed, got {text[:50]!r}")
    inner = text[1:-1]
    if not inner:
        return []
    layers = []
    for part in inner.split(","):
        if not LAYER_NUMBER.match(part) or int(part) >= 1 << 32:
            raise ValueError(f"Invalid flat world layer {part!r}")
        layers.append(int(part))
    return layers


def write_flat_world_layers(b, value):
    b.raw(("[" + ",".join(str(int(layer)) for layer in value) + "]").encode("ascii"))


def read_spawn_was_fixed(p) -> bool:
    text = p.rest()
    if text == b"True":
        return True
    if text == b"False":
        return False
    raise ValueError(f"Expected True or False, got {text[:50]!r}")


def write_spawn_was_fixed(b, value: bool):
    b.raw(b"True" if value else b"False")


def read_opaque(p) -> bytes:
    return p.rest()


def write_opaque(b, value: bytes):
    b.raw(bytes(value))
