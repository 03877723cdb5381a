from array import array
import struct

import pytest

from bedrock_nbt import binary
from bedrock_nbt.errors import EntryDecodeError, NbtIoError, NbtTypeError
from bedrock_nbt.leveldb import decode, encode, Entry, RawEntry, RawValue, KeyVariant, PalettedStorage, NamedTag, ActorID
from bedrock_nbt.leveldb import values as v
from bedrock_nbt.options import BEDROCK_OPTIONS
from bedrock_nbt.tag import NbtTag

PLAYER_KEY = b"player_0f1e2d3c-4b5a-6978-8796-a5b4c3d2e1f0"


def chunk_key(tag, *extra):
    return struct.pack("<ii", 3, -7) + bytes([tag, *extra])


def block(name: str) -> NamedTag:
    return NamedTag("", NbtTag.compound({
        "name": NbtTag.string(name),
        "states": NbtTag.compound(),
        "version": NbtTag.int(17959425),
    }))


def compound_bytes(name: str, tag: NbtTag) -> bytes:
    return binary.write_named_root(name, tag, BEDROCK_OPTIONS)


def round_trip(key: bytes, value: bytes):
    entry = decode(key, value)
    assert encode(entry) == (key, value)
    return entry


def test_chunk_version():
    entry = round_trip(chunk_key(44), b"\x28")
    assert isinstance(entry, Entry)
    assert entry.variant is KeyVariant.VERSION
    assert entry.key.pos.x == 3
    assert entry.value == 40
    assert round_trip(chunk_key(118), b"\x07").value == 7


def test_strict_failure_names_key_and_variant():
    with pytest.raises(EntryDecodeError) as info:
        decode(chunk_key(44), b"\x2a")
    assert info.value.key == chunk_key(44)
    assert info.value.variant is KeyVariant.VERSION
    assert isinstance(info.value.cause, ValueError)


def test_lenient_failure_keeps_raw_value():
    entry = decode(chunk_key(44), b"\x2a", lenient=True)
    assert isinstance(entry, RawValue)
    assert entry.variant is KeyVariant.VERSION
    assert encode(entry) == (chunk_key(44), b"\x2a")


def test_trailing_bytes_are_a_failure():
    with pytest.raises(EntryDecodeError) as info:
        decode(chunk_key(44), b"\x28\x00")
    assert isinstance(info.value.cause, NbtIoError)


def test_unknown_key_passthrough():
    entry = decode(b"\x01unknown\x02", b"\x00\xffanything")
    assert isinstance(entry, RawEntry)
    assert entry.variant is KeyVariant.UNKNOWN
    assert encode(entry) == (b"\x01unknown\x02", b"\x00\xffanything")


def test_actor_digest_version():
    assert round_trip(chunk_key(65), b"\x00").value == 0
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(65), b"\x01")


def test_data_3d():
    heightmap = array("H", range(256))
    biomes = [
        PalettedStorage.uniform(1, runtime=True),
        PalettedStorage.from_indices([i % 3 for i in range(4096)], [1, 2, 7], runtime=True),
        PalettedStorage.empty(runtime=True),
    ]
    key, value = encode(Entry(decode(chunk_key(43), bytes(512) + b"\xff").key, v.Data3D(heightmap, biomes)))
    assert value[:4] == b"\x00\x00\x01\x00"
    assert value[512:517] == b"\x01\x01\x00\x00\x00"
    assert value[517] == (2 << 1) | 1
    assert value[-1] == 0xFF

    entry = round_trip(key, value)
    assert entry.value.heightmap == heightmap
    assert entry.value.biomes == biomes
    assert entry.value.biomes[1].values()[:4] == [1, 2, 7, 1]


def test_data_3d_rejects_persistent_biomes():
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(43), bytes(512) + b"\x00\x01\x00\x00\x00")
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(43), bytes(100))


def test_data_2d():
    value = struct.pack("<256H", *range(256)) + bytes(range(256))
    entry = round_trip(chunk_key(45), value)
    assert entry.value.heightmap[255] == 255
    assert entry.value.biomes[7] == 7


def test_legacy_data_2d():
    value = bytes(512) + bytes([1, 10, 20, 30]) * 256
    entry = round_trip(chunk_key(46), value)
    assert entry.value.biomes[0] == v.ColumnBiome(1, 10, 20, 30)


def test_subchunk_v9():
    layer = PalettedStorage.from_indices([i % 2 for i in range(4096)], [block("minecraft:air"), block("minecraft:stone")])
    entry = Entry(decode(chunk_key(47, 0xFC), b"\x08\x00").key, v.Subchunk(9, [layer], -4))
    key, value = encode(entry)
    assert value[:4] == b"\x09\x01\xfc\x02"
    palette_size = sum(len(compound_bytes("", entry.tag)) for entry in layer.palette)
    assert len(value) == 4 + 128 * 4 + 4 + palette_size

    decoded = round_trip(key, value)
    assert decoded.key.subchunk_y == -4
    assert decoded.value.version == 9
    assert decoded.value.y_index == -4
    assert decoded.value.layers[0].values()[1].tag.value["name"].value == "minecraft:stone"


def test_subchunk_v8_and_v1():
    layers = [
        PalettedStorage.from_indices([i % 3 for i in range(4096)], [block("a"), block("b"), block("c")]),
        PalettedStorage.uniform(block("minecraft:water")),
    ]
    _, value = encode(Entry(decode(chunk_key(47, 0), b"\x08\x00").key, v.Subchunk(8, layers)))
    assert value[:3] == b"\x08\x02\x04"
    assert round_trip(chunk_key(47, 0), value).value.layers == layers

    _, single = encode(Entry(decode(chunk_key(47, 0), b"\x08\x00").key, v.Subchunk(1, layers[:1])))
    assert single[:2] == b"\x01\x04"
    assert round_trip(chunk_key(47, 0), single).value.layers == layers[:1]


def test_subchunk_rejects_runtime_and_empty_layers():
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(47, 0), b"\x08\x01\x01\x00\x00\x00\x00")
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(47, 0), b"\x08\x01\xfe")
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(47, 0), b"\x0a")
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(47, 0), b"")


def test_legacy_subchunk():
    ids = bytes(range(256)) * 16
    data = bytes(2048)
    plain = round_trip(chunk_key(47, 0), b"\x00" + ids + data)
    assert isinstance(plain.value, v.LegacySubchunk)
    assert plain.value.skylight is None

    lit = round_trip(chunk_key(47, 0), b"\x02" + ids + data + b"\x11" * 2048 + b"\x22" * 2048)
    assert lit.value.version == 2
    assert lit.value.blocklight == b"\x22" * 2048

    with pytest.raises(EntryDecodeError):
        decode(chunk_key(47, 0), b"\x00" + ids)


def test_concatenated_compounds():
    first = NbtTag.compound({"id": NbtTag.string("Chest"), "x": NbtTag.int(1)})
    second = NbtTag.compound({"id": NbtTag.string("Sign"), "x": NbtTag.int(2)})
    value = compound_bytes("", first) + compound_bytes("", second)
    entry = round_trip(chunk_key(49), value)
    assert entry.value == [NamedTag("", first), NamedTag("", second)]
    assert round_trip(chunk_key(50), b"").value == []


def test_single_compound_records():
    tag = NbtTag.compound({"Health": NbtTag.short(20)})
    entry = round_trip(PLAYER_KEY, compound_bytes("", tag))
    assert entry.variant is KeyVariant.PLAYER
    assert entry.value.tag == tag

    with pytest.raises(EntryDecodeError):
        decode(b"~local_player", compound_bytes("", tag) + b"\x00")


def test_plain_tag_is_accepted_for_compound_records():
    tag = NbtTag.compound({"a": NbtTag.byte(1)})
    entry = decode(b"scoreboard", compound_bytes("", tag))
    assert encode(Entry(entry.key, tag)) == (b"scoreboard", compound_bytes("", tag))


def test_border_blocks():
    assert round_trip(chunk_key(56), b"").value == []
    entry = round_trip(chunk_key(56), b"\x02\x10\x21")
    assert entry.value == [v.BorderColumn(0, 1), v.BorderColumn(1, 2)]

    full = bytes([0]) + bytes(range(256))
    assert len(round_trip(chunk_key(56), full).value) == 256

    with pytest.raises(EntryDecodeError):
        decode(chunk_key(56), b"\x03\x10")


def test_hardcoded_spawners():
    value = struct.pack("<I6iB", 1, 0, 0, 0, 10, 20, 30, 2)
    entry = round_trip(chunk_key(57), value)
    assert entry.value == [v.HardcodedSpawner((0, 0, 0), (10, 20, 30), v.SpawnerType.WITCH_HUT)]

    with pytest.raises(EntryDecodeError):
        decode(chunk_key(57), struct.pack("<I6iB", 1, 0, 0, 0, 10, 20, 30, 7))
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(57), struct.pack("<I6iB", 1, 5, 0, 0, 4, 0, 0, 1))
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(57), struct.pack("<I", 2))


def test_checksums():
    value = struct.pack("<I", 2) + struct.pack("<HbQ", 47, -1, 123) + struct.pack("<HbQ", 45, 0, 5)
    entry = round_trip(chunk_key(59), value)
    assert entry.value[0] == v.Checksum(47, -1, 123)

    with pytest.raises(EntryDecodeError):
        decode(chunk_key(59), struct.pack("<I", 1) + struct.pack("<HbQ", 46, 0, 1))


def test_numbers():
    assert round_trip(chunk_key(63), struct.pack("<Q", (1 << 64) - 1)).value == (1 << 64) - 1
    assert round_trip(chunk_key(60), struct.pack("<Q", 42)).value == 42
    assert round_trip(chunk_key(54), struct.pack("<I", 2)).value is v.FinalizedState.DONE
    with pytest.raises(EntryDecodeError):
        decode(chunk_key(54), struct.pack("<I", 3))


def test_biome_state():
    narrow = round_trip(chunk_key(53), b"\x01\x05\x01")
    assert narrow.value == v.BiomeState([(5, 1)])

    wide = round_trip(chunk_key(53), struct.pack("<HHB", 1, 300, 2))
    assert wide.value == v.BiomeState([(300, 2)], wide=True)

    with pytest.raises(EntryDecodeError):
        decode(chunk_key(53), b"\x02\x05")


def test_actor_digest():
    key = b"digp" + struct.pack("<ii", 3, -7)
    value = struct.pack(">IIII", 1, 2, 3, 4)
    entry = round_trip(key, value)
    assert entry.value == [ActorID(1, 2), ActorID(3, 4)]
    with pytest.raises(EntryDecodeError):
        decode(key, value[:-1])


def test_actor_record():
    key = b"actorprefix" + struct.pack(">II", 0, 5)
    tag = NbtTag.compound({"identifier": NbtTag.string("minecraft:cow")})
    entry = round_trip(key, compound_bytes("", tag))
    assert entry.key.actor == ActorID(0, 5)


def test_meta_data_dictionary():
    tag = NbtTag.compound({"LastSavedBaseGameVersion": NbtTag.string("1.21.0")})
    record = struct.pack("<Q", 0xDEADBEEF) + compound_bytes("", tag)
    entry = round_trip(b"LevelChunkMetaDataDictionary", struct.pack("<I", 1) + record)
    assert entry.value[0xDEADBEEF].tag == tag

    with pytest.raises(EntryDecodeError):
        decode(b"LevelChunkMetaDataDictionary", struct.pack("<I", 2) + record + record)
    with pytest.raises(EntryDecodeError):
        decode(b"LevelChunkMetaDataDictionary", struct.pack("<I", 1) + record + b"\x00")


def test_flat_world_layers():
    assert round_trip(b"game_flatworldlayers", b"[7,3,3,2]").value == [7, 3, 3, 2]
    assert round_trip(b"game_flatworldlayers", b"[]").value == []
    for bad in (b"7,3", b"[7,03]", b"[7,,3]", b"[-1]"):
        with pytest.raises(EntryDecodeError):
            decode(b"game_flatworldlayers", bad)


def test_spawn_was_fixed():
    assert round_trip(b"LevelSpawnWasFixed", b"True").value is True
    assert round_trip(b"LevelSpawnWasFixed", b"False").value is False
    with pytest.raises(EntryDecodeError):
        decode(b"LevelSpawnWasFixed", b"true")


@pytest.mark.parametrize("tag", [48, 52, 55, 61, 62, 64, 119])
def test_opaque_records(tag):
    value = bytes(range(200))
    entry = round_trip(chunk_key(tag), value)
    assert entry.value == value


def test_encode_checks_payload_type():
    entry = decode(chunk_key(44), b"\x01")
    with pytest.raises(NbtTypeError):
        encode(Entry(entry.key, "not a number"))
    with pytest.raises(ValueError):
        encode(Entry(entry.key, 99))


def test_invalid_palette_strings_are_kept():
    layer = PalettedStorage.from_indices([i % 2 for i in range(4096)], [block("minecraft:air"), block("zz")])
    _, value = encode(Entry(decode(chunk_key(47, 0), b"\x08\x00").key, v.Subchunk(8, [layer])))
    value = value.replace(b"zz", b"\xff\xfe")

    entry = round_trip(chunk_key(47, 0), value)
    assert entry.value.layers[0].palette[1].tag.value["name"].value == "\udcff\udcfe"


def test_invalid_strings_in_entity_lists_are_kept():
    tag = NbtTag.compound({"id": NbtTag.string("zz")})
    value = compound_bytes("", tag).replace(b"zz", b"\xff\xfe")
    assert round_trip(chunk_key(50), value).value[0].tag.value["id"].value == "\udcff\udcfe"

    # Single-compound records stay strict
    with pytest.raises(EntryDecodeError):
        decode(PLAYER_KEY, value)
