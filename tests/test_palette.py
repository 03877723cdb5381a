from array import array

import pytest

from bedrock_nbt.leveldb.build import Build
from bedrock_nbt.leveldb.palette import PalettedStorage, words_for, bits_for, EMPTY, UNIFORM
from bedrock_nbt.leveldb.parse import Parse


def read_u32_palette(p, count):
    return list(p.u32_array(count))


def write_u32_palette(b, palette):
    b.u32_array(palette)


def test_words_for():
    assert words_for(1) == 128
    assert words_for(3) == 410
    assert words_for(5) == 683
    assert words_for(16) == 2048


def test_bits_for():
    assert bits_for(2) == 1
    assert bits_for(3) == 2
    assert bits_for(5) == 3
    assert bits_for(64) == 6
    assert bits_for(65) == 8
    assert bits_for(257) == 16


def test_indices_are_packed_lsb_first():
    indices = [1] + [0] * 4095
    assert PalettedStorage.from_indices(indices, [10, 20]).words[0] == 1
    indices = [0, 1] + [0] * 4094
    assert PalettedStorage.from_indices(indices, [10, 20]).words[0] == 2
    indices = [0, 3] + [0] * 4094
    assert PalettedStorage.from_indices(indices, [1, 2, 3, 4]).words[0] == 3 << 2


def test_three_bit_indices_skip_word_padding():
    indices = [i % 5 for i in range(4096)]
    storage = PalettedStorage.from_indices(indices, [0, 1, 2, 3, 4])
    assert storage.bits == 3
    assert len(storage.words) == 410
    assert storage.indices() == indices
    # Ten indices per word; index 10 starts the second word
    assert storage.words[1] & 0b111 == 10 % 5


def test_values_map_through_palette():
    storage = PalettedStorage.from_indices([i % 2 for i in range(4096)], ["air", "stone"])
    assert storage.values()[:3] == ["air", "stone", "air"]


def test_single_entry_palette_becomes_uniform():
    storage = PalettedStorage.from_indices([0] * 4096, [7])
    assert storage.is_uniform
    assert storage.indices() == [0] * 4096
    assert storage.values()[4095] == 7


def test_from_indices_validates():
    with pytest.raises(ValueError):
        PalettedStorage.from_indices([0] * 100, [1, 2])
    with pytest.raises(ValueError):
        PalettedStorage.from_indices([2] * 4096, [1, 2])


def write(storage) -> bytes:
    with Build() as b:
        storage.write(b, write_u32_palette)
        return b.get()


def read(data: bytes) -> PalettedStorage:
    with Parse(data) as p:
        storage = PalettedStorage.read(p, read_u32_palette)
        p.expect_end()
        return storage


def test_header_byte():
    assert write(PalettedStorage.empty(runtime=True)) == b"\xff"
    assert write(PalettedStorage.uniform(5, runtime=True)) == b"\x01\x05\x00\x00\x00"
    assert write(PalettedStorage.uniform(5)) == b"\x00\x05\x00\x00\x00"

    storage = PalettedStorage.from_indices([i % 4 for i in range(4096)], [1, 2, 3, 4], runtime=True)
    data = write(storage)
    assert data[0] == (2 << 1) | 1
    assert len(data) == 1 + 4 * 256 + 4 + 4 * 4
    assert data[-20:-16] == b"\x04\x00\x00\x00"


def test_read_back():
    storage = PalettedStorage.from_indices([(i * 7) % 17 for i in range(4096)], list(range(17)), runtime=True)
    parsed = read(write(storage))
    assert parsed == storage
    assert parsed.bits == 5
    assert parsed.runtime

    assert read(b"\xff").is_empty
    assert read(b"\xff").bits == EMPTY
    assert read(b"\x01\x09\x00\x00\x00").palette == [9]
    assert read(b"\x01\x09\x00\x00\x00").bits == UNIFORM


def test_invalid_bits():
    with pytest.raises(ValueError):
        read(bytes([7 << 1]))


def test_index_beyond_palette():
    words = array("I", [0xFFFFFFFF] * 256)
    data = bytes([2 << 1]) + words.tobytes() + b"\x02\x00\x00\x00" + b"\x00" * 8
    with pytest.raises(ValueError):
        read(data)


def test_palette_length_limits():
    data = bytes([1 << 1]) + bytes(4 * 128) + b"\x00\x00\x00\x00"
    with pytest.raises(ValueError):
        read(data)
