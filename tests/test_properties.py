import struct

from hypothesis import assume, given, settings, strategies as st

from bedrock_nbt import binary
from bedrock_nbt.leveldb import decode, encode
from bedrock_nbt.options import NbtOptions, Flavor, RootPolicy
from bedrock_nbt.tag import NbtTag, TagId
from bedrock_nbt.text import parse_text, to_text
from bedrock_nbt.vars import Var

TEXT = st.text(alphabet=st.characters(exclude_categories=("Cs", "Cc")), max_size=20)
ASCII = st.text(alphabet=st.characters(min_codepoint=0x20, max_codepoint=0x7E), max_size=20)
FINITE = st.floats(allow_nan=False, allow_infinity=False)
F32 = st.floats(allow_nan=False, allow_infinity=False, width=32)


def scalar_values(strings):
    """(tag id, strategy producing fresh tags of that id)"""
    return {
        TagId.BYTE: st.integers(-128, 127).map(NbtTag.byte),
        TagId.SHORT: st.integers(-(1 << 15), (1 << 15) - 1).map(NbtTag.short),
        TagId.INT: st.integers(-(1 << 31), (1 << 31) - 1).map(NbtTag.int),
        TagId.LONG: st.integers(-(1 << 63), (1 << 63) - 1).map(NbtTag.long),
        TagId.FLOAT: F32.map(NbtTag.float),
        TagId.DOUBLE: FINITE.map(NbtTag.double),
        TagId.STRING: strings.map(NbtTag.string),
        TagId.BYTE_ARRAY: st.lists(st.integers(-128, 127), max_size=8).map(NbtTag.byte_array),
        TagId.INT_ARRAY: st.lists(st.integers(-(1 << 31), (1 << 31) - 1), max_size=8).map(NbtTag.int_array),
        TagId.LONG_ARRAY: st.lists(st.integers(-(1 << 63), (1 << 63) - 1), max_size=8).map(NbtTag.long_array),
    }


def trees(strings, keys):
    scalars = scalar_values(strings)

    def extend(children):
        lists = st.sampled_from(sorted(scalars)).flatmap(
            lambda tag_id: st.lists(scalars[tag_id], min_size=1, max_size=4).map(NbtTag.list)
        )
        empty_lists = st.sampled_from(sorted(TagId)).map(lambda tag_id: NbtTag.list(element_id=tag_id))
        nested = st.lists(children, min_size=1, max_size=3).filter(
            lambda items: len({item.id for item in items}) == 1
        ).map(lambda items: NbtTag.list([item.copy() for item in items]))
        compounds = st.dictionaries(keys, children, max_size=4).map(
            lambda items: NbtTag.compound({name: tag.copy() for name, tag in items.items()})
        )
        return lists | empty_lists | nested | compounds

    return st.recursive(st.one_of(*scalars.values()), extend, max_leaves=12)


def compounds(strings, keys):
    return st.dictionaries(keys, trees(strings, keys), max_size=5).map(
        lambda items: NbtTag.compound({name: tag.copy() for name, tag in items.items()})
    )


@settings(max_examples=60, deadline=None)
@given(compounds(TEXT, TEXT), TEXT)
def test_bedrock_flavors_keep_any_tree(tag, name):
    for flavor in (Flavor.BEDROCK, Flavor.BEDROCK_NETWORK):
        data = binary.encode(tag, name, flavor=flavor)
        assert binary.decode(data, flavor=flavor) == (name, tag)


@settings(max_examples=60, deadline=None)
@given(compounds(ASCII, ASCII), ASCII)
def test_java_flavor_keeps_any_tree(tag, name):
    data = binary.encode(tag, name, flavor=Flavor.JAVA)
    assert binary.decode(data, flavor=Flavor.JAVA) == (name, tag)


@settings(max_examples=40, deadline=None)
@given(trees(TEXT, TEXT))
def test_unnamed_roots(tag):
    options = NbtOptions(flavor=Flavor.BEDROCK_NETWORK, root_policy=RootPolicy.ANY_UNNAMED)
    assert binary.decode(binary.encode(tag, options=options), options) == ("", tag)


@settings(max_examples=60, deadline=None)
@given(compounds(TEXT, TEXT))
def test_text_keeps_any_tree(tag):
    assert parse_text(to_text(tag)) == tag


@given(st.floats(width=64))
def test_text_keeps_any_double(value):
    tag = NbtTag.double(value)
    assert parse_text(to_text(tag)) == tag


@given(st.floats(width=32))
def test_text_keeps_any_float(value):
    tag = NbtTag.float(value)
    assert parse_text(to_text(tag)) == tag


@given(st.integers(-(1 << 31), (1 << 31) - 1))
def test_varint32(value):
    data = Var.write_varint32(value)
    assert Var.read_varint32(data, 0) == (value, len(data))


@given(st.integers(-(1 << 63), (1 << 63) - 1))
def test_varint64(value):
    data = Var.write_varint64(value)
    assert Var.read_varint64(data, 0) == (value, len(data))


@given(st.integers(-(1 << 31), (1 << 31) - 1), st.integers(-(1 << 31), (1 << 31) - 1), st.integers(-128, 127))
def test_subchunk_keys(x, z, y):
    key = struct.pack("<ii", x, z) + bytes([47, y & 0xFF])
    # Keys starting with "map" are classified as map keys
    assume(not key.startswith(b"map"))
    value = b"\x08\x00"
    entry = decode(key, value)
    assert entry.key.subchunk_y == y
    assert encode(entry) == (key, value)
