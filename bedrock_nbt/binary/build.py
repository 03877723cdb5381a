from array import array
from io import BytesIO
import struct
import sys

from mutf8.mutf8 import encode_modified_utf8

from bedrock_nbt.errors import EncodingError, NbtTypeError
from bedrock_nbt.options import Flavor, RootPolicy, DEFAULT_DEPTH_LIMIT
from bedrock_nbt.policy import DepthGuard, check_root, root_is_named
from bedrock_nbt.tag import NbtTag, TagId, ARRAY_TYPECODES
from bedrock_nbt.vars import Var

_NATIVE_LITTLE = sys.byteorder == "little"


def _has_escaped_bytes(text: str) -> bool:
    """True when `text` holds bytes kept by a lenient string read."""
    return any("\udc80" <= c <= "\udcff" for c in text)


class Build:
    def __init__(self, flavor: Flavor = Flavor.JAVA, depth_limit: int = DEFAULT_DEPTH_LIMIT, allow_invalid_strings: bool = False):
        self.flavor = flavor
        self.allow_invalid_strings = allow_invalid_strings
        self.guard = DepthGuard(depth_limit)
        self._stream = BytesIO()
        self._order = "<" if flavor.little_endian else ">"
        self._swap = flavor.little_endian != _NATIVE_LITTLE

        self._writers = {
            TagId.BYTE: self.byte,
            TagId.SHORT: self.short,
            TagId.INT: self.int,
            TagId.LONG: self.long,
            TagId.FLOAT: self.float,
            TagId.DOUBLE: self.double,
            TagId.BYTE_ARRAY: self.array,
            TagId.STRING: self.string,
            TagId.LIST: self.list,
            TagId.COMPOUND: self.compound,
            TagId.INT_ARRAY: self.array,
            TagId.LONG_ARRAY: self.array,
        }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stream.close()

    def get(self) -> bytes:
        """Everything written so far."""
        return self._stream.getvalue()

    def position(self) -> int:
        return self._stream.tell()

    #-----------------------------------------------------------

    def _pack(self, fmt: str, value):
        try:
            self._stream.write(struct.pack(self._order + fmt, value))
        except struct.error as e:
            raise NbtTypeError(f"Cannot write {value!r}: {e}") from None

    def tag_id(self, tag_id: int):
        self._stream.write(bytes([tag_id]))

    def byte(self, value: int):
        self._pack("b", value)

    def short(self, value: int):
        self._pack("h", value)

    def int(self, value: int):
        if self.flavor.varints:
            if not -(1 << 31) <= value < (1 << 31):
                raise NbtTypeError(f"Cannot write {value!r} as Int")
            self._stream.write(Var.write_varint32(value))
        else:
            self._pack("i", value)

    def long(self, value: int):
        if self.flavor.varints:
            if not -(1 << 63) <= value < (1 << 63):
                raise NbtTypeError(f"Cannot write {value!r} as Long")
            self._stream.write(Var.write_varint64(value))
        else:
            self._pack("q", value)

    def float(self, value: float):
        self._pack("f", value)

    def double(self, value: float):
        self._pack("d", value)

    def length(self, value: int):
        if value >= (1 << 31):
            raise EncodingError(f"Length {value} does not fit in an i32", self.position())
        self.int(value)

    def string(self, text: str):
        offset = self.position()
        escaped = self.allow_invalid_strings and _has_escaped_bytes(text)
        try:
            if escaped:
                encoded = text.encode("utf-8", "surrogateescape")
            elif self.flavor is Flavor.JAVA:
                encoded = encode_modified_utf8(text)
            else:
                encoded = text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"Cannot encode string: {e.reason}", offset) from None

        if self.flavor.varints:
            if len(encoded) > 0xFFFFFFFF:
                raise EncodingError(f"String of {len(encoded)} bytes is too long", offset)
            self._stream.write(Var.write_varint(len(encoded)))
        else:
            if len(encoded) > 0xFFFF:
                raise EncodingError(f"String of {len(encoded)} bytes is too long", offset)
            self._pack("H", len(encoded))
        self._stream.write(encoded)

    def array(self, values: array):
        self.length(len(values))
        if values.typecode == "b":
            self._stream.write(values.tobytes())
        elif self.flavor.varints:
            write_one = self.int if values.typecode == "i" else self.long
            for value in values:
                write_one(value)
        elif self._swap:
            swapped = array(values.typecode, values)
            swapped.byteswap()
            self._stream.write(swapped.tobytes())
        else:
            self._stream.write(values.tobytes())

    def list(self, items):
        self.guard.enter(self.position())
        self.tag_id(items.element_id)
        self.length(len(items))
        for item in items:
            self.tag(item)
        self.guard.leave()

    def compound(self, compound):
        self.guard.enter(self.position())
        for name, tag in compound.items():
            self.named(name, tag)
        self.tag_id(TagId.END)
        self.guard.leave()

    def tag(self, tag: NbtTag):
        """Payload only, no id or name."""
        if tag.id in ARRAY_TYPECODES and tag.value.typecode != ARRAY_TYPECODES[tag.id]:
            raise NbtTypeError(f"{tag.id.label} holds an array of typecode {tag.value.typecode!r}")
        self._writers[tag.id](tag.value)

    def named(self, name: str, tag: NbtTag):
        self.tag_id(tag.id)
        self.string(name)
        self.tag(tag)

    def root(self, tag: NbtTag, name: str = "", policy: RootPolicy = RootPolicy.NAMED_COMPOUND_ONLY):
        check_root(policy, tag.id, self.position())
        self.tag_id(tag.id)
        if root_is_named(policy):
            self.string(name)
        self.tag(tag)
