from array import array
import struct
import sys

from mutf8.mutf8 import decode_modified_utf8

from bedrock_nbt.errors import NbtIoError, NbtTypeError, EncodingError
from bedrock_nbt.options import Flavor, RootPolicy, DEFAULT_DEPTH_LIMIT
from bedrock_nbt.policy import DepthGuard, check_root, root_is_named
from bedrock_nbt.tag import NbtTag, NbtCompound, NbtList, TagId
from bedrock_nbt.vars import Var

_NATIVE_LITTLE = sys.byteorder == "little"


def _join_surrogates(text: str) -> str:
    """Merges UTF-16 surrogate pairs left by modified UTF-8 into single code points."""
    if not any("\ud800" <= c <= "\udfff" for c in text):
        return text
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "surrogatepass")


class Parse:
    """
    Reads binary NBT from a bytes-like object, tracking the byte offset for error reports.

    ```python
    with Parse(data, Flavor.BEDROCK) as p:
        name, tag = p.root()
    ```
    """

    def __init__(self, data, flavor: Flavor = Flavor.JAVA, depth_limit: int = DEFAULT_DEPTH_LIMIT, preserve_order: bool = True, offset: int = 0, allow_invalid_strings: bool = False):
        self.data = data
        self.flavor = flavor
        self.allow_invalid_strings = allow_invalid_strings
        self.preserve_order = preserve_order
        self.offset = offset
        self.view = None
        self.guard = DepthGuard(depth_limit)

        order = "<" if flavor.little_endian else ">"
        self._short = struct.Struct(order + "h")
        self._ushort = struct.Struct(order + "H")
        self._int = struct.Struct(order + "i")
        self._long = struct.Struct(order + "q")
        self._float = struct.Struct(order + "f")
        self._double = struct.Struct(order + "d")
        self._swap = flavor.little_endian != _NATIVE_LITTLE

        self._readers = {
            TagId.BYTE: self.byte,
            TagId.SHORT: self.short,
            TagId.INT: self.int,
            TagId.LONG: self.long,
            TagId.FLOAT: self.float,
            TagId.DOUBLE: self.double,
            TagId.BYTE_ARRAY: self.byte_array,
            TagId.STRING: self.string,
            TagId.LIST: self.list,
            TagId.COMPOUND: self.compound,
            TagId.INT_ARRAY: self.int_array,
            TagId.LONG_ARRAY: self.long_array,
        }

    def __enter__(self):
        self.view = memoryview(self.data).cast("B")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.view = None

    def remaining(self) -> int:
        return len(self.view) - self.offset

    #-----------------------------------------------------------

    def _take(self, size: int) -> memoryview:
        end = self.offset + size
        if end > len(self.view):
            raise NbtIoError(f"Unexpected end of data: need {size} bytes, {len(self.view) - self.offset} left", self.offset)
        chunk = self.view[self.offset:end]
        self.offset = end
        return chunk

    def _unpack(self, fmt: struct.Struct):
        if self.offset + fmt.size > len(self.view):
            raise NbtIoError(f"Unexpected end of data: need {fmt.size} bytes, {len(self.view) - self.offset} left", self.offset)
        value = fmt.unpack_from(self.view, self.offset)[0]
        self.offset += fmt.size
        return value

    def tag_id(self) -> TagId:
        if self.offset >= len(self.view):
            raise NbtIoError("Unexpected end of data while reading tag id", self.offset)
        raw = self.view[self.offset]
        if raw > TagId.LONG_ARRAY:
            raise NbtIoError(f"Invalid tag id {raw}", self.offset)
        self.offset += 1
        return TagId(raw)

    def byte(self) -> int:
        if self.offset >= len(self.view):
            raise NbtIoError("Unexpected end of data while reading byte", self.offset)
        value = self.view[self.offset]
        self.offset += 1
        return value - 256 if value > 127 else value

    def short(self) -> int:
        return self._unpack(self._short)

    def int(self) -> int:
        if self.flavor.varints:
            value, self.offset = Var.read_varint32(self.view, self.offset)
            return value
        return self._unpack(self._int)

    def long(self) -> int:
        if self.flavor.varints:
            value, self.offset = Var.read_varint64(self.view, self.offset)
            return value
        return self._unpack(self._long)

    def float(self) -> float:
        return self._unpack(self._float)

    def double(self) -> float:
        return self._unpack(self._double)

    def length(self) -> int:
        """List and array lengths: i32, zigzag varint on the network flavor."""
        start = self.offset
        value = self.int()
        if value < 0:
            raise NbtIoError(f"Negative length {value}", start)
        return value

    def string(self) -> str:
        if self.flavor.varints:
            length, self.offset = Var.read_varint(self.view, self.offset)
        else:
            length = self._unpack(self._ushort)
        start = self.offset
        raw = self._take(length)
        try:
            if self.flavor is Flavor.JAVA:
                return _join_surrogates(decode_modified_utf8(bytes(raw)))
            return str(raw, "utf-8")
        except UnicodeDecodeError as e:
            if self.allow_invalid_strings:
                return str(raw, "utf-8", "surrogateescape")
            raise EncodingError(f"Invalid string data: {e.reason}", start + e.start) from None

    def byte_array(self) -> array:
        length = self.length()
        values = array("b")
        values.frombytes(self._take(length))
        return values

    def _number_array(self, typecode: str, size: int, read_one) -> array:
        length = self.length()
        values = array(typecode)
        if self.flavor.varints:
            values.extend(read_one() for _ in range(length))
            return values
        values.frombytes(self._take(length * size))
        if self._swap:
            values.byteswap()
        return values

    def int_array(self) -> array:
        return self._number_array("i", 4, self.int)

    def long_array(self) -> array:
        return self._number_array("q", 8, self.long)

    def list(self) -> NbtList:
        self.guard.enter(self.offset)
        start = self.offset
        element_id = self.tag_id()
        length = self.length()
        if element_id == TagId.END and length > 0:
            raise NbtIoError(f"List of End tags with length {length}", start)
        read = self._readers.get(element_id)
        items = [NbtTag._trusted(element_id, read()) for _ in range(length)] if length else []
        self.guard.leave()
        return NbtList._trusted(element_id, items)

    def compound(self) -> NbtCompound:
        self.guard.enter(self.offset)
        compound = NbtCompound(preserve_order=self.preserve_order)
        while True:
            start = self.offset
            tag_id = self.tag_id()
            if tag_id == TagId.END:
                break
            name = self.string()
            if name in compound:
                raise NbtTypeError(f"Duplicate compound key {name!r} (at byte {start})")
            compound._put(name, self.tag(tag_id))
        self.guard.leave()
        return compound

    def tag(self, tag_id: TagId) -> NbtTag:
        return NbtTag._trusted(tag_id, self._readers[tag_id]())

    def root(self, policy: RootPolicy = RootPolicy.NAMED_COMPOUND_ONLY):
        """Reads one root tag. Returns (name, tag); the name is "" for unnamed roots."""
        start = self.offset
        tag_id = self.tag_id()
        check_root(policy, tag_id, start)
        name = self.string() if root_is_named(policy) else ""
        return name, self.tag(tag_id)
