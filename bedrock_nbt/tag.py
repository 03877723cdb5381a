from collections.abc import MutableMapping, MutableSequence
from array import array
from enum import IntEnum
import struct
import math
import weakref

from bedrock_nbt.errors import NbtTypeError

class TagId(IntEnum):
    END = 0
    BYTE = 1
    SHORT = 2
    INT = 3
    LONG = 4
    FLOAT = 5
    DOUBLE = 6
    BYTE_ARRAY = 7
    STRING = 8
    LIST = 9
    COMPOUND = 10
    INT_ARRAY = 11
    LONG_ARRAY = 12

    @property
    def label(self) -> str:
        return TAG_LABELS[self]


TAG_LABELS = {
    TagId.END: "End",
    TagId.BYTE: "Byte",
    TagId.SHORT: "Short",
    TagId.INT: "Int",
    TagId.LONG: "Long",
    TagId.FLOAT: "Float",
    TagId.DOUBLE: "Double",
    TagId.BYTE_ARRAY: "ByteArray",
    TagId.STRING: "String",
    TagId.LIST: "List",
    TagId.COMPOUND: "Compound",
    TagId.INT_ARRAY: "IntArray",
    TagId.LONG_ARRAY: "LongArray",
}

INTEGER_RANGES = {
    TagId.BYTE: (-(1 << 7), (1 << 7) - 1),
    TagId.SHORT: (-(1 << 15), (1 << 15) - 1),
    TagId.INT: (-(1 << 31), (1 << 31) - 1),
    TagId.LONG: (-(1 << 63), (1 << 63) - 1),
}

ARRAY_TYPECODES = {
    TagId.BYTE_ARRAY: "b",
    TagId.INT_ARRAY: "i",
    TagId.LONG_ARRAY: "q",
}

# array('i') and array('q') must be exactly 4 and 8 bytes for the codecs
assert array("i").itemsize == 4 and array("q").itemsize == 8


def to_f32(value: float) -> float:
    """Rounds a Python float to the nearest 32-bit float."""
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        raise NbtTypeError(f"Value {value!r} does not fit in a Float") from None


def _float_bits(value: float) -> bytes:
    return struct.pack("<d", value)


def _check_value(tag_id, value):
    """Validates and normalises `value` for `tag_id`. Returns the stored value."""
    if tag_id in INTEGER_RANGES:
        if not isinstance(value, int):
            raise NbtTypeError(f"{tag_id.label} needs an int, got {type(value).__name__}")
        low, high = INTEGER_RANGES[tag_id]
        if not low <= value <= high:
            raise NbtTypeError(f"Value {value} out of range for {tag_id.label}")
        return int(value)

    if tag_id == TagId.FLOAT:
        if not isinstance(value, (int, float)):
            raise NbtTypeError(f"Float needs a number, got {type(value).__name__}")
        return to_f32(float(value))

    if tag_id == TagId.DOUBLE:
        if not isinstance(value, (int, float)):
            raise NbtTypeError(f"Double needs a number, got {type(value).__name__}")
        return float(value)

    if tag_id == TagId.STRING:
        if not isinstance(value, str):
            raise NbtTypeError(f"String needs a str, got {type(value).__name__}")
        return value

    if tag_id in ARRAY_TYPECODES:
        typecode = ARRAY_TYPECODES[tag_id]
        if isinstance(value, array) and value.typecode == typecode:
            return value
        try:
            return array(typecode, value)
        except (OverflowError, TypeError) as e:
            raise NbtTypeError(f"Invalid {tag_id.label} contents: {e}") from None

    if tag_id == TagId.LIST:
        if not isinstance(value, NbtList):
            raise NbtTypeError(f"List needs an NbtList, got {type(value).__name__}")
        return value

    if tag_id == TagId.COMPOUND:
        if not isinstance(value, NbtCompound):
            raise NbtTypeError(f"Compound needs an NbtCompound, got {type(value).__name__}")
        return value

    raise NbtTypeError(f"Cannot build a tag with id {tag_id!r}")


class NbtTag:
    """
    One NBT value: a tag id plus its payload.

    Payload types per id:
    ```python
    NbtTag.byte(1)            # int in i8 range
    NbtTag.float(0.1)         # stored already rounded to f32
    NbtTag.int_array([1, 2])  # array('i')
    NbtTag.compound({"a": NbtTag.string("b")})
    ```
    `==` is exact: floats compare by bit pattern, except that any two NaNs of the
    same tag type are equal. Two empty lists are equal whatever their element ids.
    Use `approx_equal` or `tags_equal(..., approximate=True)` for tolerant float comparison.

    A tag sits in at most one compound or list at a time.
    """
    __slots__ = ("id", "value", "_owner")

    def __init__(self, tag_id, value):
        try:
            tag_id = TagId(tag_id)
        except ValueError:
            raise NbtTypeError(f"Invalid tag id: {tag_id!r}") from None
        self.id = tag_id
        self.value = _check_value(tag_id, value)
        self._owner = None

    @classmethod
    def _trusted(cls, tag_id, value):
        # Decoders produce already-valid payloads
        tag = object.__new__(cls)
        tag.id = tag_id
        tag.value = value
        tag._owner = None
        return tag

    @property
    def owner(self):
        """The compound or list holding this tag, or None."""
        if self._owner is None:
            return None
        return self._owner()

    #-----------------------------------------------------------

    @classmethod
    def byte(cls, value: int):
        return cls(TagId.BYTE, value)

    @classmethod
    def short(cls, value: int):
        return cls(TagId.SHORT, value)

    @classmethod
    def int(cls, value: int):
        return cls(TagId.INT, value)

    @classmethod
    def long(cls, value: int):
        return cls(TagId.LONG, value)

    @classmethod
    def float(cls, value: float):
        return cls(TagId.FLOAT, value)

    @classmethod
    def double(cls, value: float):
        return cls(TagId.DOUBLE, value)

    @classmethod
    def string(cls, value: str):
        return cls(TagId.STRING, value)

    @classmethod
    def byte_array(cls, values):
        return cls(TagId.BYTE_ARRAY, values)

    @classmethod
    def int_array(cls, values):
        return cls(TagId.INT_ARRAY, values)

    @classmethod
    def long_array(cls, values):
        return cls(TagId.LONG_ARRAY, values)

    @classmethod
    def list(cls, items=(), element_id=None):
        if not isinstance(items, NbtList):
            items = NbtList(items, element_id)
        return cls(TagId.LIST, items)

    @classmethod
    def compound(cls, items=None, preserve_order=True):
        if not isinstance(items, NbtCompound):
            items = NbtCompound(items, preserve_order=preserve_order)
        return cls(TagId.COMPOUND, items)

    @classmethod
    def from_python(cls, value):
        """Best-effort conversion of plain Python data (as used by editors) into tags."""
        if isinstance(value, NbtTag):
            return value
        if isinstance(value, bool):
            return cls.byte(int(value))
        if isinstance(value, int):
            if INTEGER_RANGES[TagId.INT][0] <= value <= INTEGER_RANGES[TagId.INT][1]:
                return cls.int(value)
            return cls.long(value)
        if isinstance(value, float):
            return cls.double(value)
        if isinstance(value, str):
            return cls.string(value)
        if isinstance(value, (bytes, bytearray)):
            return cls.byte_array(value)
        if isinstance(value, dict):
            return cls.compound({str(k): cls.from_python(v) for k, v in value.items()})
        if isinstance(value, (list, tuple)):
            return cls.list([cls.from_python(v) for v in value])
        raise NbtTypeError(f"Cannot convert {type(value).__name__} to NBT")

    def to_python(self):
        if self.id == TagId.COMPOUND:
            return {k: v.to_python() for k, v in self.value.items()}
        if self.id == TagId.LIST:
            return [v.to_python() for v in self.value]
        if self.id in ARRAY_TYPECODES:
            return self.value.tolist()
        return self.value

    #-----------------------------------------------------------

    def copy(self):
        if self.id in (TagId.COMPOUND, TagId.LIST):
            return NbtTag._trusted(self.id, self.value.copy())
        if self.id in ARRAY_TYPECODES:
            return NbtTag._trusted(self.id, array(self.value.typecode, self.value))
        return NbtTag._trusted(self.id, self.value)

    def __eq__(self, other):
        if not isinstance(other, NbtTag):
            return NotImplemented
        return _equal(self, other, None)

    __hash__ = None

    def approx_equal(self, other, epsilon: float = 1e-6) -> bool:
        return _equal(self, other, epsilon)

    def __repr__(self):
        if self.id in ARRAY_TYPECODES:
            return f"{self.id.label}({self.value.tolist()!r})"
        return f"{self.id.label}({self.value!r})"


def _float_equal(a: float, b: float, epsilon) -> bool:
    if math.isnan(a) or math.isnan(b):
        return math.isnan(a) and math.isnan(b)
    if epsilon is None:
        return _float_bits(a) == _float_bits(b)
    if a == b:
        return True
    return abs(a - b) <= epsilon


def _equal(a: NbtTag, b: NbtTag, epsilon) -> bool:
    if a.id != b.id:
        return False
    if a.id in (TagId.FLOAT, TagId.DOUBLE):
        return _float_equal(a.value, b.value, epsilon)
    if a.id == TagId.LIST:
        if len(a.value) != len(b.value):
            return False
        if not a.value:
            return True
        if a.value.element_id != b.value.element_id:
            return False
        return all(_equal(x, y, epsilon) for x, y in zip(a.value, b.value))
    if a.id == TagId.COMPOUND:
        if len(a.value) != len(b.value):
            return False
        for name, tag in a.value.items():
            other = b.value.get(name)
            if other is None or not _equal(tag, other, epsilon):
                return False
        return True
    return a.value == b.value


def tags_equal(a: NbtTag, b: NbtTag, approximate: bool = None, options=None) -> bool:
    """Compares two trees with one equality mode for the whole call."""
    if options is None:
        from bedrock_nbt.options import DEFAULT_OPTIONS as options
    if approximate is None:
        approximate = options.approximate_float_equality
    return _equal(a, b, options.float_epsilon if approximate else None)


class _Container:
    """Parent bookkeeping shared by compounds and lists."""
    __slots__ = ()

    @property
    def parent(self):
        if self._parent is None:
            return None
        return self._parent()

    def _adopt(self, tag):
        if not isinstance(tag, NbtTag):
            raise NbtTypeError(f"Expected an NbtTag, got {type(tag).__name__}")
        child = tag.value
        if not isinstance(child, _Container):
            if tag.owner is not None:
                raise NbtTypeError(f"{tag.id.label} tag already belongs to a container")
            tag._owner = weakref.ref(self)
            return
        if child.parent is not None:
            raise NbtTypeError(f"{type(child).__name__} already belongs to another container")
        node = self
        while node is not None:
            if node is child:
                raise NbtTypeError("Cannot insert a container into itself or its descendants")
            node = node.parent
        child._parent = weakref.ref(self)

    def _adopt_unchecked(self, tag):
        child = tag.value
        if isinstance(child, _Container):
            child._parent = weakref.ref(self)
        else:
            tag._owner = weakref.ref(self)

    @staticmethod
    def _release(tag):
        child = tag.value
        if isinstance(child, _Container):
            child._parent = None
        else:
            tag._owner = None


class NbtCompound(_Container, MutableMapping):
    """Named tags with unique names. Iterates in insertion order, or by name when `preserve_order` is off."""
    __slots__ = ("_tags", "preserve_order", "_parent", "__weakref__")

    def __init__(self, items=None, preserve_order=True):
        self._tags = {}
        self._parent = None
        self.preserve_order = preserve_order
        if items:
            pairs = items.items() if hasattr(items, "items") else items
            for name, tag in pairs:
                self.insert(name, tag)

    def insert(self, name: str, tag: NbtTag):
        """Adds a new entry; an existing name is an error."""
        if name in self._tags:
            raise NbtTypeError(f"Duplicate compound key: {name!r}")
        self[name] = tag

    def _put(self, name, tag):
        self._tags[name] = tag
        self._adopt_unchecked(tag)

    def __setitem__(self, name, tag):
        if not isinstance(name, str):
            raise NbtTypeError(f"Compound keys must be str, got {type(name).__name__}")
        old = self._tags.get(name)
        if old is tag:
            return
        self._adopt(tag)
        if old is not None:
            self._release(old)
        self._tags[name] = tag

    def __getitem__(self, name) -> NbtTag:
        return self._tags[name]

    def __delitem__(self, name):
        self._release(self._tags.pop(name))

    def __contains__(self, name):
        return name in self._tags

    def __iter__(self):
        if self.preserve_order:
            return iter(list(self._tags))
        return iter(sorted(self._tags))

    def __len__(self):
        return len(self._tags)

    def copy(self):
        result = NbtCompound(preserve_order=self.preserve_order)
        for name, tag in self.items():
            result._put(name, tag.copy())
        return result

    def __repr__(self):
        inner = ", ".join(f"{name!r}: {tag!r}" for name, tag in self.items())
        return "{" + inner + "}"


class NbtList(_Container, MutableSequence):
    """A homogeneous sequence of tags. The element id survives even when the list is empty."""
    __slots__ = ("_items", "element_id", "_parent", "__weakref__")

    def __init__(self, items=(), element_id=None):
        items = list(items)
        if element_id is None:
            element_id = items[0].id if items and isinstance(items[0], NbtTag) else TagId.END
        self.element_id = TagId(element_id)
        self._items = []
        self._parent = None
        self.extend(items)

    @classmethod
    def _trusted(cls, element_id, items):
        result = object.__new__(cls)
        result.element_id = element_id
        result._items = items
        result._parent = None
        for tag in items:
            result._adopt_unchecked(tag)
        return result

    def _check(self, tag, allow_retype):
        if not isinstance(tag, NbtTag):
            raise NbtTypeError(f"Expected an NbtTag, got {type(tag).__name__}")
        if tag.id == TagId.END:
            raise NbtTypeError("Lists cannot hold End tags")
        if tag.id != self.element_id and not (allow_retype and self.element_id == TagId.END):
            raise NbtTypeError(f"Cannot put {tag.id.label} into a list of {self.element_id.label}")

    def __getitem__(self, index):
        return self._items[index]

    def __setitem__(self, index, tag):
        if isinstance(index, slice):
            raise NbtTypeError("Slice assignment is not supported on NBT lists")
        self._check(tag, allow_retype=False)
        old = self._items[index]
        if old is tag:
            return
        self._adopt(tag)
        self._release(old)
        self._items[index] = tag

    def __delitem__(self, index):
        if isinstance(index, slice):
            for tag in self._items[index]:
                self._release(tag)
        else:
            self._release(self._items[index])
        del self._items[index]

    def __len__(self):
        return len(self._items)

    def insert(self, index, tag):
        self._check(tag, allow_retype=not self._items)
        self._adopt(tag)
        if not self._items:
            self.element_id = tag.id
        self._items.insert(index, tag)

    def extend(self, tags):
        tags = list(tags)
        if not tags:
            return
        element_id = self.element_id
        if element_id == TagId.END and not self._items and isinstance(tags[0], NbtTag):
            element_id = tags[0].id
        typed = NbtList._trusted(element_id, [])
        for tag in tags:
            typed._check(tag, allow_retype=False)
        adopted = []
        try:
            for tag in tags:
                self._adopt(tag)
                adopted.append(tag)
        except NbtTypeError:
            for tag in adopted:
                self._release(tag)
            raise
        self.element_id = element_id
        self._items.extend(tags)

    def __eq__(self, other):
        if not isinstance(other, NbtList):
            return NotImplemented
        if not self._items and not other._items:
            return True
        return self.element_id == other.element_id and self._items == other._items

    __hash__ = None

    def copy(self):
        return NbtList._trusted(self.element_id, [tag.copy() for tag in self._items])

    def __repr__(self):
        return f"[{self.element_id.label}; " + ", ".join(repr(tag) for tag in self._items) + "]"
