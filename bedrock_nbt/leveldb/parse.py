from array import array
import struct
import sys

from bedrock_nbt import binary
from bedrock_nbt.errors import NbtIoError
from bedrock_nbt.options import BEDROCK_OPTIONS

_BIG_ENDIAN_HOST = sys.byteorder == "big"

assert array("H").itemsize == 2 and array("I").itemsize == 4


class Parse:
    """Little-endian cursor over a LevelDB value."""

    def __init__(self, data, options=BEDROCK_OPTIONS):
        self.data = data
        self.options = options
        self._string_options = options.but(allow_invalid_strings=True)
        self.offset = 0
        self.view = None

    def __enter__(self):
        self.view = memoryview(self.data).cast("B")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.view = None

    def remaining(self) -> int:
        return len(self.view) - self.offset

    def at_end(self) -> bool:
        return self.offset >= len(self.view)

    def expect_end(self):
        if not self.at_end():
            raise NbtIoError(f"{self.remaining()} unexpected trailing bytes", self.offset)

    #-----------------------------------------------------------

    def _unpack(self, fmt: str):
        size = struct.calcsize(fmt)
        if self.offset + size > len(self.view):
            raise NbtIoError(f"Unexpected end of data: need {size} bytes, {self.remaining()} left", self.offset)
        value = struct.unpack_from(fmt, self.view, self.offset)[0]
        self.offset += size
        return value

    def u8(self) -> int:
        return self._unpack("<B")

    def i8(self) -> int:
        return self._unpack("<b")

    def u16(self) -> int:
        return self._unpack("<H")

    def i32(self) -> int:
        return self._unpack("<i")

    def u32(self) -> int:
        return self._unpack("<I")

    def u64(self) -> int:
        return self._unpack("<Q")

    def raw(self, size: int) -> bytes:
        if self.offset + size > len(self.view):
            raise NbtIoError(f"Unexpected end of data: need {size} bytes, {self.remaining()} left", self.offset)
        chunk = bytes(self.view[self.offset:self.offset + size])
        self.offset += size
        return chunk

    def rest(self) -> bytes:
        return self.raw(self.remaining())

    def u16_array(self, count: int) -> array:
        return self._array("H", count)

    def u32_array(self, count: int) -> array:
        """Reads `count` little-endian u32 words in one copy."""
        return self._array("I", count)

    def _array(self, typecode: str, count: int) -> array:
        values = array(typecode)
        size = values.itemsize * count
        if self.offset + size > len(self.view):
            raise NbtIoError(f"Unexpected end of data: need {size} bytes, {self.remaining()} left", self.offset)
        values.frombytes(self.view[self.offset:self.offset + size])
        if _BIG_ENDIAN_HOST:
            values.byteswap()
        self.offset += size
        return values

    def compound(self, allow_invalid_strings: bool = False):
        """One Bedrock-flavor named compound. Returns (name, tag)."""
        options = self._string_options if allow_invalid_strings else self.options
        name, tag, self.offset = binary.decode_prefix(self.view, self.offset, options)
        return name, tag
