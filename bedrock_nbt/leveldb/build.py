from array import array
from io import BytesIO
import struct
import sys

from bedrock_nbt import binary
from bedrock_nbt.options import BEDROCK_OPTIONS

_BIG_ENDIAN_HOST = sys.byteorder == "big"


class Build:
    """Little-endian writer for LevelDB values."""

    def __init__(self, options=BEDROCK_OPTIONS):
        self.options = options
        self._string_options = options.but(allow_invalid_strings=True)
        self._stream = BytesIO()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stream.close()

    def get(self) -> bytes:
        return self._stream.getvalue()

    #-----------------------------------------------------------

    def _pack(self, fmt: str, value: int):
        try:
            self._stream.write(struct.pack(fmt, value))
        except struct.error:
            raise ValueError(f"{value!r} does not fit in a '{fmt[1:]}' field") from None

    def u8(self, value: int):
        self._pack("<B", value)

    def i8(self, value: int):
        self._pack("<b", value)

    def u16(self, value: int):
        self._pack("<H", value)

    def i32(self, value: int):
        self._pack("<i", value)

    def u32(self, value: int):
        self._pack("<I", value)

    def u64(self, value: int):
        self._pack("<Q", value)

    def raw(self, value: bytes):
        self._stream.write(value)

    def u16_array(self, values):
        self._array("H", values)

    def u32_array(self, values):
        self._array("I", values)

    def _array(self, typecode: str, values):
        if not isinstance(values, array) or values.typecode != typecode or _BIG_ENDIAN_HOST:
            try:
                values = array(typecode, values)
            except OverflowError as e:
                raise ValueError(f"Value out of range for a '{typecode}' array: {e}") from None
            if _BIG_ENDIAN_HOST:
                values.byteswap()
        self._stream.write(values.tobytes())

    def compound(self, name: str, tag, allow_invalid_strings: bool = False):
        options = self._string_options if allow_invalid_strings else self.options
        self._stream.write(binary.write_named_root(name, tag, options))
