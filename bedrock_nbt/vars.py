from typing import Tuple

from bedrock_nbt.errors import NbtIoError

class Var:
    """Varint and zigzag helpers for the Bedrock network flavor."""

    def write_varint(value: int) -> bytes:
        """Encodes a non-negative integer as an unsigned LEB128 varint."""
        if value < 0:
            raise ValueError(f"Unsigned varint cannot hold {value}")
        out = bytearray()
        while True:
            byte = value & 0x7F
            value >>= 7
            if value != 0:
                byte |= 0x80
            out.append(byte)
            if value == 0:
                break
        return bytes(out)

    def read_varint(data, offset: int = 0, max_bytes: int = 5) -> Tuple[int, int]:
        """Reads an unsigned varint at offset. Returns (value, new_offset)."""
        num = 0
        start = offset
        for i in range(max_bytes):
            if offset >= len(data):
                raise NbtIoError("Unexpected end of data while reading varint", start)
            byte = data[offset]
            offset += 1
            num |= (byte & 0x7F) << (7 * i)
            if not (byte & 0x80):
                return num, offset
        raise NbtIoError("Varint too big", start)

    def zigzag_encode(value: int, bits: int) -> int:
        return ((value << 1) ^ (value >> (bits - 1))) & ((1 << bits) - 1)

    def zigzag_decode(value: int) -> int:
        return (value >> 1) ^ -(value & 1)

    def write_varint32(value: int) -> bytes:
        """Signed 32-bit integer, zigzag then varint."""
        return Var.write_varint(Var.zigzag_encode(value, 32))

    def read_varint32(data, offset: int = 0) -> Tuple[int, int]:
        raw, offset = Var.read_varint(data, offset, 5)
        return Var.zigzag_decode(raw & 0xFFFFFFFF), offset

    def write_varint64(value: int) -> bytes:
        """Signed 64-bit integer, zigzag then varint."""
        return Var.write_varint(Var.zigzag_encode(value, 64))

    def read_varint64(data, offset: int = 0) -> Tuple[int, int]:
        raw, offset = Var.read_varint(data, offset, 10)
        return Var.zigzag_decode(raw & 0xFFFFFFFFFFFFFFFF), offset
