from io import StringIO
import math
import re

from bedrock_nbt.options import DEFAULT_DEPTH_LIMIT
from bedrock_nbt.policy import DepthGuard
from bedrock_nbt.tag import NbtTag, TagId, to_f32
from bedrock_nbt.text.escapes import escape, use_single_quotes

BARE_KEY = re.compile(r"^[0-9A-Za-z_\-.+]+$")

ARRAY_PREFIX = {TagId.BYTE_ARRAY: "B", TagId.INT_ARRAY: "I", TagId.LONG_ARRAY: "L"}
ARRAY_SUFFIX = {TagId.BYTE_ARRAY: "b", TagId.INT_ARRAY: "", TagId.LONG_ARRAY: "L"}
INTEGER_SUFFIX = {TagId.BYTE: "b", TagId.SHORT: "s", TagId.INT: "", TagId.LONG: "L"}


def quote(text: str) -> str:
    q = "'" if use_single_quotes(text) else '"'
    return q + escape(text, q) + q


def format_key(key: str) -> str:
    return key if BARE_KEY.match(key) else quote(key)


def format_float(value: float, suffix: str) -> str:
    if math.isnan(value):
        return "NaN" + suffix
    if math.isinf(value):
        return ("Infinity" if value > 0 else "-Infinity") + suffix
    if suffix == "f":
        # Shortest decimal that still rounds to the same f32
        for digits in range(6, 10):
            text = f"{value:.{digits}g}"
            if to_f32(float(text)) == value:
                break
    else:
        text = repr(value)
    if "." not in text and "e" not in text:
        text += ".0"
    return text + suffix


class Build:
    """Writes tags as stringified NBT, compact by default or indented when `indent` is set."""

    def __init__(self, depth_limit: int = DEFAULT_DEPTH_LIMIT, indent: str = None):
        self.guard = DepthGuard(depth_limit)
        self.indent = indent
        self._stream = StringIO()
        self._level = 0

    def get(self) -> str:
        return self._stream.getvalue()

    def _newline(self):
        if self.indent is not None:
            self._stream.write("\n" + self.indent * self._level)

    def tag(self, tag: NbtTag):
        write = self._stream.write
        if tag.id in INTEGER_SUFFIX:
            write(f"{tag.value}{INTEGER_SUFFIX[tag.id]}")
        elif tag.id == TagId.FLOAT:
            write(format_float(tag.value, "f"))
        elif tag.id == TagId.DOUBLE:
            write(format_float(tag.value, "d"))
        elif tag.id == TagId.STRING:
            write(quote(tag.value))
        elif tag.id in ARRAY_PREFIX:
            suffix = ARRAY_SUFFIX[tag.id]
            write(f"[{ARRAY_PREFIX[tag.id]};")
            write(",".join(f"{v}{suffix}" for v in tag.value))
            write("]")
        elif tag.id == TagId.LIST:
            self.list(tag.value)
        elif tag.id == TagId.COMPOUND:
            self.compound(tag.value)

    def list(self, items):
        self.guard.enter()
        self._stream.write("[")
        if len(items):
            self._level += 1
            for i, item in enumerate(items):
                if i:
                    self._stream.write(",")
                self._newline()
                self.tag(item)
            self._level -= 1
            self._newline()
        self._stream.write("]")
        self.guard.leave()

    def compound(self, compound):
        self.guard.enter()
        self._stream.write("{")
        if len(compound):
            self._level += 1
            for i, (name, tag) in enumerate(compound.items()):
                if i:
                    self._stream.write(",")
                self._newline()
                self._stream.write(format_key(name))
                self._stream.write(": " if self.indent is not None else ":")
                self.tag(tag)
            self._level -= 1
            self._newline()
        self._stream.write("}")
        self.guard.leave()
