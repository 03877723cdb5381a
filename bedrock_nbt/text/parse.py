import math
import re

from bedrock_nbt.errors import ParseError, NbtTypeError
from bedrock_nbt.options import DEFAULT_DEPTH_LIMIT
from bedrock_nbt.policy import DepthGuard
from bedrock_nbt.tag import NbtTag, NbtCompound, NbtList, TagId, INTEGER_RANGES, to_f32
from bedrock_nbt.text.escapes import read_escape

UNQUOTED_CHARS = frozenset("0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz_-.+")

ARRAY_PREFIXES = {"B": TagId.BYTE_ARRAY, "I": TagId.INT_ARRAY, "L": TagId.LONG_ARRAY}
ARRAY_ELEMENTS = {TagId.BYTE_ARRAY: TagId.BYTE, TagId.INT_ARRAY: TagId.INT, TagId.LONG_ARRAY: TagId.LONG}

SPECIAL_FLOATS = {"infinity": math.inf, "+infinity": math.inf, "-infinity": -math.inf, "nan": math.nan}


class Parse:
    """
    Stringified NBT reader.

    Example: {display:{Name:'{"text":"Excalibur"}'},Count:1b,Pos:[0.5d,64.0d,0.5d]}
    """

    regexDoubleNoSuffix = re.compile(r'''^[-+]?([0-9]+[.]|[0-9]*[.][0-9]+)(e[-+]?[0-9]+)?$|^[-+]?[0-9]+e[-+]?[0-9]+$''', re.IGNORECASE)
    regexDouble         = re.compile(r'''^[-+]?([0-9]+[.]?|[0-9]*[.][0-9]+)(e[-+]?[0-9]+)?d$''', re.IGNORECASE)
    regexFloat          = re.compile(r'''^[-+]?([0-9]+[.]?|[0-9]*[.][0-9]+)(e[-+]?[0-9]+)?f$''', re.IGNORECASE)
    regexByte           = re.compile(r'''^[-+]?[0-9]+b$''', re.IGNORECASE)
    regexShort          = re.compile(r'''^[-+]?[0-9]+s$''', re.IGNORECASE)
    regexLong           = re.compile(r'''^[-+]?[0-9]+l$''', re.IGNORECASE)
    regexInt            = re.compile(r'''^[-+]?[0-9]+$''')
    regexSpecialFloat   = re.compile(r'''^([-+]?infinity|nan)([df])$''', re.IGNORECASE)

    def __init__(self, text: str, depth_limit: int = DEFAULT_DEPTH_LIMIT, named_escapes: bool = True, preserve_order: bool = True):
        self.text = text
        self.cursor = 0
        self.guard = DepthGuard(depth_limit)
        self.named_escapes = named_escapes
        self.preserve_order = preserve_order

    def parse(self) -> NbtTag:
        """Parses exactly one value; anything but whitespace after it is an error."""
        tag = self.any_tag()
        self.skip_whitespace()
        if self.can_read():
            self.raise_error("Unexpected trailing characters")
        return tag

    #-----------------------------------------------------------

    def can_read(self, length: int = 1) -> bool:
        return self.cursor + length <= len(self.text)

    def peek(self, offset: int = 0) -> str:
        return self.text[self.cursor + offset]

    def skip_whitespace(self):
        while self.can_read() and self.text[self.cursor].isspace():
            self.cursor += 1

    def expect(self, char: str):
        self.skip_whitespace()
        if not self.can_read() or self.peek() != char:
            found = repr(self.peek()) if self.can_read() else "end of input"
            self.raise_error(f"Expected {char!r}, found {found}")
        self.cursor += 1

    def raise_error(self, message: str, index: int = None):
        raise ParseError(message, self.cursor if index is None else index)

    def seek_to_next_element(self) -> bool:
        """Consumes a ',' if one follows. Returns whether it did."""
        self.skip_whitespace()
        if self.can_read() and self.peek() == ",":
            self.cursor += 1
            self.skip_whitespace()
            return True
        return False

    #-----------------------------------------------------------

    def quoted_string(self) -> str:
        quote = self.peek()
        self.cursor += 1
        start = self.cursor - 1
        out = []
        while self.can_read():
            c = self.text[self.cursor]
            if c == "\\":
                char, self.cursor = read_escape(self.text, self.cursor, self.named_escapes)
                out.append(char)
            elif c == quote:
                self.cursor += 1
                return "".join(out)
            else:
                out.append(c)
                self.cursor += 1
        self.raise_error("Unterminated string", start)

    def unquoted_string(self) -> str:
        start = self.cursor
        while self.can_read() and self.text[self.cursor] in UNQUOTED_CHARS:
            self.cursor += 1
        return self.text[start:self.cursor]

    def key_string(self) -> str:
        self.skip_whitespace()
        if not self.can_read():
            self.raise_error("Expected a compound key")
        if self.peek() in "\"'":
            return self.quoted_string()
        key = self.unquoted_string()
        if not key:
            self.raise_error("Expected a compound key")
        return key

    def literal(self, token: str, start: int) -> NbtTag:
        """Classifies an unquoted token as a number, a boolean or a bare string."""
        try:
            if self.regexByte.match(token):
                return self._integer(TagId.BYTE, token[:-1], start)
            if self.regexShort.match(token):
                return self._integer(TagId.SHORT, token[:-1], start)
            if self.regexLong.match(token):
                return self._integer(TagId.LONG, token[:-1], start)
            if self.regexInt.match(token):
                return self._integer(TagId.INT, token, start)
            if self.regexFloat.match(token):
                return NbtTag._trusted(TagId.FLOAT, to_f32(float(token[:-1])))
            if self.regexDouble.match(token):
                return NbtTag._trusted(TagId.DOUBLE, float(token[:-1]))
            if self.regexDoubleNoSuffix.match(token):
                return NbtTag._trusted(TagId.DOUBLE, float(token))
        except NbtTypeError as e:
            self.raise_error(str(e), start)

        special = self.regexSpecialFloat.match(token)
        if special:
            value = SPECIAL_FLOATS[special.group(1).lower()]
            if special.group(2).lower() == "f":
                return NbtTag._trusted(TagId.FLOAT, value)
            return NbtTag._trusted(TagId.DOUBLE, value)

        if token.lower() == "true":
            return NbtTag._trusted(TagId.BYTE, 1)
        if token.lower() == "false":
            return NbtTag._trusted(TagId.BYTE, 0)

        return NbtTag._trusted(TagId.STRING, token)

    def _integer(self, tag_id: TagId, digits: str, start: int) -> NbtTag:
        value = int(digits)
        low, high = INTEGER_RANGES[tag_id]
        if not low <= value <= high:
            self.raise_error(f"Value {value} out of range for {tag_id.label}", start)
        return NbtTag._trusted(tag_id, value)

    def literal_or_string(self) -> NbtTag:
        self.skip_whitespace()
        start = self.cursor
        if self.peek() in "\"'":
            return NbtTag._trusted(TagId.STRING, self.quoted_string())
        token = self.unquoted_string()
        if not token:
            self.raise_error(f"Unexpected character {self.peek()!r}" if self.can_read() else "Unexpected end of input", start)
        return self.literal(token, start)

    def any_tag(self) -> NbtTag:
        self.skip_whitespace()
        if not self.can_read():
            self.raise_error("Expected a value, found end of input")
        char = self.peek()
        if char == "{":
            return NbtTag._trusted(TagId.COMPOUND, self.compound())
        if char == "[":
            return self.array()
        return self.literal_or_string()

    def array(self) -> NbtTag:
        if self.can_read(3) and self.peek(1) in ARRAY_PREFIXES and self.peek(2) == ";":
            return self.typed_array()
        return NbtTag._trusted(TagId.LIST, self.list())

    def list(self) -> NbtList:
        self.guard.enter(self.cursor)
        self.expect("[")
        self.skip_whitespace()
        items = []
        element_id = TagId.END
        while self.can_read() and self.peek() != "]":
            start = self.cursor
            tag = self.any_tag()
            if element_id == TagId.END:
                element_id = tag.id
            elif tag.id != element_id:
                self.raise_error(f"Mixed types in list: {tag.id.label} among {element_id.label}", start)
            items.append(tag)
            if not self.seek_to_next_element():
                break
        self.expect("]")
        self.guard.leave()
        return NbtList._trusted(element_id, items)

    def typed_array(self) -> NbtTag:
        self.expect("[")
        array_id = ARRAY_PREFIXES[self.peek()]
        element_id = ARRAY_ELEMENTS[array_id]
        self.cursor += 2
        self.skip_whitespace()
        values = []
        while self.can_read() and self.peek() != "]":
            start = self.cursor
            tag = self.literal_or_string()
            # Unsuffixed integers are accepted in any typed array when they fit
            if tag.id == TagId.INT and element_id != TagId.INT:
                low, high = INTEGER_RANGES[element_id]
                if low <= tag.value <= high:
                    tag = NbtTag._trusted(element_id, tag.value)
            if tag.id != element_id:
                self.raise_error(f"{tag.id.label} in {array_id.label}", start)
            values.append(tag.value)
            if not self.seek_to_next_element():
                break
        self.expect("]")
        return NbtTag(array_id, values)

    def compound(self) -> NbtCompound:
        self.guard.enter(self.cursor)
        self.expect("{")
        compound = NbtCompound(preserve_order=self.preserve_order)
        self.skip_whitespace()
        while self.can_read() and self.peek() != "}":
            start = self.cursor
            key = self.key_string()
            if key in compound:
                self.raise_error(f"Duplicate compound key {key!r}", start)
            self.expect(":")
            compound._put(key, self.any_tag())
            if not self.seek_to_next_element():
                break
        self.expect("}")
        self.guard.leave()
        return compound
