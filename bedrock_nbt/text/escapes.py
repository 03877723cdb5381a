import unicodedata

from bedrock_nbt.errors import ParseError

SIMPLE_ESCAPES = {
    "\\": "\\",
    '"': '"',
    "'": "'",
    "b": "\b",
    "s": " ",
    "t": "\t",
    "n": "\n",
    "f": "\f",
    "r": "\r",
}

HEX_ESCAPES = {"x": 2, "u": 4, "U": 8}

_WRITE_ESCAPES = {
    "\\": "\\\\",
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def lookup_name(name: str) -> str:
    """Resolves a Unicode character name through the interpreter's read-only name table."""
    return unicodedata.lookup(name)


def read_escape(text: str, index: int, named_escapes: bool = True):
    """
    Decodes the escape whose backslash sits at `index`.
    Returns (character, index after the escape).
    """
    start = index
    index += 1
    if index >= len(text):
        raise ParseError("Unexpected end of input in escape sequence", start)
    kind = text[index]
    index += 1

    if kind in SIMPLE_ESCAPES:
        return SIMPLE_ESCAPES[kind], index

    if kind in HEX_ESCAPES:
        width = HEX_ESCAPES[kind]
        digits = text[index:index + width]
        if len(digits) != width or any(c not in "0123456789abcdefABCDEF" for c in digits):
            raise ParseError(f"Expected {width} hex digits after \\{kind}", start)
        code = int(digits, 16)
        if code > 0x10FFFF:
            raise ParseError(f"\\{kind}{digits} is not a Unicode code point", start)
        return chr(code), index + width

    if kind == "N":
        if not named_escapes:
            raise ParseError("Named escapes are disabled", start)
        if index >= len(text) or text[index] != "{":
            raise ParseError("Expected '{' after \\N", start)
        end = text.find("}", index)
        if end == -1:
            raise ParseError("Unterminated \\N{...} escape", start)
        name = text[index + 1:end]
        try:
            return lookup_name(name), end + 1
        except KeyError:
            raise ParseError(f"Unknown Unicode character name {name!r}", start) from None

    raise ParseError(f"Unknown escape sequence \\{kind}", start)


def escape(text: str, quote: str) -> str:
    """Escapes `text` for use between two `quote` characters."""
    out = []
    for c in text:
        if c == quote:
            out.append("\\" + c)
        elif c in _WRITE_ESCAPES:
            out.append(_WRITE_ESCAPES[c])
        elif ord(c) < 0x20 or ord(c) == 0x7F:
            out.append(f"\\x{ord(c):02x}")
        else:
            out.append(c)
    return "".join(out)


def use_single_quotes(text: str) -> bool:
    single_quote_count = text.count("'")
    double_quote_count = text.count('"')
    if single_quote_count == double_quote_count:
        if single_quote_count == 0:
            return False
        return text.find("'") > text.find('"')
    return single_quote_count < double_quote_count
