from bedrock_nbt.errors import ParseError
from bedrock_nbt.options import NbtOptions, DEFAULT_OPTIONS
from bedrock_nbt.tag import NbtTag, TagId
from bedrock_nbt.text.build import Build
from bedrock_nbt.text.parse import Parse

def parse_text(text: str, options: NbtOptions = DEFAULT_OPTIONS) -> NbtTag:
    """Parses one stringified NBT value, e.g. `{Count:1b,id:"minecraft:stone"}`."""
    return Parse(text, options.depth_limit, options.named_escapes, options.preserve_order).parse()


def parse_compound_text(text: str, options: NbtOptions = DEFAULT_OPTIONS) -> NbtTag:
    tag = parse_text(text, options)
    if tag.id != TagId.COMPOUND:
        raise ParseError(f"Expected a Compound, got {tag.id.label}", 0)
    return tag


def to_text(tag: NbtTag, options: NbtOptions = DEFAULT_OPTIONS, indent: str = None) -> str:
    b = Build(options.depth_limit, indent)
    b.tag(tag)
    return b.get()
