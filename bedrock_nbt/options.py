from dataclasses import dataclass, replace
from enum import Enum

DEFAULT_DEPTH_LIMIT = 512


class Flavor(Enum):
    """Wire flavors of binary NBT."""

    JAVA = "java"                        # big-endian, u16 lengths, modified UTF-8
    BEDROCK = "bedrock"                  # little-endian, u16 lengths, UTF-8 (LevelDB values, level.dat)
    BEDROCK_NETWORK = "bedrock_network"  # little-endian, varint lengths, zigzag varint Int/Long

    @property
    def little_endian(self) -> bool:
        return self is not Flavor.JAVA

    @property
    def varints(self) -> bool:
        return self is Flavor.BEDROCK_NETWORK


class RootPolicy(Enum):
    NAMED_COMPOUND_ONLY = "named_compound_only"
    ANY_NAMED = "any_named"
    ANY_UNNAMED = "any_unnamed"


class Compression(Enum):
    NONE = "none"
    GZIP = "gzip"
    ZLIB = "zlib"


@dataclass(frozen=True)
class NbtOptions:
    flavor: Flavor = Flavor.JAVA
    root_policy: RootPolicy = RootPolicy.NAMED_COMPOUND_ONLY
    depth_limit: int = DEFAULT_DEPTH_LIMIT
    preserve_order: bool = True
    approximate_float_equality: bool = False
    float_epsilon: float = 1e-6
    named_escapes: bool = True
    compression: Compression = Compression.NONE
    # Undecodable string bytes are kept as surrogate escapes and written back verbatim
    allow_invalid_strings: bool = False

    def but(self, **changes) -> "NbtOptions":
        """Copy with some fields swapped, e.g. `options.but(flavor=Flavor.BEDROCK)`."""
        return replace(self, **changes)


DEFAULT_OPTIONS = NbtOptions()
BEDROCK_OPTIONS = NbtOptions(flavor=Flavor.BEDROCK)
