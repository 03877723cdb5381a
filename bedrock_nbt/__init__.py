from bedrock_nbt.errors import (
    NbtError,
    NbtIoError,
    NbtTypeError,
    DepthExceeded,
    EncodingError,
    ParseError,
    RootPolicyViolation,
    EntryDecodeError,
)
from bedrock_nbt.options import NbtOptions, Flavor, RootPolicy, Compression, DEFAULT_OPTIONS, BEDROCK_OPTIONS
from bedrock_nbt.tag import NbtTag, NbtCompound, NbtList, TagId, tags_equal
from bedrock_nbt.binary import (
    decode as decode_nbt,
    encode as encode_nbt,
    decode_prefix,
    decode_many,
    read_named_root,
    write_named_root,
    read_level_dat,
    write_level_dat,
)
from bedrock_nbt.text import parse_text, to_text
from bedrock_nbt.leveldb import decode, encode, classify, Entry, RawEntry, RawValue, KeyVariant, DBKey, NamedTag
from bedrock_nbt.crawl import crawl, CrawlReport, CrawlFailure
from bedrock_nbt.config import config, Config

__version__ = "0.3.0"
