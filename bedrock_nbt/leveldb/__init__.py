from bedrock_nbt.leveldb.entry import Entry, RawEntry, RawValue, decode, encode
from bedrock_nbt.leveldb.key import KeyVariant, DBKey, ChunkPos, ActorID, classify, encode_key
from bedrock_nbt.leveldb.palette import PalettedStorage
from bedrock_nbt.leveldb.registry import REGISTRY, ValueCodec
from bedrock_nbt.leveldb.values import NamedTag
