from dataclasses import dataclass
from typing import NamedTuple, Optional
from enum import Enum
import struct
import re
from uuid import UUID

from bedrock_nbt.logger import logger as l

logger = l.create_sub_logger("leveldb")


class KeyVariant(Enum):
    # Per-chunk records, keyed by chunk position plus a tag byte
    DATA_3D = "Data3D"
    VERSION = "Version"
    DATA_2D = "Data2D"
    LEGACY_DATA_2D = "LegacyData2D"
    SUBCHUNK_BLOCKS = "SubchunkBlocks"
    LEGACY_TERRAIN = "LegacyTerrain"
    BLOCK_ENTITIES = "BlockEntities"
    ENTITIES = "Entities"
    PENDING_TICKS = "PendingTicks"
    LEGACY_EXTRA_BLOCK_DATA = "LegacyExtraBlockData"
    BIOME_STATE = "BiomeState"
    FINALIZED_STATE = "FinalizedState"
    CONVERSION_DATA = "ConversionData"
    BORDER_BLOCKS = "BorderBlocks"
    HARDCODED_SPAWNERS = "HardcodedSpawners"
    RANDOM_TICKS = "RandomTicks"
    CHECKSUMS = "Checksums"
    GENERATION_SEED = "GenerationSeed"
    CAVES_AND_CLIFFS_BLENDING = "CavesAndCliffsBlending"
    BLENDING_BIOME_HEIGHT = "BlendingBiomeHeight"
    META_DATA_HASH = "MetaDataHash"
    BLENDING_DATA = "BlendingData"
    ACTOR_DIGEST_VERSION = "ActorDigestVersion"
    LEGACY_VERSION = "LegacyVersion"
    AABB_VOLUMES = "AabbVolumes"

    # Actors
    ACTOR_DIGEST = "ActorDigest"
    ACTOR = "Actor"

    # World-wide records
    LEVEL_CHUNK_META_DATA_DICTIONARY = "LevelChunkMetaDataDictionary"
    AUTONOMOUS_ENTITIES = "AutonomousEntities"
    LOCAL_PLAYER = "LocalPlayer"
    PLAYER = "Player"
    LEGACY_PLAYER = "LegacyPlayer"
    PLAYER_SERVER = "PlayerServer"
    VILLAGE_DWELLERS = "VillageDwellers"
    VILLAGE_INFO = "VillageInfo"
    VILLAGE_PLAYERS = "VillagePlayers"
    VILLAGE_POI = "VillagePOI"
    VILLAGE_RAID = "VillageRaid"
    MAP = "Map"
    STRUCTURE_TEMPLATE = "StructureTemplate"
    TICKING_AREA = "TickingArea"
    SCOREBOARD = "Scoreboard"
    BIOME_DATA = "BiomeData"
    BIOME_IDS_TABLE = "BiomeIdsTable"
    MOB_EVENTS = "MobEvents"
    PORTALS = "Portals"
    POSITION_TRACKING_DB = "PositionTrackingDB"
    POSITION_TRACKING_LAST_ID = "PositionTrackingLastId"
    WANDERING_TRADER_SCHEDULER = "WanderingTraderScheduler"
    FLAT_WORLD_LAYERS = "FlatWorldLayers"
    LEVEL_SPAWN_WAS_FIXED = "LevelSpawnWasFixed"
    M_VILLAGES = "MVillages"
    VILLAGES = "Villages"
    DIMENSION_0 = "Dimension0"
    DIMENSION_1 = "Dimension1"
    DIMENSION_2 = "Dimension2"
    OVERWORLD = "Overworld"
    NETHER = "Nether"
    THE_END = "TheEnd"

    UNKNOWN = "Unknown"


CHUNK_TAGS = {
    43: KeyVariant.DATA_3D,
    44: KeyVariant.VERSION,
    45: KeyVariant.DATA_2D,
    46: KeyVariant.LEGACY_DATA_2D,
    48: KeyVariant.LEGACY_TERRAIN,
    49: KeyVariant.BLOCK_ENTITIES,
    50: KeyVariant.ENTITIES,
    51: KeyVariant.PENDING_TICKS,
    52: KeyVariant.LEGACY_EXTRA_BLOCK_DATA,
    53: KeyVariant.BIOME_STATE,
    54: KeyVariant.FINALIZED_STATE,
    55: KeyVariant.CONVERSION_DATA,
    56: KeyVariant.BORDER_BLOCKS,
    57: KeyVariant.HARDCODED_SPAWNERS,
    58: KeyVariant.RANDOM_TICKS,
    59: KeyVariant.CHECKSUMS,
    60: KeyVariant.GENERATION_SEED,
    61: KeyVariant.CAVES_AND_CLIFFS_BLENDING,
    62: KeyVariant.BLENDING_BIOME_HEIGHT,
    63: KeyVariant.META_DATA_HASH,
    64: KeyVariant.BLENDING_DATA,
    65: KeyVariant.ACTOR_DIGEST_VERSION,
    118: KeyVariant.LEGACY_VERSION,
    119: KeyVariant.AABB_VOLUMES,
}
CHUNK_TAG_BYTES = {variant: tag for tag, variant in CHUNK_TAGS.items()}

SUBCHUNK_TAG = 47  # '/'

LITERAL_KEYS = {
    "~local_player": KeyVariant.LOCAL_PLAYER,
    "LevelChunkMetaDataDictionary": KeyVariant.LEVEL_CHUNK_META_DATA_DICTIONARY,
    "AutonomousEntities": KeyVariant.AUTONOMOUS_ENTITIES,
    "scoreboard": KeyVariant.SCOREBOARD,
    "BiomeData": KeyVariant.BIOME_DATA,
    "BiomeIdsTable": KeyVariant.BIOME_IDS_TABLE,
    "mobevents": KeyVariant.MOB_EVENTS,
    "portals": KeyVariant.PORTALS,
    "PositionTrackDB-LastId": KeyVariant.POSITION_TRACKING_LAST_ID,
    "schedulerWT": KeyVariant.WANDERING_TRADER_SCHEDULER,
    "game_flatworldlayers": KeyVariant.FLAT_WORLD_LAYERS,
    "LevelSpawnWasFixed": KeyVariant.LEVEL_SPAWN_WAS_FIXED,
    "mVillages": KeyVariant.M_VILLAGES,
    "villages": KeyVariant.VILLAGES,
    "dimension0": KeyVariant.DIMENSION_0,
    "dimension1": KeyVariant.DIMENSION_1,
    "dimension2": KeyVariant.DIMENSION_2,
    "Overworld": KeyVariant.OVERWORLD,
    "Nether": KeyVariant.NETHER,
    "TheEnd": KeyVariant.THE_END,
}
LITERAL_NAMES = {variant: name for name, variant in LITERAL_KEYS.items()}

VILLAGE_KINDS = {
    "DWELLERS": KeyVariant.VILLAGE_DWELLERS,
    "INFO": KeyVariant.VILLAGE_INFO,
    "PLAYERS": KeyVariant.VILLAGE_PLAYERS,
    "POI": KeyVariant.VILLAGE_POI,
    "RAID": KeyVariant.VILLAGE_RAID,
}
VILLAGE_SUFFIXES = {variant: kind for kind, variant in VILLAGE_KINDS.items()}

DIMENSION_IDS = {0: "Overworld", 1: "Nether", 2: "TheEnd"}

DECIMAL = re.compile(r"^-?[0-9]+\Z")


class ChunkPos(NamedTuple):
    """Chunk coordinates plus the numeric dimension; None means the Overworld id was left out of the key."""
    x: int
    z: int
    dimension: Optional[int] = None

    @property
    def dimension_id(self) -> int:
        return 0 if self.dimension is None else self.dimension

    def to_bytes(self) -> bytes:
        if self.dimension is None:
            return struct.pack("<ii", self.x, self.z)
        return struct.pack("<iiI", self.x, self.z, self.dimension)

    @classmethod
    def parse(cls, raw: bytes):
        if len(raw) == 8:
            return cls(*struct.unpack("<ii", raw))
        if len(raw) == 12:
            return cls(*struct.unpack("<iiI", raw))
        return None


class ActorID(NamedTuple):
    upper: int
    lower: int

    def to_bytes(self) -> bytes:
        return struct.pack(">II", self.upper, self.lower)

    @classmethod
    def parse(cls, raw: bytes):
        return cls(*struct.unpack(">II", raw))


@dataclass(frozen=True)
class DBKey:
    """A classified LevelDB key. Which fields are set depends on `variant`."""
    variant: KeyVariant
    pos: Optional[ChunkPos] = None
    subchunk_y: Optional[int] = None
    actor: Optional[ActorID] = None
    uuid: Optional[UUID] = None
    dimension: Optional[str] = None
    number: Optional[int] = None
    identifier: Optional[str] = None
    raw: Optional[bytes] = None

    @property
    def is_chunk_key(self) -> bool:
        return self.variant in CHUNK_TAG_BYTES or self.variant is KeyVariant.SUBCHUNK_BLOCKS

    def to_bytes(self) -> bytes:
        return encode_key(self)


#-----------------------------------------------------------

def _parse_uuid(text: str):
    try:
        value = UUID(text)
    except ValueError:
        return None
    # Only the canonical lowercase form re-encodes to the same bytes
    return value if str(value) == text else None


def _parse_decimal(text: str, low: int, high: int):
    if not DECIMAL.match(text):
        return None
    value = int(text)
    if str(value) != text or not low <= value <= high:
        return None
    return value


def _classify_binary(raw: bytes):
    if raw.startswith(b"digp") and len(raw) in (12, 16):
        return DBKey(KeyVariant.ACTOR_DIGEST, pos=ChunkPos.parse(raw[4:]))

    if len(raw) == 19 and raw.startswith(b"actorprefix"):
        return DBKey(KeyVariant.ACTOR, actor=ActorID.parse(raw[11:]))

    # "map_..." and legacy "player_<id>" keys can have chunk-key lengths
    if raw.startswith(b"map") or raw.startswith(b"player_"):
        return None

    if len(raw) in (9, 13) and raw[-1] in CHUNK_TAGS:
        return DBKey(CHUNK_TAGS[raw[-1]], pos=ChunkPos.parse(raw[:-1]))

    if len(raw) in (10, 14) and raw[-2] == SUBCHUNK_TAG:
        y = raw[-1] - 256 if raw[-1] > 127 else raw[-1]
        return DBKey(KeyVariant.SUBCHUNK_BLOCKS, pos=ChunkPos.parse(raw[:-2]), subchunk_y=y)

    return None


def _classify_village(text: str, parts: list):
    if len(parts) not in (3, 4) or parts[0] != "VILLAGE" or parts[-1] not in VILLAGE_KINDS:
        return None
    village_id = _parse_uuid(parts[-2])
    if village_id is None:
        return None
    dimension = parts[1] if len(parts) == 4 else None
    return DBKey(VILLAGE_KINDS[parts[-1]], uuid=village_id, dimension=dimension)


def _classify_map(text: str, parts: list):
    if len(parts) == 2 and parts[0] == "map":
        map_id = _parse_decimal(parts[1], -(1 << 63), (1 << 63) - 1)
        if map_id is not None:
            return DBKey(KeyVariant.MAP, number=map_id)
    return None


def _classify_player(text: str, parts: list):
    if len(parts) == 2 and parts[0] == "player":
        player_id = _parse_uuid(parts[1])
        if player_id is not None:
            return DBKey(KeyVariant.PLAYER, uuid=player_id)
        number = _parse_decimal(parts[1], 0, (1 << 64) - 1)
        if number is not None:
            return DBKey(KeyVariant.LEGACY_PLAYER, number=number)
    elif len(parts) == 3 and parts[0] == "player" and parts[1] == "server":
        player_id = _parse_uuid(parts[2])
        if player_id is not None:
            return DBKey(KeyVariant.PLAYER_SERVER, uuid=player_id)
    return None


def _classify_ticking_area(text: str, parts: list):
    if len(parts) == 2 and parts[0] == "tickingarea":
        area_id = _parse_uuid(parts[1])
        if area_id is not None:
            return DBKey(KeyVariant.TICKING_AREA, uuid=area_id)
    return None


def _classify_structure(text: str, parts: list):
    identifier = text[len("structuretemplate_"):] if text.startswith("structuretemplate_") else None
    if identifier and identifier.count(":") == 1 and all(identifier.split(":")):
        return DBKey(KeyVariant.STRUCTURE_TEMPLATE, identifier=identifier)
    return None


def _classify_position_tracking(text: str, parts: list):
    if text.startswith("PosTrackDB-0x"):
        digits = text[len("PosTrackDB-0x"):]
        if len(digits) == 8 and all(c in "0123456789abcdef" for c in digits):
            return DBKey(KeyVariant.POSITION_TRACKING_DB, number=int(digits, 16))
    return None


def _classify_literal(text: str, parts: list):
    variant = LITERAL_KEYS.get(text)
    return DBKey(variant) if variant is not None else None


# Tried in order against keys that decode as UTF-8
STRING_RULES = (
    _classify_village,
    _classify_map,
    _classify_player,
    _classify_ticking_area,
    _classify_structure,
    _classify_position_tracking,
    _classify_literal,
)


def classify(raw: bytes) -> DBKey:
    """Maps raw key bytes to a key variant. Unrecognised keys come back as `UNKNOWN` carrying the raw bytes."""
    raw = bytes(raw)
    key = _classify_binary(raw)
    if key is not None:
        return key

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        text = None

    if text is not None:
        parts = text.split("_")
        for rule in STRING_RULES:
            key = rule(text, parts)
            if key is not None:
                return key

    logger.debug(f"Could not parse key: {raw[:100]!r}")
    return DBKey(KeyVariant.UNKNOWN, raw=raw)


def encode_key(key: DBKey) -> bytes:
    variant = key.variant

    if variant in CHUNK_TAG_BYTES:
        return key.pos.to_bytes() + bytes([CHUNK_TAG_BYTES[variant]])
    if variant is KeyVariant.SUBCHUNK_BLOCKS:
        return key.pos.to_bytes() + bytes([SUBCHUNK_TAG, key.subchunk_y & 0xFF])
    if variant is KeyVariant.ACTOR_DIGEST:
        return b"digp" + key.pos.to_bytes()
    if variant is KeyVariant.ACTOR:
        return b"actorprefix" + key.actor.to_bytes()
    if variant in VILLAGE_SUFFIXES:
        dimension = f"{key.dimension}_" if key.dimension is not None else ""
        return f"VILLAGE_{dimension}{key.uuid}_{VILLAGE_SUFFIXES[variant]}".encode("utf-8")
    if variant is KeyVariant.MAP:
        return f"map_{key.number}".encode("utf-8")
    if variant is KeyVariant.PLAYER:
        return f"player_{key.uuid}".encode("utf-8")
    if variant is KeyVariant.LEGACY_PLAYER:
        return f"player_{key.number}".encode("utf-8")
    if variant is KeyVariant.PLAYER_SERVER:
        return f"player_server_{key.uuid}".encode("utf-8")
    if variant is KeyVariant.TICKING_AREA:
        return f"tickingarea_{key.uuid}".encode("utf-8")
    if variant is KeyVariant.STRUCTURE_TEMPLATE:
        return f"structuretemplate_{key.identifier}".encode("utf-8")
    if variant is KeyVariant.POSITION_TRACKING_DB:
        return f"PosTrackDB-0x{key.number:08x}".encode("utf-8")
    if variant in LITERAL_NAMES:
        return LITERAL_NAMES[variant].encode("utf-8")
    if variant is KeyVariant.UNKNOWN:
        return key.raw
    raise ValueError(f"Cannot encode key variant {variant}")
