from typing import Callable, NamedTuple

from bedrock_nbt.leveldb import values as v
from bedrock_nbt.leveldb.key import KeyVariant
from bedrock_nbt.tag import NbtTag


class ValueCodec(NamedTuple):
    read: Callable
    write: Callable
    # Type (or tuple of types) an entry's value must have to be written back
    payload: object


CHUNK_VERSION = ValueCodec(v.read_chunk_version, v.write_chunk_version, int)
COMPOUND = ValueCodec(v.read_compound, v.write_compound, (tuple, NbtTag))
COMPOUNDS = ValueCodec(v.read_compounds, v.write_compounds, list)
OPAQUE = ValueCodec(v.read_opaque, v.write_opaque, (bytes, bytearray))
U64 = ValueCodec(v.read_u64, v.write_u64, int)

REGISTRY = {
    # Chunk records
    KeyVariant.DATA_3D: ValueCodec(v.read_data_3d, v.write_data_3d, v.Data3D),
    KeyVariant.VERSION: CHUNK_VERSION,
    KeyVariant.DATA_2D: ValueCodec(v.read_data_2d, v.write_data_2d, v.Data2D),
    KeyVariant.LEGACY_DATA_2D: ValueCodec(v.read_legacy_data_2d, v.write_legacy_data_2d, v.LegacyData2D),
    KeyVariant.SUBCHUNK_BLOCKS: ValueCodec(v.read_subchunk, v.write_subchunk, (v.Subchunk, v.LegacySubchunk)),
    KeyVariant.LEGACY_TERRAIN: OPAQUE,
    KeyVariant.BLOCK_ENTITIES: COMPOUNDS,
    KeyVariant.ENTITIES: COMPOUNDS,
    KeyVariant.PENDING_TICKS: COMPOUNDS,
    KeyVariant.LEGACY_EXTRA_BLOCK_DATA: OPAQUE,
    KeyVariant.BIOME_STATE: ValueCodec(v.read_biome_state, v.write_biome_state, v.BiomeState),
    KeyVariant.FINALIZED_STATE: ValueCodec(v.read_finalized_state, v.write_finalized_state, int),
    KeyVariant.CONVERSION_DATA: OPAQUE,
    KeyVariant.BORDER_BLOCKS: ValueCodec(v.read_border_blocks, v.write_border_blocks, list),
    KeyVariant.HARDCODED_SPAWNERS: ValueCodec(v.read_hardcoded_spawners, v.write_hardcoded_spawners, list),
    KeyVariant.RANDOM_TICKS: COMPOUNDS,
    KeyVariant.CHECKSUMS: ValueCodec(v.read_checksums, v.write_checksums, list),
    KeyVariant.GENERATION_SEED: U64,
    KeyVariant.CAVES_AND_CLIFFS_BLENDING: OPAQUE,
    KeyVariant.BLENDING_BIOME_HEIGHT: OPAQUE,
    KeyVariant.META_DATA_HASH: U64,
    KeyVariant.BLENDING_DATA: OPAQUE,
    KeyVariant.ACTOR_DIGEST_VERSION: ValueCodec(v.read_actor_digest_version, v.write_actor_digest_version, int),
    KeyVariant.LEGACY_VERSION: CHUNK_VERSION,
    KeyVariant.AABB_VOLUMES: OPAQUE,

    # Actors
    KeyVariant.ACTOR_DIGEST: ValueCodec(v.read_actor_digest, v.write_actor_digest, list),
    KeyVariant.ACTOR: COMPOUND,

    # World records that are not a single compound
    KeyVariant.LEVEL_CHUNK_META_DATA_DICTIONARY: ValueCodec(v.read_meta_data_dictionary, v.write_meta_data_dictionary, dict),
    KeyVariant.FLAT_WORLD_LAYERS: ValueCodec(v.read_flat_world_layers, v.write_flat_world_layers, list),
    KeyVariant.LEVEL_SPAWN_WAS_FIXED: ValueCodec(v.read_spawn_was_fixed, v.write_spawn_was_fixed, bool),

    # World records holding one compound
    KeyVariant.AUTONOMOUS_ENTITIES: COMPOUND,
    KeyVariant.LOCAL_PLAYER: COMPOUND,
    KeyVariant.PLAYER: COMPOUND,
    KeyVariant.LEGACY_PLAYER: COMPOUND,
    KeyVariant.PLAYER_SERVER: COMPOUND,
    KeyVariant.VILLAGE_DWELLERS: COMPOUND,
    KeyVariant.VILLAGE_INFO: COMPOUND,
    KeyVariant.VILLAGE_PLAYERS: COMPOUND,
    KeyVariant.VILLAGE_POI: COMPOUND,
    KeyVariant.VILLAGE_RAID: COMPOUND,
    KeyVariant.MAP: COMPOUND,
    KeyVariant.STRUCTURE_TEMPLATE: COMPOUND,
    KeyVariant.TICKING_AREA: COMPOUND,
    KeyVariant.SCOREBOARD: COMPOUND,
    KeyVariant.BIOME_DATA: COMPOUND,
    KeyVariant.BIOME_IDS_TABLE: COMPOUND,
    KeyVariant.MOB_EVENTS: COMPOUND,
    KeyVariant.PORTALS: COMPOUND,
    KeyVariant.POSITION_TRACKING_DB: COMPOUND,
    KeyVariant.POSITION_TRACKING_LAST_ID: COMPOUND,
    KeyVariant.WANDERING_TRADER_SCHEDULER: COMPOUND,
    KeyVariant.M_VILLAGES: COMPOUND,
    KeyVariant.VILLAGES: COMPOUND,
    KeyVariant.DIMENSION_0: COMPOUND,
    KeyVariant.DIMENSION_1: COMPOUND,
    KeyVariant.DIMENSION_2: COMPOUND,
    KeyVariant.OVERWORLD: COMPOUND,
    KeyVariant.NETHER: COMPOUND,
    KeyVariant.THE_END: COMPOUND,
}

assert set(KeyVariant) - REGISTRY.keys() == {KeyVariant.UNKNOWN}
