"""
Container format constants, reserved metadata keys and sharding defaults.
"""

# Object container header (Avro 1.x)
MAGIC = b"Obj\x01"
MAGIC_SIZE = len(MAGIC)
SYNC_SIZE = 16

# Header metadata map; values are raw bytes
META_SCHEMA = {"type": "map", "values": "bytes"}

# Header record: magic, metadata map, sync marker
HEADER_SCHEMA = {
    "type": "record",
    "name": "org.apache.avro.file.Header",
    "fields": [
        {"name": "magic", "type": {"type": "fixed", "name": "magic", "size": MAGIC_SIZE}},
        {"name": "meta", "type": META_SCHEMA},
        {"name": "sync", "type": {"type": "fixed", "name": "sync", "size": SYNC_SIZE}},
    ],
}

# Uncompressed bytes buffered before a data block is emitted
DEFAULT_SYNC_INTERVAL = 4000 * SYNC_SIZE

CODEC_KEY = "avro.codec"
SCHEMA_KEY = "avro.schema"
RESERVED_META_PREFIX = "avro."

NULL_CODEC = "null"

# Metadata longs are stored as their decimal representation
META_LONG_MIN = -(1 << 63)
META_LONG_MAX = (1 << 63) - 1

# Shard naming
DEFAULT_SHARD_NAME_TEMPLATE = "-SSSSS-of-NNNNN"
AUTO_SHARDS = 0

# Automatic shard count policy
DEFAULT_TARGET_SHARD_BYTES = 64 * 1024 * 1024  # 64 MB
DEFAULT_MAX_AUTO_SHARDS = 1000
DEFAULT_SIZE_SAMPLE = 100  # records encoded to estimate total size

# Entries with these leading characters are hidden / in-progress markers
HIDDEN_PREFIXES = ("_", ".")

# I/O buffers
DEFAULT_READ_BUFFER_SIZE = 1024 * 1024  # 1 MB
DEFAULT_SPOOL_MAX_SIZE = 16 * 1024 * 1024  # 16 MB

GLOB_CHARS = frozenset("*?[")
