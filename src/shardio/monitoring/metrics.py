"""Prometheus metrics for shardio readers and writers."""

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
)

FILES_OPENED = Counter(
    "shardio_files_opened_total",
    "Files opened through the filesystem capability",
    ["mode"],
)
ENTRIES_ENUMERATED = Counter(
    "shardio_entries_enumerated_total",
    "Directory entries seen during enumeration",
    ["outcome"],
)
RECORDS_READ = Counter(
    "shardio_records_read_total",
    "Records decoded from container files",
)
RECORDS_WRITTEN = Counter(
    "shardio_records_written_total",
    "Records appended to shards",
    ["codec"],
)
SHARDS_WRITTEN = Counter(
    "shardio_shards_written_total",
    "Shard files closed successfully",
    ["codec"],
)

BLOCK_BYTES = Histogram(
    "shardio_block_bytes",
    "Compressed size of container data blocks written",
    ["codec"],
    buckets=(1024, 16 * 1024, 64 * 1024, 256 * 1024, 1024 * 1024, 4 * 1024 * 1024),
)

__all__ = [
    "BLOCK_BYTES",
    "FILES_OPENED",
    "ENTRIES_ENUMERATED",
    "RECORDS_READ",
    "RECORDS_WRITTEN",
    "SHARDS_WRITTEN",
    "generate_latest",
]
