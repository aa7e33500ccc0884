"""
Monitoring utilities for shardio.
"""

from shardio.monitoring.metrics import (
    BLOCK_BYTES,
    ENTRIES_ENUMERATED,
    FILES_OPENED,
    RECORDS_READ,
    RECORDS_WRITTEN,
    SHARDS_WRITTEN,
    generate_latest,
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
