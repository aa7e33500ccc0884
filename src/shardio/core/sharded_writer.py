"""
Sharded container writer.

One logical output is split across ``shard_count`` container files named
from a template. Every shard shares the schema, codec and metadata; records
are routed round-robin.

Usage:
    config = WriteConfig().with_schema(schema).with_num_shards(4).with_codec("deflate-6")
    with ShardedWriter.open("s3://bucket/out/part", config) as writer:
        for record in records:
            writer.write(record)
    writer.shard_paths  # ['s3://bucket/out/part-00000-of-00004', ...]
"""

from __future__ import annotations

import io
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Sequence

import fastavro

from shardio.config import StoreConfig
from shardio.core.codecs import Codec, CodecLike, require_available, resolve_for_write
from shardio.core.constants import AUTO_SHARDS
from shardio.core.container import ContainerWriter, MetaValue, encode_metadata
from shardio.core.errors import DestinationUnwritable
from shardio.core.naming import shard_paths
from shardio.core.schema import SchemaJSON, parse_schema
from shardio.fs.base import FileSystem
from shardio.fs.factory import get_filesystem
from shardio.monitoring.metrics import RECORDS_WRITTEN, SHARDS_WRITTEN
from shardio.utils.logging import get_logger

logger = get_logger(__name__)

ToDatum = Callable[[Any], Any]


@dataclass(frozen=True)
class WriteConfig:
    """
    Immutable write configuration; every ``with_*`` builder returns a copy.

    Attributes:
        schema: Record schema (JSON form); required before opening
        to_datum: Optional converter from caller records to schema datums
        num_shards: Explicit shard count, or 0 for automatic
        shard_name_template: Template with ``S``/``N`` runs; None uses the
            StoreConfig default
        suffix: Literal appended after the template
        codec: Block compression codec shared by every shard
        metadata: User header metadata duplicated into every shard
        needs_validation: Validate records against the schema before writing
    """

    schema: Optional[SchemaJSON] = None
    to_datum: Optional[ToDatum] = None
    num_shards: int = AUTO_SHARDS
    shard_name_template: Optional[str] = None
    suffix: str = ""
    codec: Codec = field(default_factory=Codec.null)
    metadata: Mapping[str, MetaValue] = field(default_factory=lambda: MappingProxyType({}))
    needs_validation: bool = True

    def with_schema(self, schema: Any, to_datum: Optional[ToDatum] = None) -> "WriteConfig":
        return replace(self, schema=parse_schema(schema), to_datum=to_datum)

    def with_num_shards(self, num_shards: int) -> "WriteConfig":
        if num_shards < 0:
            raise ValueError(f"num_shards must be >= 0, got {num_shards}")
        return replace(self, num_shards=num_shards)

    def without_sharding(self) -> "WriteConfig":
        return replace(self, num_shards=1, shard_name_template="")

    def with_shard_name_template(self, template: str) -> "WriteConfig":
        return replace(self, shard_name_template=template)

    def with_suffix(self, suffix: str) -> "WriteConfig":
        return replace(self, suffix=suffix)

    def with_codec(self, codec: CodecLike) -> "WriteConfig":
        return replace(self, codec=resolve_for_write(codec))

    def with_metadata(self, metadata: Mapping[str, MetaValue]) -> "WriteConfig":
        encode_metadata(metadata)
        return replace(self, metadata=MappingProxyType(dict(metadata)))

    def without_validation(self) -> "WriteConfig":
        return replace(self, needs_validation=False)

    def template(self, store_config: Optional[StoreConfig] = None) -> str:
        if self.shard_name_template is not None:
            return self.shard_name_template
        return (store_config or StoreConfig()).shard_name_template


def resolve_num_shards(
    requested: int,
    estimated_size_bytes: Optional[int],
    target_shard_bytes: int,
    max_shards: int,
) -> int:
    """
    Pick the number of shards to write.

    An explicit count (>= 1) wins. Automatic selection is
    ``ceil(estimated_size_bytes / target_shard_bytes)`` clamped to
    ``[1, max_shards]``, and 1 when there is no estimate.
    """
    if requested < 0:
        raise ValueError(f"num_shards must be >= 0, got {requested}")
    if requested >= 1:
        return requested
    if not estimated_size_bytes or estimated_size_bytes <= 0:
        return 1
    return max(1, min(max_shards, math.ceil(estimated_size_bytes / target_shard_bytes)))


def estimate_size(records: Sequence[Any], schema: SchemaJSON, sample_size: int) -> int:
    """Estimate the encoded size of ``records`` from its first ``sample_size`` items."""
    sample = list(records[:sample_size])
    if not sample:
        return 0
    parsed = fastavro.parse_schema(schema)
    buf = io.BytesIO()
    for record in sample:
        fastavro.schemaless_writer(buf, parsed, record)
    return math.ceil(buf.tell() / len(sample) * len(records))


class ShardedWriter:
    """
    Single-writer handle over a fixed set of shards.

    Shard paths are computed at open time. Shard files are created at the
    first write (or at close when nothing was written), so every shard
    exists afterwards even if it holds no records. Already-closed shards
    are left in place when a later shard fails.
    """

    def __init__(
        self,
        output_prefix: str,
        config: WriteConfig,
        filesystem: FileSystem,
        shard_count: int,
        template: str,
    ) -> None:
        if config.schema is None:
            raise ValueError("A schema is required to open a writer (use with_schema)")
        self.output_prefix = output_prefix
        self.config = config
        self.filesystem = filesystem
        self.shard_count = shard_count
        self.shard_name_template = template
        self.shard_paths: List[str] = shard_paths(output_prefix, shard_count, template, config.suffix)
        self.records_written = 0

        self._writers: List[ContainerWriter] = []
        self._next_shard = 0
        self._closed = False

    @classmethod
    def open(
        cls,
        output_prefix: str,
        config: WriteConfig,
        filesystem: Optional[FileSystem] = None,
        estimated_size_bytes: Optional[int] = None,
        store_config: Optional[StoreConfig] = None,
    ) -> "ShardedWriter":
        store_config = store_config or StoreConfig()
        require_available(config.codec, container=True)
        shard_count = resolve_num_shards(
            config.num_shards,
            estimated_size_bytes,
            store_config.target_shard_bytes,
            store_config.max_auto_shards,
        )
        writer = cls(
            output_prefix,
            config,
            filesystem or get_filesystem(output_prefix, store_config),
            shard_count,
            config.template(store_config),
        )
        logger.info(
            "sharded_write_opened",
            prefix=output_prefix,
            shards=shard_count,
            codec=str(config.codec),
        )
        return writer

    @property
    def closed(self) -> bool:
        return self._closed

    def _create_shards(self) -> None:
        for index, path in enumerate(self.shard_paths):
            try:
                stream = self.filesystem.create(path)
            except OSError as exc:
                self._closed = True
                self._close_created()
                raise DestinationUnwritable(path, index, str(exc)) from exc
            self._writers.append(
                ContainerWriter(
                    stream,
                    self.config.schema,
                    codec=self.config.codec,
                    metadata=self.config.metadata,
                    validate=self.config.needs_validation,
                )
            )

    def _close_created(self) -> None:
        for index, writer in enumerate(self._writers):
            try:
                writer.close()
            except OSError as exc:
                logger.warning("shard_close_failed", path=self.shard_paths[index], error=str(exc))

    def write(self, record: Any) -> None:
        if self._closed:
            raise ValueError("write to closed ShardedWriter")
        if not self._writers:
            self._create_shards()

        datum = self.config.to_datum(record) if self.config.to_datum else record
        index = self._next_shard
        self._next_shard = (index + 1) % self.shard_count
        try:
            self._writers[index].write(datum)
        except OSError as exc:
            raise DestinationUnwritable(self.shard_paths[index], index, str(exc)) from exc

        self.records_written += 1
        RECORDS_WRITTEN.labels(codec=str(self.config.codec)).inc()

    def close(self) -> None:
        """Close every shard; re-raises the first failure after trying them all."""
        if self._closed:
            return
        if not self._writers:
            self._create_shards()
        self._closed = True

        first_error: Optional[DestinationUnwritable] = None
        for index, writer in enumerate(self._writers):
            try:
                writer.close()
            except OSError as exc:
                logger.error("shard_close_failed", path=self.shard_paths[index], error=str(exc))
                if first_error is None:
                    first_error = DestinationUnwritable(self.shard_paths[index], index, str(exc))
                    first_error.__cause__ = exc
                continue
            SHARDS_WRITTEN.labels(codec=str(self.config.codec)).inc()

        logger.info(
            "sharded_write_closed",
            prefix=self.output_prefix,
            shards=self.shard_count,
            records=self.records_written,
        )
        if first_error is not None:
            raise first_error

    def __enter__(self) -> "ShardedWriter":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


__all__ = [
    "ShardedWriter",
    "ToDatum",
    "WriteConfig",
    "estimate_size",
    "resolve_num_shards",
]
