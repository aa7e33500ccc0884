"""
Pipeline-facing read and write transforms for container datasets.

Both transforms are immutable values built fluently; every builder returns
a new value, so a base transform can be shared and specialised freely:

    base = Write.to("s3://bucket/events/part").with_schema(schema).with_suffix(".avro")
    daily = base.with_num_shards(24).with_codec(Codec.deflate(6))
    paths = daily.expand(records)

    for record in Read.from_("s3://bucket/events/").with_schema(schema_v2).expand():
        ...

Builder methods may be called on the class itself, starting from the
defaults (``Read.from_(...)``, ``Write.named("x").to(...)``).
"""

from __future__ import annotations

import types
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional

import fastavro

from shardio.config import StoreConfig
from shardio.core.codecs import Codec, CodecLike
from shardio.core.constants import AUTO_SHARDS
from shardio.core.container import MetaValue, check_record
from shardio.core.enumerator import FileEntry, enumerate_files, matches
from shardio.core.errors import PathNotFound
from shardio.core.naming import validate_template
from shardio.core.resolving_reader import FromDatum, read_records
from shardio.core.schema import SchemaJSON, parse_schema
from shardio.core.sharded_writer import ShardedWriter, ToDatum, WriteConfig, estimate_size
from shardio.fs.base import FileSystem
from shardio.fs.factory import get_filesystem
from shardio.utils.logging import get_logger, log_context

logger = get_logger(__name__)

DEFAULT_READ_NAME = "ContainerIO.Read"
DEFAULT_WRITE_NAME = "ContainerIO.Write"


class builder:
    """Method callable on an instance, or on the class starting from defaults."""

    def __init__(self, func: Callable[..., Any]) -> None:
        self.func = func
        self.__doc__ = func.__doc__

    def __get__(self, obj: Any, owner: type) -> Callable[..., Any]:
        return types.MethodType(self.func, obj if obj is not None else owner())


@dataclass(frozen=True)
class Read:
    """Read every record of a dataset location (directory, file or glob)."""

    location: Optional[str] = None
    name: str = DEFAULT_READ_NAME
    reader_schema: Optional[SchemaJSON] = None
    from_datum: Optional[FromDatum] = None
    needs_validation: bool = True

    @builder
    def named(self, name: str) -> "Read":
        return replace(self, name=name)

    @builder
    def from_(self, location: str) -> "Read":
        if not location:
            raise ValueError("Read location must not be empty")
        return replace(self, location=location)

    @builder
    def with_schema(self, schema: Any, from_datum: Optional[FromDatum] = None) -> "Read":
        return replace(self, reader_schema=parse_schema(schema), from_datum=from_datum)

    @builder
    def without_validation(self) -> "Read":
        return replace(self, needs_validation=False)

    def _filesystem(self, filesystem: Optional[FileSystem], config: Optional[StoreConfig]) -> FileSystem:
        if self.location is None:
            raise ValueError(f"{self.name}: no location set (use from_)")
        return filesystem or get_filesystem(self.location, config)

    def files(
        self,
        filesystem: Optional[FileSystem] = None,
        config: Optional[StoreConfig] = None,
    ) -> List[FileEntry]:
        """Member files sorted by path."""
        fs = self._filesystem(filesystem, config)
        return sorted(enumerate_files(fs, str(self.location)), key=lambda entry: entry.path)

    def validate(
        self,
        filesystem: Optional[FileSystem] = None,
        config: Optional[StoreConfig] = None,
    ) -> None:
        """
        Pre-flight check: the location must match at least one file.

        Skipped entirely after without_validation().

        Raises:
            PathNotFound: Nothing matches the location.
        """
        if not self.needs_validation:
            return
        if not matches(self._filesystem(filesystem, config), str(self.location)):
            raise PathNotFound(str(self.location), f"{self.name}: no files match {self.location}")

    def expand(
        self,
        filesystem: Optional[FileSystem] = None,
        config: Optional[StoreConfig] = None,
    ) -> Iterator[Any]:
        """
        Records of every member file, file by file in path order.

        The location is listed (and validated) when expand() is called;
        records are decoded lazily.
        """
        fs = self._filesystem(filesystem, config)
        entries = self.files(fs)
        if self.needs_validation and not entries:
            raise PathNotFound(str(self.location), f"{self.name}: no files match {self.location}")
        logger.info("read_expanded", transform=self.name, location=self.location, files=len(entries))
        return self._records(fs, entries)

    def _records(self, fs: FileSystem, entries: List[FileEntry]) -> Iterator[Any]:
        for entry in entries:
            yield from read_records(fs, entry.path, self.reader_schema, self.from_datum)


@dataclass(frozen=True)
class Write:
    """Write records to ``prefix`` as sharded container files."""

    prefix: Optional[str] = None
    name: str = DEFAULT_WRITE_NAME
    config: WriteConfig = field(default_factory=WriteConfig)
    store_config: Optional[StoreConfig] = None

    @builder
    def named(self, name: str) -> "Write":
        return replace(self, name=name)

    @builder
    def to(self, prefix: str) -> "Write":
        return replace(self, prefix=prefix)

    @builder
    def with_schema(self, schema: Any, to_datum: Optional[ToDatum] = None) -> "Write":
        return replace(self, config=self.config.with_schema(schema, to_datum))

    @builder
    def with_num_shards(self, num_shards: int) -> "Write":
        return replace(self, config=self.config.with_num_shards(num_shards))

    @builder
    def without_sharding(self) -> "Write":
        return replace(self, config=self.config.without_sharding())

    @builder
    def with_shard_name_template(self, template: str) -> "Write":
        return replace(self, config=self.config.with_shard_name_template(template))

    @builder
    def with_suffix(self, suffix: str) -> "Write":
        return replace(self, config=self.config.with_suffix(suffix))

    @builder
    def with_codec(self, codec: CodecLike) -> "Write":
        return replace(self, config=self.config.with_codec(codec))

    @builder
    def with_metadata(self, metadata: Mapping[str, MetaValue]) -> "Write":
        return replace(self, config=self.config.with_metadata(metadata))

    @builder
    def without_validation(self) -> "Write":
        return replace(self, config=self.config.without_validation())

    @builder
    def with_store_config(self, store_config: StoreConfig) -> "Write":
        """Store defaults (template, shard sizing) used when none is passed in."""
        return replace(self, store_config=store_config)

    def _store_config(self, config: Optional[StoreConfig]) -> StoreConfig:
        return config or self.store_config or StoreConfig()

    def resolved_template(self, config: Optional[StoreConfig] = None) -> str:
        """Template the shards are named with when written under ``config``."""
        return self.config.template(self._store_config(config))

    @property
    def shard_name_template(self) -> str:
        return self.resolved_template()

    @property
    def suffix(self) -> str:
        return self.config.suffix

    @property
    def codec(self) -> Codec:
        return self.config.codec

    @property
    def num_shards(self) -> int:
        return self.config.num_shards

    @property
    def metadata(self) -> Mapping[str, MetaValue]:
        return self.config.metadata

    @property
    def needs_validation(self) -> bool:
        return self.config.needs_validation

    @property
    def schema(self) -> Optional[SchemaJSON]:
        return self.config.schema

    def validate(self, config: Optional[StoreConfig] = None) -> None:
        """
        Pre-flight check of the configuration itself.

        A prefix that matches no existing files is fine.
        """
        if not self.prefix:
            raise ValueError(f"{self.name}: no output prefix set (use to)")
        if self.config.schema is None:
            raise ValueError(f"{self.name}: no schema set (use with_schema)")
        validate_template(self.resolved_template(config), self.config.num_shards)

    def _checked_prefix(self, config: StoreConfig) -> str:
        prefix = self.prefix
        if not prefix:
            raise ValueError(f"{self.name}: no output prefix set (use to)")
        self.validate(config)
        return prefix

    def open(
        self,
        filesystem: Optional[FileSystem] = None,
        estimated_size_bytes: Optional[int] = None,
        config: Optional[StoreConfig] = None,
    ) -> ShardedWriter:
        config = self._store_config(config)
        prefix = self._checked_prefix(config)
        return ShardedWriter.open(prefix, self.config, filesystem, estimated_size_bytes, config)

    def expand(
        self,
        records: Iterable[Any],
        filesystem: Optional[FileSystem] = None,
        config: Optional[StoreConfig] = None,
    ) -> List[str]:
        """
        Write ``records`` and return every shard path.

        With validation on, all records are checked before any shard is
        created.
        """
        config = self._store_config(config)
        prefix = self._checked_prefix(config)
        schema = self.config.schema
        to_datum = self.config.to_datum
        datums = [to_datum(r) if to_datum else r for r in records]

        if self.config.needs_validation:
            parsed = fastavro.parse_schema(schema)
            for datum in datums:
                check_record(datum, parsed)

        estimated = None
        if self.config.num_shards == AUTO_SHARDS:
            estimated = estimate_size(datums, schema, config.size_sample)

        write_config = replace(self.config, to_datum=None, needs_validation=False)
        with log_context(transform=self.name, prefix=prefix):
            writer = ShardedWriter.open(prefix, write_config, filesystem, estimated, config)
            with writer:
                for datum in datums:
                    writer.write(datum)
        return writer.shard_paths


__all__ = ["DEFAULT_READ_NAME", "DEFAULT_WRITE_NAME", "Read", "Write"]
