"""
Object container files: header, metadata and data blocks.

Layout (Avro 1.x object container):

    header := magic(4) meta(map<bytes>) sync(16)
    block  := count(long) size(long) data(size) sync(16)

fastavro encodes and decodes the individual values (header map, block
longs, records); block data is compressed with the codec named in the
header under ``avro.codec``.
"""

from __future__ import annotations

import io
import os
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Iterator, Mapping, Optional, Tuple, Union

import fastavro
from fastavro.validation import ValidationError, validate

from shardio.core.codecs import (
    Codec,
    CodecLike,
    compress_block,
    decompress_block,
    lookup_container_codec,
    require_available,
    resolve_for_write,
)
from shardio.core.constants import (
    CODEC_KEY,
    DEFAULT_SYNC_INTERVAL,
    HEADER_SCHEMA,
    MAGIC,
    MAGIC_SIZE,
    META_LONG_MAX,
    META_LONG_MIN,
    META_SCHEMA,
    NULL_CODEC,
    RESERVED_META_PREFIX,
    SCHEMA_KEY,
    SYNC_SIZE,
)
from shardio.core.errors import CorruptContainer, InvalidRecord, MalformedContainerHeader
from shardio.core.schema import SchemaJSON, parse_schema, schema_to_json
from shardio.monitoring.metrics import BLOCK_BYTES

MetaValue = Union[str, int, bytes]


def encode_meta_value(key: str, value: MetaValue) -> bytes:
    """
    Encode one user metadata value as header bytes.

    Strings are UTF-8, integers their decimal representation (64-bit signed
    range) and bytes are stored verbatim.
    """
    if isinstance(value, bool):
        raise TypeError(f"Metadata {key!r}: bool is not a supported value type")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, int):
        if not META_LONG_MIN <= value <= META_LONG_MAX:
            raise ValueError(f"Metadata {key!r}: {value} does not fit in a 64-bit long")
        return str(value).encode("ascii")
    raise TypeError(f"Metadata {key!r}: unsupported value type {type(value).__name__}")


def encode_metadata(metadata: Optional[Mapping[str, MetaValue]]) -> Dict[str, bytes]:
    """Encode user metadata, rejecting keys in the reserved ``avro.`` namespace."""
    encoded: Dict[str, bytes] = {}
    for key, value in (metadata or {}).items():
        if not isinstance(key, str):
            raise TypeError(f"Metadata keys must be str, got {type(key).__name__}")
        if key.startswith(RESERVED_META_PREFIX):
            raise ValueError(f"Metadata key {key!r} is reserved")
        encoded[key] = encode_meta_value(key, value)
    return encoded


@dataclass(frozen=True)
class ContainerHeader:
    """
    Decoded container header.

    Attributes:
        writer_schema: Schema the file's records were written with (JSON form)
        codec: Block compression codec
        metadata: Every header entry, reserved keys included, as raw bytes
        sync_marker: 16-byte marker that terminates each data block
    """

    writer_schema: SchemaJSON
    codec: Codec
    metadata: Mapping[str, bytes]
    sync_marker: bytes

    def get_meta(self, key: str) -> Optional[bytes]:
        return self.metadata.get(key)

    def get_meta_string(self, key: str) -> Optional[str]:
        value = self.metadata.get(key)
        return None if value is None else value.decode("utf-8")

    def get_meta_long(self, key: str) -> Optional[int]:
        value = self.metadata.get(key)
        if value is None:
            return None
        try:
            return int(value.decode("ascii"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise ValueError(f"Metadata {key!r} is not a long: {value!r}") from exc

    @property
    def user_metadata(self) -> Dict[str, bytes]:
        return {k: v for k, v in self.metadata.items() if not k.startswith(RESERVED_META_PREFIX)}


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_header(stream: BinaryIO, path: Optional[str] = None) -> ContainerHeader:
    """
    Decode the header at the current position of ``stream``.

    Leaves the stream positioned at the first data block.

    Raises:
        MalformedContainerHeader: Bad magic, truncated header, or missing /
            unparsable writer schema
        UnsupportedCodec: ``avro.codec`` is unknown or unavailable
    """
    magic = _read_exact(stream, MAGIC_SIZE)
    if magic != MAGIC:
        raise MalformedContainerHeader(f"Not a container file (magic {magic!r})", path)

    try:
        meta = fastavro.schemaless_reader(stream, META_SCHEMA)
    except (EOFError, ValueError, TypeError, OverflowError) as exc:
        raise MalformedContainerHeader(f"Cannot decode header metadata: {exc}", path) from exc

    sync_marker = _read_exact(stream, SYNC_SIZE)
    if len(sync_marker) != SYNC_SIZE:
        raise MalformedContainerHeader("Truncated header (sync marker)", path)

    raw_schema = meta.get(SCHEMA_KEY)
    if raw_schema is None:
        raise MalformedContainerHeader(f"Header has no {SCHEMA_KEY!r} entry", path)
    try:
        writer_schema = parse_schema(raw_schema.decode("utf-8"))
        codec_name = meta.get(CODEC_KEY, NULL_CODEC.encode()).decode("ascii")
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedContainerHeader(f"Invalid header entry: {exc}", path) from exc

    codec = lookup_container_codec(codec_name, path=path)
    return ContainerHeader(
        writer_schema=writer_schema,
        codec=codec,
        metadata=dict(meta),
        sync_marker=sync_marker,
    )


def iter_blocks(
    stream: BinaryIO,
    header: ContainerHeader,
    path: Optional[str] = None,
) -> Iterator[Tuple[int, bytes]]:
    """Yield ``(record_count, decompressed_bytes)`` for each data block."""
    while True:
        try:
            count = fastavro.schemaless_reader(stream, "long")
        except EOFError:
            return
        try:
            size = fastavro.schemaless_reader(stream, "long")
        except EOFError as exc:
            raise CorruptContainer("Truncated block header", path) from exc
        if count < 0 or size < 0:
            raise CorruptContainer(f"Invalid block (count={count}, size={size})", path)

        data = _read_exact(stream, size)
        if len(data) != size:
            raise CorruptContainer(f"Truncated block: expected {size} bytes, got {len(data)}", path)
        if _read_exact(stream, SYNC_SIZE) != header.sync_marker:
            raise CorruptContainer("Block is not followed by the file's sync marker", path)

        yield count, decompress_block(header.codec, data, path)


def iter_records(
    stream: BinaryIO,
    header: ContainerHeader,
    reader_schema: Optional[SchemaJSON] = None,
    path: Optional[str] = None,
) -> Iterator[Any]:
    """Decode the records following ``header``, resolved onto ``reader_schema``."""
    writer = fastavro.parse_schema(header.writer_schema)
    reader = fastavro.parse_schema(reader_schema) if reader_schema is not None else None
    for count, block in iter_blocks(stream, header, path):
        buf = io.BytesIO(block)
        for _ in range(count):
            yield fastavro.schemaless_reader(buf, writer, reader)


class ContainerWriter:
    """
    Writes one container file to an open byte stream.

    The header is emitted with the first data block (or at close for an
    empty file), so nothing reaches the stream before the first flush.

    Usage:
        with ContainerWriter(fs.create(path), schema, codec="deflate-6") as writer:
            for record in records:
                writer.write(record)
    """

    def __init__(
        self,
        stream: BinaryIO,
        schema: Any,
        codec: CodecLike = None,
        metadata: Optional[Mapping[str, MetaValue]] = None,
        validate: bool = False,
        sync_interval: int = DEFAULT_SYNC_INTERVAL,
        sync_marker: Optional[bytes] = None,
    ) -> None:
        self.schema = parse_schema(schema)
        self.codec = require_available(resolve_for_write(codec), container=True)
        self.metadata = {
            SCHEMA_KEY: schema_to_json(self.schema).encode("utf-8"),
            CODEC_KEY: self.codec.name.encode("ascii"),
            **encode_metadata(metadata),
        }
        if sync_marker is not None and len(sync_marker) != SYNC_SIZE:
            raise ValueError(f"sync_marker must be {SYNC_SIZE} bytes")
        self.sync_marker = sync_marker or os.urandom(SYNC_SIZE)
        self.validate = validate
        self.sync_interval = sync_interval
        self.records_written = 0
        self.closed = False

        self._stream = stream
        self._parsed = fastavro.parse_schema(self.schema)
        self._block = io.BytesIO()
        self._block_count = 0
        self._header_written = False

    def write(self, record: Any) -> None:
        if self.closed:
            raise ValueError("write to closed ContainerWriter")
        if self.validate:
            check_record(record, self._parsed)
        fastavro.schemaless_writer(self._block, self._parsed, record)
        self._block_count += 1
        self.records_written += 1
        if self._block.tell() >= self.sync_interval:
            self._flush_block()

    def _write_header(self) -> None:
        header = {"magic": MAGIC, "meta": self.metadata, "sync": self.sync_marker}
        fastavro.schemaless_writer(self._stream, HEADER_SCHEMA, header)
        self._header_written = True

    def _flush_block(self) -> None:
        if not self._header_written:
            self._write_header()
        if self._block_count == 0:
            return
        data = compress_block(self.codec, self._block.getvalue())
        BLOCK_BYTES.labels(codec=self.codec.name).observe(len(data))
        fastavro.schemaless_writer(self._stream, "long", self._block_count)
        fastavro.schemaless_writer(self._stream, "bytes", data)
        self._stream.write(self.sync_marker)
        self._block = io.BytesIO()
        self._block_count = 0

    def flush(self) -> None:
        self._flush_block()
        self._stream.flush()

    def close(self) -> None:
        """Write any pending block and close the stream; idempotent."""
        if self.closed:
            return
        self.closed = True
        try:
            self._flush_block()
        finally:
            self._stream.close()

    def __enter__(self) -> "ContainerWriter":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def check_record(record: Any, schema: Any) -> None:
    """
    Validate ``record`` against ``schema``.

    Raises:
        InvalidRecord: The record does not conform.
    """
    try:
        validate(record, schema, raise_errors=True)
    except ValidationError as exc:
        raise InvalidRecord(f"Record does not match schema: {exc}") from exc


__all__ = [
    "ContainerHeader",
    "ContainerWriter",
    "MetaValue",
    "check_record",
    "encode_meta_value",
    "encode_metadata",
    "iter_blocks",
    "iter_records",
    "read_header",
]
