"""
Schema-resolving record reader for container files.

Records are decoded with the writer schema stored in each file's header and
projected onto an optional reader schema: shared fields are copied, fields
only the writer knows are dropped, fields only the reader knows take their
declared default.
"""

from __future__ import annotations

from typing import Any, BinaryIO, Callable, Iterator, Optional

from fastavro.read import SchemaResolutionError

from shardio.core.codecs import resolve_for_read
from shardio.core.container import ContainerHeader, iter_records, read_header
from shardio.core.errors import IncompatibleSchema, MalformedContainerHeader
from shardio.core.readers import SeekableInput, open_stream
from shardio.core.schema import check_compatibility, parse_schema
from shardio.fs.base import FileSystem
from shardio.monitoring.metrics import RECORDS_READ
from shardio.utils.logging import get_logger

logger = get_logger(__name__)

FromDatum = Callable[[Any], Any]


class ContainerFileReader:
    """
    Scoped reader over the records of one container file.

    Plain container files are read through SeekableInput. Files that also
    carry a whole-file compression suffix (``part-00000.avro.gz``) are read
    through the decompressing stream instead.

    Usage:
        with ContainerFileReader(fs, path, reader_schema=schema_v2) as reader:
            for record in reader:
                ...
    """

    def __init__(
        self,
        filesystem: FileSystem,
        path: str,
        reader_schema: Any = None,
        from_datum: Optional[FromDatum] = None,
    ) -> None:
        self.filesystem = filesystem
        self.path = path
        self.reader_schema = parse_schema(reader_schema) if reader_schema is not None else None
        self.from_datum = from_datum
        self.header: Optional[ContainerHeader] = None
        self._stream: Optional[BinaryIO] = None

    def open(self) -> "ContainerFileReader":
        if self._stream is not None:
            return self
        if resolve_for_read(self.path).is_null:
            stream: BinaryIO = SeekableInput(self.filesystem, self.path)
        else:
            stream = open_stream(self.filesystem, self.path)

        try:
            header = read_header(stream, self.path)
            if self.reader_schema is not None:
                check_compatibility(header.writer_schema, self.reader_schema, self.path)
        except BaseException:
            stream.close()
            raise

        self.header = header
        self._stream = stream
        logger.debug("container_opened", path=self.path, codec=str(header.codec))
        return self

    def __iter__(self) -> Iterator[Any]:
        if self._stream is None or self.header is None:
            raise ValueError(f"Reader for {self.path} is not open")
        try:
            for datum in iter_records(self._stream, self.header, self.reader_schema, self.path):
                RECORDS_READ.inc()
                yield self.from_datum(datum) if self.from_datum else datum
        except SchemaResolutionError as exc:
            raise IncompatibleSchema(str(exc), self.path) from exc

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __enter__(self) -> "ContainerFileReader":
        return self.open()

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


def read_records(
    filesystem: FileSystem,
    path: str,
    reader_schema: Any = None,
    from_datum: Optional[FromDatum] = None,
) -> Iterator[Any]:
    """Yield the records of one container file; the file is closed when iteration ends."""
    with ContainerFileReader(filesystem, path, reader_schema, from_datum) as reader:
        yield from reader


def read_file_header(filesystem: FileSystem, path: str) -> ContainerHeader:
    """Decode only the header of one container file."""
    with ContainerFileReader(filesystem, path) as reader:
        if reader.header is None:
            raise MalformedContainerHeader("Container header was not decoded", path)
        return reader.header


__all__ = ["ContainerFileReader", "FromDatum", "read_file_header", "read_records"]
