"""
Dataset facade: one location, many member files.

FileStorage reads a directory (or glob) the way downstream checks and tests
usually want it: sorted member files, all records, all text lines, and a
completeness check over shard names.
"""

from __future__ import annotations

import io
import json
from typing import Any, BinaryIO, Iterator, List, Optional

from shardio.config import StoreConfig
from shardio.core.enumerator import FileEntry, enumerate_files
from shardio.core.errors import PathNotFound
from shardio.core.naming import is_complete
from shardio.core.readers import open_stream
from shardio.core.resolving_reader import FromDatum, read_records
from shardio.fs.base import FileSystem
from shardio.fs.factory import get_filesystem
from shardio.utils.logging import get_logger

logger = get_logger(__name__)


def _buffered(stream: BinaryIO) -> BinaryIO:
    if isinstance(stream, io.RawIOBase):
        return io.BufferedReader(stream)
    return stream


class FileStorage:
    """
    Read-only view over the files of a dataset location.

    Usage:
        storage = FileStorage("s3://bucket/output/")
        if storage.is_done():
            lines = list(storage.text_file())
    """

    def __init__(
        self,
        location: str,
        filesystem: Optional[FileSystem] = None,
        config: Optional[StoreConfig] = None,
    ) -> None:
        self.location = location
        self.config = config or StoreConfig()
        self.filesystem = filesystem or get_filesystem(location, self.config)

    def list_files(self) -> List[FileEntry]:
        return sorted(enumerate_files(self.filesystem, self.location), key=lambda e: e.path)

    def avro_file(self, reader_schema: Any = None, from_datum: Optional[FromDatum] = None) -> Iterator[Any]:
        """Records of every member container file."""
        for entry in self.list_files():
            yield from read_records(self.filesystem, entry.path, reader_schema, from_datum)

    def text_file(self) -> Iterator[str]:
        """UTF-8 lines of every member file, without line terminators."""
        for entry in self.list_files():
            stream = open_stream(self.filesystem, entry.path)
            with io.TextIOWrapper(_buffered(stream), encoding="utf-8") as text:
                for line in text:
                    yield line.rstrip("\r\n")

    def json_file(self) -> Iterator[Any]:
        """One decoded JSON document per non-blank line."""
        for line in self.text_file():
            if line.strip():
                yield json.loads(line)

    def is_done(self) -> bool:
        """True when the location holds a complete set of shards."""
        try:
            entries = self.list_files()
        except PathNotFound:
            logger.debug("storage_missing", location=self.location)
            return False
        return is_complete(entry.path for entry in entries)


__all__ = ["FileStorage"]
