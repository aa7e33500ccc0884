"""
Byte-level readers over a FileSystem.

open_stream() yields the logical (decompressed) bytes of a file;
SeekableInput gives container parsers raw random access.
"""

from __future__ import annotations

import io
from typing import Any, BinaryIO, Optional

from shardio.core.codecs import open_decompressed, resolve_for_read
from shardio.fs.base import FileSystem
from shardio.monitoring.metrics import FILES_OPENED
from shardio.utils.logging import get_logger

logger = get_logger(__name__)


def open_stream(filesystem: FileSystem, path: str) -> BinaryIO:
    """
    Open ``path`` and undo any whole-file compression named by its suffix.

    Raises:
        PathNotFound: The file does not exist
        UnsupportedCodec: The suffix names a codec the runtime cannot decode
    """
    codec = resolve_for_read(path)
    raw = filesystem.open(path)
    try:
        stream = open_decompressed(codec, raw, path=path)
    except BaseException:
        raw.close()
        raise

    FILES_OPENED.labels(mode="stream").inc()
    logger.debug("stream_opened", path=path, codec=str(codec))
    return stream


class SeekableInput(io.RawIOBase):
    """
    Random-access view of one file for block-structured container parsers.

    The length is a snapshot taken once at open time. Seeking past the end
    is allowed; reads there return 0 bytes.

    Usage:
        with SeekableInput(fs, "s3://bucket/data/part-00000.avro") as f:
            f.seek(-16, io.SEEK_END)
            sync = f.read(16)
    """

    mode = "rb"

    def __init__(self, filesystem: FileSystem, path: str) -> None:
        super().__init__()
        self.path = path
        self._handle: Optional[BinaryIO] = None
        self._length = filesystem.content_length(path)
        self._handle = filesystem.seekable_open(path)
        FILES_OPENED.labels(mode="seekable").inc()

    @property
    def name(self) -> str:
        return self.path

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def length(self) -> int:
        return self._length

    def tell(self) -> int:
        return self._check_closed().tell()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        handle = self._check_closed()
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = handle.tell() + offset
        elif whence == io.SEEK_END:
            pos = self._length + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if pos < 0:
            raise ValueError(f"Negative seek position: {pos}")
        handle.seek(pos)
        return pos

    def readinto(self, b: Any) -> int:
        """Fill ``b`` completely unless end-of-file is reached first."""
        handle = self._check_closed()
        view = memoryview(b).cast("B")
        total = 0
        while total < len(view):
            chunk = handle.read(len(view) - total)
            if not chunk:
                break
            view[total : total + len(chunk)] = chunk
            total += len(chunk)
        return total

    def read_into(self, buffer: bytearray, offset: int, max_length: int) -> int:
        """Read up to ``max_length`` bytes into ``buffer[offset:]``; 0 means EOF."""
        if offset < 0 or max_length < 0 or offset + max_length > len(buffer):
            raise ValueError("offset/max_length outside buffer")
        return self.readinto(memoryview(buffer)[offset : offset + max_length])

    def close(self) -> None:
        if self.closed:
            return
        try:
            if self._handle is not None:
                self._handle.close()
        finally:
            super().close()

    def _check_closed(self) -> BinaryIO:
        if self.closed or self._handle is None:
            raise ValueError("I/O operation on closed file")
        return self._handle


__all__ = ["SeekableInput", "open_stream"]
