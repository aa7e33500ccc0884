"""Filesystem capability consumed by the read/write layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, List

from shardio.core.errors import PathNotFound


@dataclass(frozen=True)
class FileStatus:
    """
    One entry returned by FileSystem.list.

    Attributes:
        path: Full location of the entry (same scheme as the listed path)
        length: Size in bytes (0 for directories)
        is_dir: Whether the entry is a directory / common prefix
    """

    path: str
    length: int
    is_dir: bool = False


class FileSystem(ABC):
    """
    Minimal contract every storage backend implements.

    Backends surface their own failures unchanged, except that a missing
    path is always reported as PathNotFound.
    """

    scheme: str = ""

    @abstractmethod
    def list(self, path: str) -> List[FileStatus]:
        """List a directory non-recursively; listing a file returns that file."""

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """Open a sequential raw byte stream."""

    @abstractmethod
    def content_length(self, path: str) -> int:
        """Authoritative byte length of a file (sum of files for a directory)."""

    @abstractmethod
    def seekable_open(self, path: str) -> BinaryIO:
        """Open a handle supporting tell/seek/read/close."""

    @abstractmethod
    def create(self, path: str) -> BinaryIO:
        """Create (or truncate) a file for writing, creating parents as needed."""

    def exists(self, path: str) -> bool:
        try:
            self.content_length(path)
        except PathNotFound:
            return False
        return True


__all__ = ["FileStatus", "FileSystem"]
