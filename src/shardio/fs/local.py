"""Local disk backend (plain paths and file:// URIs)."""

from __future__ import annotations

import os
from typing import BinaryIO, List, Optional

from shardio.config import StoreConfig
from shardio.core.errors import PathNotFound
from shardio.core.paths import join_uri, split_uri
from shardio.fs.base import FileStatus, FileSystem


class LocalFileSystem(FileSystem):
    scheme = "file"

    def __init__(self, config: Optional[StoreConfig] = None) -> None:
        self.config = config or StoreConfig()

    @staticmethod
    def _local(path: str) -> str:
        scheme, _authority, local = split_uri(path)
        if scheme not in ("", "file"):
            raise ValueError(f"Not a local path: {path}")
        return local

    @staticmethod
    def _same_style(original: str, local: str) -> str:
        """Render a local path back in the caller's addressing style."""
        if split_uri(original).scheme == "file":
            return join_uri("file", "", local)
        return local

    def list(self, path: str) -> List[FileStatus]:
        local = self._local(path)
        if os.path.isfile(local):
            return [FileStatus(path=path, length=os.path.getsize(local))]
        try:
            entries = list(os.scandir(local))
        except FileNotFoundError as exc:
            raise PathNotFound(path) from exc

        statuses = []
        for entry in entries:
            is_dir = entry.is_dir()
            statuses.append(
                FileStatus(
                    path=self._same_style(path, os.path.join(local, entry.name)),
                    length=0 if is_dir else entry.stat().st_size,
                    is_dir=is_dir,
                )
            )
        return statuses

    def open(self, path: str) -> BinaryIO:
        try:
            return open(self._local(path), "rb")
        except FileNotFoundError as exc:
            raise PathNotFound(path) from exc

    def content_length(self, path: str) -> int:
        local = self._local(path)
        if os.path.isdir(local):
            total = 0
            for dirpath, _dirnames, filenames in os.walk(local):
                for name in filenames:
                    total += os.path.getsize(os.path.join(dirpath, name))
            return total
        try:
            return os.path.getsize(local)
        except FileNotFoundError as exc:
            raise PathNotFound(path) from exc

    def seekable_open(self, path: str) -> BinaryIO:
        # Buffered file objects already provide tell/seek/read/close
        return self.open(path)

    def create(self, path: str) -> BinaryIO:
        local = self._local(path)
        dir_path = os.path.dirname(local)
        if dir_path and not os.path.exists(dir_path):
            os.makedirs(dir_path, exist_ok=True)
        return open(local, "wb")


__all__ = ["LocalFileSystem"]
