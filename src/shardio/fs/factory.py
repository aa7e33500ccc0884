"""Pick a filesystem backend for a location."""

from __future__ import annotations

from typing import Callable, Mapping, Optional

from shardio.config import StoreConfig
from shardio.core.paths import split_uri
from shardio.fs.base import FileSystem
from shardio.fs.local import LocalFileSystem
from shardio.fs.s3 import S3FileSystem

FileSystemFactory = Callable[[StoreConfig], FileSystem]

BACKENDS: Mapping[str, FileSystemFactory] = {
    "file": LocalFileSystem,
    "s3": S3FileSystem,
}


def get_filesystem(path: str, config: Optional[StoreConfig] = None) -> FileSystem:
    """
    Build the backend serving ``path``.

    A fresh backend is constructed per call from the explicit ``config``;
    locations without a scheme use ``config.default_scheme``.
    """
    config = config or StoreConfig()
    scheme = split_uri(path).scheme or config.default_scheme
    try:
        factory = BACKENDS[scheme]
    except KeyError:
        raise ValueError(f"No filesystem backend for scheme {scheme!r} ({path})") from None
    return factory(config)


__all__ = ["BACKENDS", "FileSystemFactory", "get_filesystem"]
