"""
Directory enumeration for dataset locations.

A location is a directory, a single file, or a path whose components carry
glob characters (``s3://bucket/logs/2024-*/part-*.avro``). Entries whose base
name starts with ``_`` or ``.`` (``_SUCCESS``, ``_temporary``, ``.crc``) are
never returned.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from typing import Iterator, List

from shardio.core.codecs import Codec, resolve_for_read
from shardio.core.paths import basename, has_glob, is_hidden, join_uri, split_uri
from shardio.fs.base import FileStatus, FileSystem
from shardio.monitoring.metrics import ENTRIES_ENUMERATED
from shardio.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FileEntry:
    """
    One concrete member file of a dataset.

    Attributes:
        path: Full location of the file
        length: Size in bytes as reported by the listing
        codec: Whole-file compression codec implied by the name
    """

    path: str
    length: int
    codec: Codec

    @classmethod
    def from_status(cls, status: FileStatus) -> "FileEntry":
        return cls(path=status.path, length=status.length, codec=resolve_for_read(status.path))


def _visible_files(statuses: List[FileStatus]) -> Iterator[FileStatus]:
    for status in statuses:
        if is_hidden(status.path):
            ENTRIES_ENUMERATED.labels(outcome="filtered").inc()
            continue
        if status.is_dir:
            ENTRIES_ENUMERATED.labels(outcome="directory").inc()
            continue
        ENTRIES_ENUMERATED.labels(outcome="kept").inc()
        yield status


def enumerate_files(filesystem: FileSystem, location: str) -> List[FileEntry]:
    """
    Resolve ``location`` to its visible member files.

    Order follows the filesystem listing; sort explicitly when determinism
    matters. Listing failures (PathNotFound included) propagate unchanged.
    """
    if has_glob(location):
        statuses = _glob(filesystem, location)
    else:
        statuses = filesystem.list(location)

    entries = [FileEntry.from_status(status) for status in _visible_files(statuses)]
    logger.debug("location_enumerated", location=location, files=len(entries))
    return entries


def _glob(filesystem: FileSystem, pattern: str) -> List[FileStatus]:
    """Expand a glob one path component at a time via FileSystem.list."""
    scheme, authority, path = split_uri(pattern)
    absolute = path.startswith("/")
    parts = [p for p in path.split("/") if p]

    literal: List[str] = []
    while parts and not has_glob(parts[0]):
        literal.append(parts.pop(0))
    base_path = ("/" if absolute else "") + "/".join(literal)
    if not base_path:
        base_path = "."
    candidates = [join_uri(scheme, authority, base_path)]

    matched: List[FileStatus] = []
    for depth, part in enumerate(parts):
        last = depth == len(parts) - 1
        next_candidates: List[str] = []
        for directory in candidates:
            for status in filesystem.list(directory):
                name = basename(status.path)
                if has_glob(part):
                    if not fnmatch.fnmatchcase(name, part):
                        continue
                elif name != part:
                    continue
                if last:
                    matched.append(status)
                elif status.is_dir:
                    next_candidates.append(status.path)
        candidates = next_candidates

    return matched


def matches(filesystem: FileSystem, location: str) -> bool:
    """True when ``location`` resolves to at least one visible file."""
    return bool(enumerate_files(filesystem, location))


__all__ = ["FileEntry", "enumerate_files", "matches"]
