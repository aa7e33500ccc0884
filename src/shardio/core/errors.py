"""
Error taxonomy for shardio.

Every error derives from ShardioError and, where a builtin exception already
describes the failure, from that builtin as well, so callers catching
FileNotFoundError / ValueError / OSError keep working.
"""

from __future__ import annotations

from typing import Optional


class ShardioError(Exception):
    """Base class for all shardio failures."""


class PathNotFound(ShardioError, FileNotFoundError):
    """A location resolved to nothing on the filesystem."""

    def __init__(self, path: str, message: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message or f"Path not found: {path}")

    def __str__(self) -> str:
        return str(self.args[0])


class UnsupportedCodec(ShardioError, ValueError):
    """Codec is unknown to the registry or cannot be instantiated at runtime."""

    def __init__(self, codec: str, reason: Optional[str] = None, path: Optional[str] = None) -> None:
        self.codec = codec
        self.path = path
        message = f"Unsupported codec: {codec!r}"
        if reason:
            message += f" ({reason})"
        if path:
            message += f" in {path}"
        super().__init__(message)


class IncompatibleSchema(ShardioError):
    """Reader schema cannot be resolved against the writer schema."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        if path:
            message = f"{message} (file: {path})"
        super().__init__(message)


class DestinationUnwritable(ShardioError, OSError):
    """A shard could not be created or flushed at its destination."""

    def __init__(self, path: str, shard_index: Optional[int] = None, reason: str = "") -> None:
        self.path = path
        self.shard_index = shard_index
        message = f"Destination unwritable: {path}"
        if shard_index is not None:
            message += f" (shard {shard_index})"
        if reason:
            message += f": {reason}"
        super().__init__(message)

    def __str__(self) -> str:
        return str(self.args[0])


class MalformedContainerHeader(ShardioError, ValueError):
    """Container file header is truncated, has bad magic, or lacks a schema."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        if path:
            message = f"{message} (file: {path})"
        super().__init__(message)


class CorruptContainer(ShardioError, ValueError):
    """A data block is truncated or is not followed by the file's sync marker."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        if path:
            message = f"{message} (file: {path})"
        super().__init__(message)


class InvalidRecord(ShardioError, ValueError):
    """A record does not conform to the schema it is written with."""


__all__ = [
    "ShardioError",
    "PathNotFound",
    "UnsupportedCodec",
    "IncompatibleSchema",
    "DestinationUnwritable",
    "MalformedContainerHeader",
    "CorruptContainer",
    "InvalidRecord",
]
