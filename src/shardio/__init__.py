"""shardio - sharded, codec-aware container files on pluggable filesystems."""

from .container_io import Read, Write
from .core.codecs import Codec
from .core.errors import (
    CorruptContainer,
    DestinationUnwritable,
    IncompatibleSchema,
    InvalidRecord,
    MalformedContainerHeader,
    PathNotFound,
    ShardioError,
    UnsupportedCodec,
)
from .storage import FileStorage
from .utils.logging import SHARDIO_VERSION

__all__ = [
    "Read",
    "Write",
    "Codec",
    "FileStorage",
    "ShardioError",
    "PathNotFound",
    "UnsupportedCodec",
    "IncompatibleSchema",
    "DestinationUnwritable",
    "MalformedContainerHeader",
    "CorruptContainer",
    "InvalidRecord",
]

__version__ = SHARDIO_VERSION
