"""
Filesystem backends.
"""

from .base import FileStatus, FileSystem
from .factory import get_filesystem
from .local import LocalFileSystem
from .s3 import S3FileSystem

__all__ = [
    "FileStatus",
    "FileSystem",
    "LocalFileSystem",
    "S3FileSystem",
    "get_filesystem",
]
