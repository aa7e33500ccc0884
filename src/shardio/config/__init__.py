"""Configuration for shardio."""

from .config import S3Settings, StoreConfig

__all__ = ["S3Settings", "StoreConfig"]
