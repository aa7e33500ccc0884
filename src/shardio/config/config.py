"""Configuration management."""

from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shardio.core.constants import (
    DEFAULT_MAX_AUTO_SHARDS,
    DEFAULT_READ_BUFFER_SIZE,
    DEFAULT_SHARD_NAME_TEMPLATE,
    DEFAULT_SIZE_SAMPLE,
    DEFAULT_SPOOL_MAX_SIZE,
    DEFAULT_TARGET_SHARD_BYTES,
)


class S3Settings(BaseModel):
    """S3 client settings used by the s3:// filesystem backend."""

    model_config = ConfigDict(frozen=True)

    region_name: Optional[str] = Field(None, description="AWS region for the S3 client")
    endpoint_url: Optional[str] = Field(
        None,
        description="Custom S3 endpoint (MinIO, HCP, localstack)",
    )
    profile_name: Optional[str] = Field(None, description="AWS credentials profile")


class StoreConfig(BaseModel):
    """
    Explicit configuration threaded into every filesystem and writer.

    There is no process-wide configuration object; derive variants with
    ``config.model_copy(update={...})``.
    """

    model_config = ConfigDict(frozen=True)

    default_scheme: str = Field(
        "file",
        description="Scheme assumed for locations without one",
    )
    s3: S3Settings = Field(default_factory=S3Settings)
    read_buffer_size: int = Field(
        DEFAULT_READ_BUFFER_SIZE,
        description="Buffer size for seekable remote reads (bytes)",
    )
    spool_max_size: int = Field(
        DEFAULT_SPOOL_MAX_SIZE,
        description="In-memory limit before spooled files roll over to disk (bytes)",
    )
    target_shard_bytes: int = Field(
        DEFAULT_TARGET_SHARD_BYTES,
        description="Target shard size for automatic shard count",
    )
    max_auto_shards: int = Field(
        DEFAULT_MAX_AUTO_SHARDS,
        description="Upper bound for automatic shard count",
    )
    size_sample: int = Field(
        DEFAULT_SIZE_SAMPLE,
        description="Records encoded to estimate output size",
    )
    shard_name_template: str = Field(
        DEFAULT_SHARD_NAME_TEMPLATE,
        description="Default shard name template",
    )

    @field_validator("read_buffer_size", "spool_max_size", "target_shard_bytes", "max_auto_shards", "size_sample")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("default_scheme")
    @classmethod
    def _lower_scheme(cls, value: str) -> str:
        return value.strip().lower()

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "StoreConfig":
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: str = "SHARDIO_") -> "StoreConfig":
        def get(name: str) -> Optional[str]:
            raw = os.getenv(prefix + name)
            return raw if raw else None

        data: dict[str, Any] = {}
        for field_name, env_name in (
            ("default_scheme", "DEFAULT_SCHEME"),
            ("shard_name_template", "SHARD_NAME_TEMPLATE"),
        ):
            value = get(env_name)
            if value is not None:
                data[field_name] = value

        for field_name, env_name in (
            ("read_buffer_size", "READ_BUFFER_SIZE"),
            ("spool_max_size", "SPOOL_MAX_SIZE"),
            ("target_shard_bytes", "TARGET_SHARD_BYTES"),
            ("max_auto_shards", "MAX_AUTO_SHARDS"),
            ("size_sample", "SIZE_SAMPLE"),
        ):
            value = get(env_name)
            if value is not None:
                data[field_name] = int(value)

        s3 = {
            "region_name": get("S3_REGION"),
            "endpoint_url": get("S3_ENDPOINT_URL"),
            "profile_name": get("S3_PROFILE"),
        }
        data["s3"] = S3Settings(**s3)
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str) -> "StoreConfig":
        """
        Load configuration from a YAML file.

        Accepts either top-level keys or a ``shardio:`` section.
        """
        import yaml

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {path}")
        section = data.get("shardio", data)
        return cls.from_mapping(section)


__all__ = ["S3Settings", "StoreConfig"]
