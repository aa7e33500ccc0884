"""
S3 backend operating via boto3 (list / GET / Range GET / upload).
"""

from __future__ import annotations

import io
import tempfile
from typing import Any, BinaryIO, List, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from shardio.config import StoreConfig
from shardio.core.constants import DEFAULT_SPOOL_MAX_SIZE
from shardio.core.errors import PathNotFound
from shardio.core.paths import split_uri
from shardio.fs.base import FileStatus, FileSystem

_MISSING_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}


def _is_missing(exc: ClientError) -> bool:
    return str(exc.response.get("Error", {}).get("Code")) in _MISSING_CODES


class S3RangeReader(io.RawIOBase):
    """
    Seekable raw stream over one S3 object.

    Every read issues a Range GET; wrap it in io.BufferedReader to batch
    the small reads container parsers tend to make.
    """

    def __init__(self, s3_client: Any, bucket: str, key: str, length: int) -> None:
        super().__init__()
        self.s3 = s3_client
        self.bucket = bucket
        self.key = key
        self._length = length
        self._pos = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self._length + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if pos < 0:
            raise ValueError(f"Negative seek position: {pos}")
        self._pos = pos
        return pos

    def _range_get(self, offset: int, length: int) -> bytes:
        end = offset + length - 1
        resp = self.s3.get_object(
            Bucket=self.bucket,
            Key=self.key,
            Range=f"bytes={offset}-{end}",
        )
        return resp["Body"].read()

    def readinto(self, b: Any) -> int:
        view = memoryview(b).cast("B")
        if self._pos >= self._length or len(view) == 0:
            return 0
        n = min(len(view), self._length - self._pos)
        data = self._range_get(self._pos, n)
        view[: len(data)] = data
        self._pos += len(data)
        return len(data)


class _BodyReader(io.RawIOBase):
    """Raw-stream adapter over a botocore StreamingBody."""

    def __init__(self, body: Any) -> None:
        super().__init__()
        self._body = body

    def readable(self) -> bool:
        return True

    def readinto(self, b: Any) -> int:
        view = memoryview(b).cast("B")
        data = self._body.read(len(view))
        view[: len(data)] = data
        return len(data)

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._body.close()
        finally:
            super().close()


class _S3UploadStream(io.BufferedIOBase):
    """Spools written bytes locally and uploads them as one object on close."""

    def __init__(self, s3_client: Any, bucket: str, key: str, spool_max_size: int) -> None:
        super().__init__()
        self.s3 = s3_client
        self.bucket = bucket
        self.key = key
        self._spool = tempfile.SpooledTemporaryFile(max_size=spool_max_size)

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        if self.closed:
            raise ValueError("write to closed upload stream")
        return self._spool.write(data)

    def tell(self) -> int:
        return self._spool.tell()

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._spool.seek(0)
            self.s3.upload_fileobj(self._spool, self.bucket, self.key)
        except (ClientError, BotoCoreError, S3UploadFailedError) as exc:
            raise OSError(f"Upload to s3://{self.bucket}/{self.key} failed: {exc}") from exc
        finally:
            self._spool.close()
            super().close()


class S3FileSystem(FileSystem):
    """
    Filesystem capability over S3 object keys.

    "Directories" are key prefixes: list() uses a "/" delimiter and reports
    common prefixes as directory entries.
    """

    scheme = "s3"

    def __init__(self, config: Optional[StoreConfig] = None, s3_client: Any = None) -> None:
        self.config = config or StoreConfig()
        if s3_client is None:
            session = boto3.session.Session(profile_name=self.config.s3.profile_name)
            s3_client = session.client(
                "s3",
                region_name=self.config.s3.region_name,
                endpoint_url=self.config.s3.endpoint_url,
            )
        self.s3 = s3_client

    @staticmethod
    def _bucket_key(path: str) -> tuple[str, str]:
        scheme, bucket, key = split_uri(path)
        if scheme != "s3" or not bucket:
            raise ValueError(f"Not an S3 location: {path}")
        return bucket, key.lstrip("/")

    def _head(self, path: str) -> dict:
        bucket, key = self._bucket_key(path)
        try:
            return self.s3.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if _is_missing(exc):
                raise PathNotFound(path) from exc
            raise

    def _list_prefix(self, bucket: str, prefix: str) -> tuple[list[dict], list[str]]:
        objects: list[dict] = []
        prefixes: list[str] = []
        paginator = self.s3.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix, Delimiter="/"):
                objects.extend(page.get("Contents", []))
                prefixes.extend(p["Prefix"] for p in page.get("CommonPrefixes", []))
        except ClientError as exc:
            if _is_missing(exc):
                raise PathNotFound(f"s3://{bucket}/{prefix}") from exc
            raise
        return objects, prefixes

    def list(self, path: str) -> List[FileStatus]:
        bucket, key = self._bucket_key(path)
        prefix = key.rstrip("/") + "/" if key else ""
        objects, prefixes = self._list_prefix(bucket, prefix)

        statuses = [
            FileStatus(path=f"s3://{bucket}/{obj['Key']}", length=int(obj["Size"]))
            for obj in objects
            if obj["Key"] != prefix
        ]
        statuses.extend(
            FileStatus(path=f"s3://{bucket}/{p.rstrip('/')}", length=0, is_dir=True)
            for p in prefixes
        )
        if statuses:
            return statuses

        # Not a prefix: maybe a single object
        if key:
            head = self._head(path)
            return [FileStatus(path=path, length=int(head["ContentLength"]))]
        return []

    def open(self, path: str) -> BinaryIO:
        bucket, key = self._bucket_key(path)
        try:
            resp = self.s3.get_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if _is_missing(exc):
                raise PathNotFound(path) from exc
            raise
        return io.BufferedReader(_BodyReader(resp["Body"]), buffer_size=self.config.read_buffer_size)

    def content_length(self, path: str) -> int:
        bucket, key = self._bucket_key(path)
        if key and not key.endswith("/"):
            try:
                return int(self._head(path)["ContentLength"])
            except PathNotFound:
                pass
        prefix = key.rstrip("/") + "/" if key else ""
        total = 0
        found = False
        paginator = self.s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get("Contents", []):
                found = True
                total += int(obj["Size"])
        if not found:
            raise PathNotFound(path)
        return total

    def seekable_open(self, path: str) -> BinaryIO:
        bucket, key = self._bucket_key(path)
        length = int(self._head(path)["ContentLength"])
        raw = S3RangeReader(self.s3, bucket, key, length)
        return io.BufferedReader(raw, buffer_size=self.config.read_buffer_size)

    def create(self, path: str) -> BinaryIO:
        bucket, key = self._bucket_key(path)
        try:
            self.s3.head_bucket(Bucket=bucket)
        except ClientError as exc:
            raise OSError(f"Bucket {bucket} is not writable: {exc}") from exc
        return _S3UploadStream(
            self.s3,
            bucket,
            key,
            spool_max_size=self.config.spool_max_size or DEFAULT_SPOOL_MAX_SIZE,
        )


__all__ = ["S3FileSystem", "S3RangeReader"]
