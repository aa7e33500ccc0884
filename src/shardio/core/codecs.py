"""
Codec registry and resolution.

Two uses share one registry:

- whole-file stream compression, detected on read from the file suffix
  (``part-00000.gz``) and undone transparently;
- container block compression, named in each container header
  (``avro.codec``) and chosen explicitly on write.
"""

from __future__ import annotations

import bz2
import gzip
import importlib.util
import io
import lzma
import struct
import zlib
from dataclasses import dataclass
from typing import Any, BinaryIO, Optional, Union

from shardio.core.constants import NULL_CODEC
from shardio.core.errors import UnsupportedCodec
from shardio.core.paths import basename


@dataclass(frozen=True)
class CodecInfo:
    """Registry entry describing one codec."""

    name: str
    module: Optional[str] = None  # import needed at runtime
    suffixes: tuple[str, ...] = ()
    level_range: Optional[tuple[int, int]] = None
    container: bool = False  # usable as container block codec
    streamable: bool = False  # whole-file decompression supported


REGISTRY: dict[str, CodecInfo] = {
    info.name: info
    for info in (
        CodecInfo(NULL_CODEC, container=True, streamable=True),
        CodecInfo("deflate", "zlib", (".deflate",), (1, 9), container=True, streamable=True),
        CodecInfo("bzip2", "bz2", (".bz2",), container=True, streamable=True),
        CodecInfo("xz", "lzma", (".xz", ".lzma"), (0, 9), container=True, streamable=True),
        CodecInfo("zstandard", "zstandard", (".zst", ".zstd"), (1, 22), container=True, streamable=True),
        CodecInfo("snappy", "snappy", (".snappy",), container=True),
        CodecInfo("gzip", "gzip", (".gz", ".gzip"), (1, 9), streamable=True),
        CodecInfo("lz4", "lz4.frame", (".lz4",), streamable=True),
    )
}


def _module_available(module: str) -> bool:
    try:
        return importlib.util.find_spec(module) is not None
    except ModuleNotFoundError:
        return False


@dataclass(frozen=True)
class Codec:
    """
    Compression codec value: ``null`` or a named codec with an optional level.

    ``str(codec)`` renders ``name`` or ``name-level`` and round-trips through
    Codec.parse().
    """

    name: str = NULL_CODEC
    level: Optional[int] = None

    def __post_init__(self) -> None:
        info = REGISTRY.get(self.name)
        if info is None:
            raise UnsupportedCodec(self.name, "unknown codec")
        if self.level is None:
            return
        if info.level_range is None:
            raise ValueError(f"Codec {self.name!r} does not take a compression level")
        low, high = info.level_range
        if not low <= self.level <= high:
            raise ValueError(
                f"Compression level for {self.name!r} must be in [{low}, {high}], got {self.level}"
            )

    def __str__(self) -> str:
        if self.level is None:
            return self.name
        return f"{self.name}-{self.level}"

    @property
    def is_null(self) -> bool:
        return self.name == NULL_CODEC

    @property
    def info(self) -> CodecInfo:
        return REGISTRY[self.name]

    @classmethod
    def null(cls) -> "Codec":
        return cls(NULL_CODEC)

    @classmethod
    def deflate(cls, level: Optional[int] = None) -> "Codec":
        return cls("deflate", level)

    @classmethod
    def bzip2(cls) -> "Codec":
        return cls("bzip2")

    @classmethod
    def snappy(cls) -> "Codec":
        return cls("snappy")

    @classmethod
    def xz(cls, level: Optional[int] = None) -> "Codec":
        return cls("xz", level)

    @classmethod
    def zstandard(cls, level: Optional[int] = None) -> "Codec":
        return cls("zstandard", level)

    @classmethod
    def parse(cls, text: str) -> "Codec":
        """Parse ``"deflate-9"`` / ``"snappy"`` back into a Codec."""
        text = text.strip().lower()
        name, sep, level = text.rpartition("-")
        if sep and level.isdigit():
            return cls(name, int(level))
        return cls(text)


CodecLike = Union[Codec, str, None]


def resolve_for_read(path: str) -> Codec:
    """
    Determine the whole-file compression codec from a path suffix.

    Returns Codec.null() when no registered suffix matches.
    """
    name = basename(path).lower()
    for info in REGISTRY.values():
        if info.suffixes and name.endswith(info.suffixes):
            return Codec(info.name)
    return Codec.null()


def resolve_for_write(codec: CodecLike = None) -> Codec:
    """Validate a caller-supplied container codec (default: null)."""
    if codec is None:
        return Codec.null()
    if isinstance(codec, str):
        codec = Codec.parse(codec)
    if not isinstance(codec, Codec):
        raise TypeError(f"codec must be a Codec or str, got {type(codec).__name__}")
    if not codec.info.container:
        raise UnsupportedCodec(codec.name, "not a container block codec")
    return codec


def require_available(codec: Codec, container: bool = False, path: Optional[str] = None) -> Codec:
    """
    Ensure the runtime can instantiate ``codec``.

    Raises:
        UnsupportedCodec: Codec is not usable in the requested role or its
            library cannot be imported.
    """
    info = codec.info
    if container and not info.container:
        raise UnsupportedCodec(codec.name, "not a container block codec", path)
    if not container and not info.streamable:
        raise UnsupportedCodec(codec.name, "no streaming decompressor", path)
    if info.module and not _module_available(info.module):
        raise UnsupportedCodec(codec.name, f"module {info.module!r} is not installed", path)
    return codec


def lookup_container_codec(name: str, path: Optional[str] = None) -> Codec:
    """Resolve the codec named in a container header."""
    if name not in REGISTRY:
        raise UnsupportedCodec(name, "unknown codec", path)
    return require_available(Codec(name), container=True, path=path)


def compress_block(codec: Codec, data: bytes) -> bytes:
    """Compress one container data block."""
    if codec.is_null:
        return data
    if codec.name == "deflate":
        # raw deflate stream, no zlib header or checksum
        level = zlib.Z_DEFAULT_COMPRESSION if codec.level is None else codec.level
        compressor = zlib.compressobj(level, zlib.DEFLATED, -15)
        return compressor.compress(data) + compressor.flush()
    if codec.name == "bzip2":
        return bz2.compress(data)
    if codec.name == "xz":
        preset = lzma.PRESET_DEFAULT if codec.level is None else codec.level
        return lzma.compress(data, preset=preset)
    if codec.name == "zstandard":
        import zstandard

        level = 3 if codec.level is None else codec.level
        return zstandard.ZstdCompressor(level=level).compress(data)
    if codec.name == "snappy":
        import snappy

        checksum = zlib.crc32(data) & 0xFFFFFFFF
        return snappy.compress(data) + struct.pack(">I", checksum)
    raise UnsupportedCodec(codec.name, "not a container block codec")


def decompress_block(codec: Codec, data: bytes, path: Optional[str] = None) -> bytes:
    """Undo compress_block()."""
    if codec.is_null:
        return data
    if codec.name == "deflate":
        return zlib.decompress(data, -15)
    if codec.name == "bzip2":
        return bz2.decompress(data)
    if codec.name == "xz":
        return lzma.decompress(data)
    if codec.name == "zstandard":
        import zstandard

        # frames written without a content size need the streaming API
        return zstandard.ZstdDecompressor().decompressobj().decompress(data)
    if codec.name == "snappy":
        import snappy

        body, expected = data[:-4], struct.unpack(">I", data[-4:])[0]
        out = snappy.decompress(body)
        if zlib.crc32(out) & 0xFFFFFFFF != expected:
            raise ValueError(f"snappy block checksum mismatch in {path or 'container'}")
        return out
    raise UnsupportedCodec(codec.name, "not a container block codec", path)


class _ZlibStreamReader(io.RawIOBase):
    """Incremental zlib (``.deflate``) decompression over a raw stream."""

    def __init__(self, raw: BinaryIO, chunk_size: int = 64 * 1024) -> None:
        super().__init__()
        self._raw = raw
        self._chunk_size = chunk_size
        self._decompressor = zlib.decompressobj()
        self._pending = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, b: Any) -> int:
        view = memoryview(b).cast("B")
        while not self._pending and not self._eof:
            chunk = self._raw.read(self._chunk_size)
            if chunk:
                self._pending = self._decompressor.decompress(chunk)
            else:
                self._pending = self._decompressor.flush()
                self._eof = True
        n = min(len(view), len(self._pending))
        view[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n


class DecompressedStream(io.RawIOBase):
    """
    Decompressed view of a raw stream.

    Closing it closes both the decompressor and the underlying raw stream
    (several stdlib decompressors leave a passed-in file object open).
    """

    def __init__(self, inner: Any, raw: BinaryIO, codec: Codec) -> None:
        super().__init__()
        self._inner = inner
        self._raw = raw
        self.codec = codec

    def readable(self) -> bool:
        return True

    def readinto(self, b: Any) -> int:
        view = memoryview(b).cast("B")
        total = 0
        while total < len(view):
            data = self._inner.read(len(view) - total)
            if not data:
                break
            view[total : total + len(data)] = data
            total += len(data)
        return total

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._inner.close()
        finally:
            self._raw.close()
            super().close()


def open_decompressed(codec: Codec, raw: BinaryIO, path: Optional[str] = None) -> BinaryIO:
    """Wrap ``raw`` in the streaming decompressor for ``codec``."""
    if codec.is_null:
        return raw
    require_available(codec, path=path)

    if codec.name == "gzip":
        inner: Any = gzip.GzipFile(fileobj=raw, mode="rb")
    elif codec.name == "bzip2":
        inner = bz2.BZ2File(raw, mode="rb")
    elif codec.name == "xz":
        inner = lzma.LZMAFile(raw, mode="rb")
    elif codec.name == "deflate":
        inner = _ZlibStreamReader(raw)
    elif codec.name == "zstandard":
        import zstandard

        inner = zstandard.ZstdDecompressor().stream_reader(raw, read_across_frames=True)
    elif codec.name == "lz4":
        import lz4.frame

        inner = lz4.frame.LZ4FrameFile(raw, mode="rb")
    else:
        raise UnsupportedCodec(codec.name, "no streaming decompressor", path)

    return DecompressedStream(inner, raw, codec)


__all__ = [
    "REGISTRY",
    "Codec",
    "CodecInfo",
    "CodecLike",
    "DecompressedStream",
    "compress_block",
    "decompress_block",
    "lookup_container_codec",
    "open_decompressed",
    "require_available",
    "resolve_for_read",
    "resolve_for_write",
]
