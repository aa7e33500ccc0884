"""URI-like path helpers (scheme://authority/path or plain local paths)."""

from __future__ import annotations

import posixpath
from typing import NamedTuple

from shardio.core.constants import GLOB_CHARS, HIDDEN_PREFIXES


class SplitPath(NamedTuple):
    scheme: str
    authority: str
    path: str


def split_uri(uri: str) -> SplitPath:
    """
    Split a location into (scheme, authority, path).

    Plain paths have an empty scheme and authority. ``file:///tmp/x`` yields
    ``("file", "", "/tmp/x")``.
    """
    if "://" not in uri:
        return SplitPath("", "", uri)
    scheme, rest = uri.split("://", 1)
    if rest.startswith("/"):
        return SplitPath(scheme.lower(), "", rest)
    authority, _, path = rest.partition("/")
    return SplitPath(scheme.lower(), authority, "/" + path if path else "")


def join_uri(scheme: str, authority: str, path: str) -> str:
    if not scheme:
        return path
    if authority:
        return f"{scheme}://{authority}{path}"
    return f"{scheme}://{path}"


def basename(uri: str) -> str:
    return posixpath.basename(split_uri(uri).path.rstrip("/"))


def has_glob(uri: str) -> bool:
    return any(ch in GLOB_CHARS for ch in split_uri(uri).path)


def is_hidden(uri: str) -> bool:
    """True for entries whose base name starts with ``_`` or ``.``."""
    return basename(uri).startswith(HIDDEN_PREFIXES)


__all__ = [
    "SplitPath",
    "split_uri",
    "join_uri",
    "basename",
    "has_glob",
    "is_hidden",
]
