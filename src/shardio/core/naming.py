"""
Shard file naming.

A shard path is ``prefix + template + suffix`` where, inside the template,
every run of ``S`` becomes the zero-padded shard index and every run of
``N`` the zero-padded shard count. The run length is the minimum width:

    construct_name("out/part", "-SSSSS-of-NNNNN", ".avro", 3, 10)
    -> "out/part-00003-of-00010.avro"
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List

from shardio.core.constants import DEFAULT_SHARD_NAME_TEMPLATE
from shardio.core.paths import basename

_PLACEHOLDER_RE = re.compile(r"S+|N+")
_SHARD_OF_RE = re.compile(r"(\d+)-of-(\d+)")


def construct_name(prefix: str, template: str, suffix: str, shard_index: int, shard_count: int) -> str:
    def substitute(match: re.Match) -> str:
        run = match.group(0)
        value = shard_index if run[0] == "S" else shard_count
        return str(value).zfill(len(run))

    return prefix + _PLACEHOLDER_RE.sub(substitute, template) + suffix


def validate_template(template: str, shard_count: int) -> str:
    """
    Check that ``template`` yields distinct names for ``shard_count`` shards.

    Raises:
        ValueError: Several shards requested but the template has no ``S`` run.
    """
    if shard_count > 1 and "S" not in template:
        raise ValueError(
            f"Shard name template {template!r} has no shard index placeholder "
            f"but {shard_count} shards were requested"
        )
    return template


@dataclass(frozen=True)
class ShardSpec:
    """One shard's naming inputs; ``path`` is its physical location."""

    prefix: str
    shard_name_template: str
    suffix: str
    shard_count: int
    shard_index: int

    def __post_init__(self) -> None:
        if self.shard_count < 1:
            raise ValueError(f"shard_count must be >= 1, got {self.shard_count}")
        if not 0 <= self.shard_index < self.shard_count:
            raise ValueError(
                f"shard_index must be in [0, {self.shard_count}), got {self.shard_index}"
            )

    @property
    def path(self) -> str:
        return construct_name(
            self.prefix,
            self.shard_name_template,
            self.suffix,
            self.shard_index,
            self.shard_count,
        )


def shard_specs(
    prefix: str,
    shard_count: int,
    template: str = DEFAULT_SHARD_NAME_TEMPLATE,
    suffix: str = "",
) -> List[ShardSpec]:
    validate_template(template, shard_count)
    return [ShardSpec(prefix, template, suffix, shard_count, i) for i in range(shard_count)]


def shard_paths(
    prefix: str,
    shard_count: int,
    template: str = DEFAULT_SHARD_NAME_TEMPLATE,
    suffix: str = "",
) -> List[str]:
    """Every shard path for ``shard_count`` shards, in index order."""
    paths = [spec.path for spec in shard_specs(prefix, shard_count, template, suffix)]
    if len(set(paths)) != len(paths):
        raise ValueError(f"Shard name template {template!r} produces colliding paths")
    return paths


def is_complete(paths: Iterable[str]) -> bool:
    """
    Tell whether a listing looks like a finished sharded write.

    False for an empty listing. When names carry ``NNNNN-of-MMMMM`` parts,
    True only if all files agree on the total and every index is present.
    Listings without shard parts are complete as soon as they are non-empty.

    Raises:
        ValueError: Only some of the files carry shard parts.
    """
    names = [basename(path) for path in paths]
    if not names:
        return False

    parts = [_SHARD_OF_RE.search(name) for name in names]
    numbered = [(int(m.group(1)), int(m.group(2))) for m in parts if m]
    if not numbered:
        return True
    if len(numbered) != len(names):
        unexpected = [name for name, m in zip(names, parts) if not m]
        raise ValueError(f"Found files without shard numbers: {unexpected}")

    totals = {total for _index, total in numbered}
    if len(totals) != 1:
        return False
    total = totals.pop()
    return {index for index, _total in numbered} == set(range(total))


__all__ = [
    "ShardSpec",
    "construct_name",
    "is_complete",
    "shard_paths",
    "shard_specs",
    "validate_template",
]
