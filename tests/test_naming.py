import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from shardio.core.naming import (  # noqa: E402
    ShardSpec,
    construct_name,
    is_complete,
    shard_paths,
    shard_specs,
    validate_template,
)

pytestmark = pytest.mark.unit


def test_construct_name_default_template() -> None:
    assert (
        construct_name("out/part", "-SSSSS-of-NNNNN", ".avro", 3, 10)
        == "out/part-00003-of-00010.avro"
    )


def test_construct_name_run_length_is_minimum_width() -> None:
    assert construct_name("p", "-SS", "", 123, 200) == "p-123"
    assert construct_name("p", "_S_of_N", ".txt", 0, 1) == "p_0_of_1.txt"


def test_shard_paths_are_unique_and_ordered() -> None:
    paths = shard_paths("s3://bucket/out/part", 3, "-SS", ".avro")

    assert paths == [
        "s3://bucket/out/part-00.avro",
        "s3://bucket/out/part-01.avro",
        "s3://bucket/out/part-02.avro",
    ]


def test_template_without_index_needs_single_shard() -> None:
    assert validate_template("", 1) == ""
    assert shard_paths("out/data", 1, "", ".avro") == ["out/data.avro"]

    with pytest.raises(ValueError, match="no shard index placeholder"):
        validate_template("-of-NNN", 2)
    with pytest.raises(ValueError):
        shard_paths("out/data", 4, "")


def test_shard_spec_bounds() -> None:
    specs = shard_specs("out/part", 2)
    assert [s.shard_index for s in specs] == [0, 1]
    assert specs[1].path == "out/part-00001-of-00002"

    with pytest.raises(ValueError):
        ShardSpec("out/part", "-S", "", 2, 2)
    with pytest.raises(ValueError):
        ShardSpec("out/part", "-S", "", 0, 0)


def test_is_complete() -> None:
    full = shard_paths("out/part", 3, suffix=".avro")

    assert is_complete(full)
    assert not is_complete([])
    assert not is_complete(full[:2])
    assert not is_complete(full + ["out/part-00000-of-00004.avro"])
    assert is_complete(["out/data.avro", "out/more.avro"])


def test_is_complete_rejects_mixed_listing() -> None:
    with pytest.raises(ValueError, match="without shard numbers"):
        is_complete(["out/part-00000-of-00001.avro", "out/stray.avro"])
