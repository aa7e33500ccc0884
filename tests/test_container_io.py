import sys
from dataclasses import asdict, dataclass
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from shardio import Codec, Read, Write  # noqa: E402
from shardio.config import StoreConfig  # noqa: E402
from shardio.container_io import DEFAULT_READ_NAME, DEFAULT_WRITE_NAME  # noqa: E402
from shardio.core.errors import InvalidRecord, PathNotFound, UnsupportedCodec  # noqa: E402
from shardio.core.naming import shard_paths  # noqa: E402


@dataclass(frozen=True)
class Event:
    id: int
    name: str


@pytest.mark.unit
def test_read_builder_names_and_validation() -> None:
    read = Read.from_("s3://bucket/events/")

    assert read.name == DEFAULT_READ_NAME == "ContainerIO.Read"
    assert read.location == "s3://bucket/events/"
    assert read.needs_validation
    assert not read.without_validation().needs_validation
    assert read.needs_validation

    named = Read.named("LoadEvents").from_("s3://bucket/events/")
    assert named.name == "LoadEvents"
    assert named.location == read.location

    with pytest.raises(ValueError):
        Read.from_("")


@pytest.mark.unit
def test_write_builder_exposes_configuration(event_schema) -> None:
    write = (
        Write.named("StoreEvents")
        .to("s3://bucket/out/part")
        .with_schema(event_schema)
        .with_num_shards(4)
        .with_suffix(".avro")
        .with_codec("deflate-6")
        .with_metadata({"owner": "etl"})
    )

    assert Write.to("x").name == DEFAULT_WRITE_NAME == "ContainerIO.Write"
    assert write.name == "StoreEvents"
    assert write.prefix == "s3://bucket/out/part"
    assert write.shard_name_template == "-SSSSS-of-NNNNN"
    assert write.num_shards == 4
    assert write.suffix == ".avro"
    assert write.codec == Codec.deflate(6)
    assert dict(write.metadata) == {"owner": "etl"}
    assert write.needs_validation
    assert write.schema == event_schema

    single = write.without_sharding()
    assert single.num_shards == 1
    assert single.shard_name_template == ""
    assert write.num_shards == 4

    assert write.with_codec(Codec.snappy()).codec == Codec.snappy()
    with pytest.raises(UnsupportedCodec):
        write.with_codec("gzip")


@pytest.mark.unit
def test_write_validate(event_schema) -> None:
    with pytest.raises(ValueError, match="prefix"):
        Write.with_schema(event_schema).validate()
    with pytest.raises(ValueError, match="schema"):
        Write.to("out/part").validate()
    with pytest.raises(ValueError, match="placeholder"):
        Write.to("out/part").with_schema(event_schema).with_num_shards(3).with_shard_name_template("-x").validate()

    Write.to("out/part").with_schema(event_schema).validate()


@pytest.mark.integration
def test_write_then_read_round_trip(tmp_path, event_schema, events) -> None:
    write = Write.to(str(tmp_path / "out" / "part")).with_schema(event_schema).with_num_shards(3).with_suffix(".avro")

    paths = write.expand(events)

    assert len(paths) == 3
    records = list(Read.from_(str(tmp_path / "out")).expand())
    assert sorted(records, key=lambda r: r["id"]) == events


@pytest.mark.integration
def test_automatic_shards_use_store_config(tmp_path, event_schema, events) -> None:
    store = StoreConfig(target_shard_bytes=20, max_auto_shards=4, size_sample=3)

    paths = Write.to(str(tmp_path / "part")).with_schema(event_schema).expand(events, config=store)

    assert len(paths) == 4
    assert all(Path(p).exists() for p in paths)


@pytest.mark.integration
def test_invalid_record_aborts_before_any_shard(tmp_path, event_schema, events) -> None:
    out = tmp_path / "out"
    write = Write.to(str(out / "part")).with_schema(event_schema).with_num_shards(2)

    with pytest.raises(InvalidRecord):
        write.expand(events + [{"id": "eleven", "name": "bad"}])

    assert not out.exists()


@pytest.mark.integration
def test_typed_records_via_to_and_from_datum(tmp_path, event_schema) -> None:
    items = [Event(1, "a"), Event(2, "b")]
    Write.to(str(tmp_path / "typed")).with_schema(event_schema, to_datum=asdict).without_sharding().with_suffix(
        ".avro"
    ).expand(items)

    read = Read.from_(str(tmp_path / "typed.avro")).with_schema(event_schema, from_datum=lambda d: Event(**d))

    assert list(read.expand()) == items


@pytest.mark.integration
def test_read_glob_and_validation(tmp_path, event_schema, events) -> None:
    for day in ("2024-01-01", "2024-01-02"):
        Write.to(str(tmp_path / day / "part")).with_schema(event_schema).with_num_shards(1).with_suffix(
            ".avro"
        ).expand(events[:3])
    (tmp_path / "empty").mkdir()

    records = list(Read.from_(f"{tmp_path}/2024-*/part-*.avro").expand())
    assert len(records) == 6

    with pytest.raises(PathNotFound):
        Read.from_(str(tmp_path / "empty")).expand()
    with pytest.raises(PathNotFound):
        Read.from_(f"{tmp_path}/2025-*/part-*").validate()

    assert list(Read.from_(str(tmp_path / "empty")).without_validation().expand()) == []
    Read.from_(f"{tmp_path}/2025-*/part-*").without_validation().validate()


@pytest.mark.integration
def test_read_listing_failure_propagates(tmp_path) -> None:
    with pytest.raises(PathNotFound):
        Read.from_(str(tmp_path / "missing")).without_validation().expand()


@pytest.mark.integration
def test_read_with_evolved_schema(tmp_path, event_schema, events) -> None:
    Write.to(str(tmp_path / "v1")).with_schema(event_schema).with_num_shards(2).expand(events)
    v2 = {
        **event_schema,
        "fields": event_schema["fields"] + [{"name": "tags", "type": {"type": "array", "items": "string"}, "default": []}],
    }

    records = list(Read.from_(f"{tmp_path}/v1-*").with_schema(v2).expand())

    assert len(records) == len(events)
    assert all(r["tags"] == [] for r in records)


@pytest.mark.integration
def test_store_config_template_is_the_one_written_and_reported(tmp_path, event_schema, events) -> None:
    store = StoreConfig(shard_name_template="-S-of-N")
    prefix = str(tmp_path / "out" / "part")
    write = Write.to(prefix).with_schema(event_schema).with_num_shards(2).with_store_config(store)

    paths = write.expand(events)

    assert write.shard_name_template == "-S-of-N"
    assert paths == shard_paths(prefix, 2, write.shard_name_template, write.suffix)
    assert [Path(p).name for p in paths] == ["part-0-of-2", "part-1-of-2"]


@pytest.mark.integration
def test_template_resolves_against_config_passed_in(tmp_path, event_schema, events) -> None:
    store = StoreConfig(shard_name_template="_SS")
    prefix = str(tmp_path / "passed" / "part")
    write = Write.to(prefix).with_schema(event_schema).with_num_shards(3)

    paths = write.expand(events, config=store)

    assert write.resolved_template(store) == "_SS"
    assert write.shard_name_template == "-SSSSS-of-NNNNN"
    assert paths == shard_paths(prefix, 3, write.resolved_template(store), write.suffix)


@pytest.mark.unit
def test_validate_checks_the_store_template(event_schema) -> None:
    write = Write.to("out/part").with_schema(event_schema).with_num_shards(3)

    write.validate()
    with pytest.raises(ValueError, match="placeholder"):
        write.validate(StoreConfig(shard_name_template="-fixed"))
    with pytest.raises(ValueError, match="placeholder"):
        write.with_store_config(StoreConfig(shard_name_template="-fixed")).validate()
