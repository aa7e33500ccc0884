import io
import sys
from pathlib import Path

import fastavro
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from shardio.core.codecs import Codec  # noqa: E402
from shardio.core.constants import MAGIC, SYNC_SIZE  # noqa: E402
from shardio.core.container import (  # noqa: E402
    ContainerWriter,
    encode_metadata,
    iter_blocks,
    iter_records,
    read_header,
)
from shardio.core.errors import (  # noqa: E402
    CorruptContainer,
    InvalidRecord,
    MalformedContainerHeader,
    UnsupportedCodec,
)
from shardio.core.resolving_reader import read_file_header, read_records  # noqa: E402

pytestmark = pytest.mark.unit


def _container_bytes(schema, records, **kwargs) -> bytes:
    buf = io.BytesIO()
    writer = ContainerWriter(buf, schema, **kwargs)
    for record in records:
        writer.write(record)
    writer.flush()
    data = buf.getvalue()
    writer.close()
    return data


@pytest.mark.parametrize("codec", ["null", "deflate", "deflate-9", "bzip2", "xz-1", "zstandard"])
def test_round_trip_with_codec(tmp_path, local_fs, write_container, event_schema, events, codec) -> None:
    path = write_container(tmp_path / "events.avro", event_schema, events, codec=codec)

    assert list(read_records(local_fs, path)) == events
    assert read_file_header(local_fs, path).codec.name == Codec.parse(codec).name


def test_metadata_round_trips_byte_exact(tmp_path, local_fs, write_container, event_schema) -> None:
    raw = bytes([0xFF, 0x00, 0xC3, 0x28])
    path = write_container(
        tmp_path / "meta.avro",
        event_schema,
        [],
        metadata={"owner": "data-eng", "rows": 1 << 40, "negative": -7, "blob": raw},
    )

    header = read_file_header(local_fs, path)

    assert header.get_meta_string("owner") == "data-eng"
    assert header.get_meta_long("rows") == 1 << 40
    assert header.get_meta_long("negative") == -7
    assert header.get_meta("blob") == raw
    assert header.get_meta("missing") is None
    assert set(header.user_metadata) == {"owner", "rows", "negative", "blob"}
    assert header.get_meta_string("avro.codec") == "null"
    assert len(header.sync_marker) == SYNC_SIZE


def test_get_meta_long_rejects_non_numeric(tmp_path, local_fs, write_container, event_schema) -> None:
    path = write_container(tmp_path / "meta.avro", event_schema, [], metadata={"owner": "x"})

    with pytest.raises(ValueError, match="not a long"):
        read_file_header(local_fs, path).get_meta_long("owner")


def test_encode_metadata_validation() -> None:
    assert encode_metadata({"n": 12, "s": "zażółć"}) == {"n": b"12", "s": "zażółć".encode("utf-8")}

    with pytest.raises(ValueError, match="reserved"):
        encode_metadata({"avro.codec": "deflate"})
    with pytest.raises(TypeError, match="bool"):
        encode_metadata({"flag": True})
    with pytest.raises(ValueError, match="64-bit"):
        encode_metadata({"big": 1 << 63})
    with pytest.raises(TypeError):
        encode_metadata({"f": 1.5})  # type: ignore[dict-item]


def test_empty_file_still_has_header(event_schema) -> None:
    data = _container_bytes(event_schema, [])

    assert data.startswith(MAGIC)
    stream = io.BytesIO(data)
    header = read_header(stream)
    assert header.writer_schema["name"] == "Event"
    assert list(iter_records(stream, header)) == []


def test_small_sync_interval_writes_many_blocks(event_schema, events) -> None:
    stream = io.BytesIO(_container_bytes(event_schema, events, sync_interval=1))

    header = read_header(stream)
    blocks = list(iter_blocks(stream, header))

    assert len(blocks) == len(events)
    assert all(count == 1 for count, _data in blocks)


def test_fixed_sync_marker_is_used(event_schema, events) -> None:
    marker = b"0123456789abcdef"
    data = _container_bytes(event_schema, events, sync_marker=marker)

    assert data.endswith(marker)
    with pytest.raises(ValueError):
        ContainerWriter(io.BytesIO(), event_schema, sync_marker=b"short")


def test_bad_magic_is_malformed() -> None:
    with pytest.raises(MalformedContainerHeader, match="Not a container file"):
        read_header(io.BytesIO(b"PAR1" + bytes(20)), path="x.parquet")


def test_truncated_header_is_malformed(event_schema) -> None:
    data = _container_bytes(event_schema, [])

    with pytest.raises(MalformedContainerHeader):
        read_header(io.BytesIO(data[:-4]))
    with pytest.raises(MalformedContainerHeader):
        read_header(io.BytesIO(data[:12]))


def test_header_without_schema_is_malformed() -> None:
    buf = io.BytesIO()
    buf.write(MAGIC)
    fastavro.schemaless_writer(buf, {"type": "map", "values": "bytes"}, {"avro.codec": b"null"})
    buf.write(bytes(SYNC_SIZE))
    buf.seek(0)

    with pytest.raises(MalformedContainerHeader, match="avro.schema"):
        read_header(buf)


def test_unknown_codec_in_header(event_schema) -> None:
    buf = io.BytesIO()
    buf.write(MAGIC)
    fastavro.schemaless_writer(
        buf,
        {"type": "map", "values": "bytes"},
        {"avro.schema": b'"string"', "avro.codec": b"lzo"},
    )
    buf.write(bytes(SYNC_SIZE))
    buf.seek(0)

    with pytest.raises(UnsupportedCodec, match="lzo"):
        read_header(buf, path="legacy.avro")


def test_corrupt_sync_marker_is_detected(event_schema, events) -> None:
    data = bytearray(_container_bytes(event_schema, events))
    data[-1] ^= 0xFF
    stream = io.BytesIO(bytes(data))
    header = read_header(stream)

    with pytest.raises(CorruptContainer, match="sync marker"):
        list(iter_records(stream, header))


def test_truncated_block_is_detected(event_schema, events) -> None:
    data = _container_bytes(event_schema, events)
    stream = io.BytesIO(data[:-20])
    header = read_header(stream)

    with pytest.raises(CorruptContainer):
        list(iter_records(stream, header))


def test_writer_validation(event_schema) -> None:
    writer = ContainerWriter(io.BytesIO(), event_schema, validate=True)

    with pytest.raises(InvalidRecord):
        writer.write({"id": "not-a-long", "name": "x"})


def test_writer_close_is_idempotent(event_schema, events) -> None:
    buf = io.BytesIO()
    writer = ContainerWriter(buf, event_schema)
    writer.write(events[0])
    writer.close()
    writer.close()

    assert buf.closed
    with pytest.raises(ValueError, match="closed"):
        writer.write(events[1])


def test_files_are_readable_by_fastavro(event_schema, events) -> None:
    data = _container_bytes(event_schema, events, codec="deflate", metadata={"owner": "etl"})

    reader = fastavro.reader(io.BytesIO(data))

    assert list(reader) == events
    assert reader.metadata["owner"] == "etl"
    assert reader.codec == "deflate"


def test_reads_files_written_by_fastavro(tmp_path, local_fs, event_schema, events) -> None:
    path = tmp_path / "fastavro.avro"
    with open(path, "wb") as fo:
        fastavro.writer(fo, event_schema, events, codec="deflate", metadata={"owner": "etl"})

    header = read_file_header(local_fs, str(path))

    assert header.codec == Codec.deflate()
    assert header.get_meta_string("owner") == "etl"
    assert list(read_records(local_fs, str(path))) == events


def test_compressed_container_file_is_read_through_stream(tmp_path, local_fs, event_schema, events) -> None:
    import gzip

    path = tmp_path / "events.avro.gz"
    path.write_bytes(gzip.compress(_container_bytes(event_schema, events)))

    assert list(read_records(local_fs, str(path))) == events
