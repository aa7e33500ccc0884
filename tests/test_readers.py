import gzip
import io
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from shardio.core.errors import PathNotFound  # noqa: E402
from shardio.core.readers import SeekableInput, open_stream  # noqa: E402

pytestmark = pytest.mark.unit

DATA = bytes(range(256)) * 4


@pytest.fixture
def data_file(tmp_path: Path) -> str:
    path = tmp_path / "blob.bin"
    path.write_bytes(DATA)
    return str(path)


def test_open_stream_plain_and_gzip(tmp_path: Path, local_fs) -> None:
    plain = tmp_path / "lines.txt"
    plain.write_bytes(b"a\nb\n")
    packed = tmp_path / "lines.txt.gz"
    packed.write_bytes(gzip.compress(b"a\nb\n"))

    with open_stream(local_fs, str(plain)) as stream:
        assert stream.read() == b"a\nb\n"
    with open_stream(local_fs, str(packed)) as stream:
        assert stream.read() == b"a\nb\n"


def test_open_stream_missing_file(tmp_path: Path, local_fs) -> None:
    with pytest.raises(PathNotFound) as exc_info:
        open_stream(local_fs, str(tmp_path / "missing.gz"))

    assert exc_info.value.path.endswith("missing.gz")
    assert isinstance(exc_info.value, FileNotFoundError)


def test_seekable_input_random_access(data_file: str, local_fs) -> None:
    with SeekableInput(local_fs, data_file) as f:
        assert f.length() == len(DATA)
        assert f.name == data_file
        assert f.tell() == 0

        f.seek(-16, io.SEEK_END)
        assert f.read(16) == DATA[-16:]

        f.seek(100)
        f.seek(10, io.SEEK_CUR)
        assert f.tell() == 110
        assert f.read(5) == DATA[110:115]


def test_seekable_input_read_into_offsets(data_file: str, local_fs) -> None:
    buffer = bytearray(10)
    with SeekableInput(local_fs, data_file) as f:
        f.seek(3)
        n = f.read_into(buffer, 2, 6)

    assert n == 6
    assert bytes(buffer) == b"\x00\x00" + DATA[3:9] + b"\x00\x00"


def test_seekable_input_end_of_file(data_file: str, local_fs) -> None:
    buffer = bytearray(8)
    with SeekableInput(local_fs, data_file) as f:
        f.seek(len(DATA) - 3)
        assert f.read_into(buffer, 0, 8) == 3
        assert f.read_into(buffer, 0, 8) == 0

        f.seek(len(DATA) + 100)
        assert f.read(4) == b""


def test_seekable_input_rejects_bad_arguments(data_file: str, local_fs) -> None:
    with SeekableInput(local_fs, data_file) as f:
        with pytest.raises(ValueError, match="Negative seek"):
            f.seek(-1)
        with pytest.raises(ValueError):
            f.read_into(bytearray(4), 2, 4)


def test_seekable_input_close_is_idempotent(data_file: str, local_fs) -> None:
    f = SeekableInput(local_fs, data_file)
    f.close()
    f.close()

    assert f.closed
    with pytest.raises(ValueError):
        f.tell()


def test_seekable_input_missing_file(tmp_path: Path, local_fs) -> None:
    with pytest.raises(PathNotFound):
        SeekableInput(local_fs, str(tmp_path / "nope.avro"))
