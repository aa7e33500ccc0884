import sys
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

# Ensure src/ is on sys.path for local test runs without installation
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from shardio.config import StoreConfig  # noqa: E402
from shardio.core.container import ContainerWriter  # noqa: E402
from shardio.fs.local import LocalFileSystem  # noqa: E402
from shardio.fs.s3 import S3FileSystem  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast unit tests")
    config.addinivalue_line(
        "markers",
        "integration: tests that touch a real filesystem or moto S3",
    )
    config.addinivalue_line("markers", "s3: tests that interact with S3 or moto S3")
    config.addinivalue_line("markers", "slow: slow-running tests")


EVENT_SCHEMA = {
    "type": "record",
    "name": "Event",
    "namespace": "com.example",
    "fields": [
        {"name": "id", "type": "long"},
        {"name": "name", "type": "string"},
    ],
}


@pytest.fixture
def event_schema():
    return EVENT_SCHEMA


@pytest.fixture
def events():
    return [{"id": i, "name": f"event-{i}"} for i in range(10)]


@pytest.fixture
def local_fs():
    return LocalFileSystem()


@pytest.fixture
def write_container(local_fs):
    """Write one container file and return its path as str."""

    def _write(path, schema, records, **kwargs):
        with ContainerWriter(local_fs.create(str(path)), schema, **kwargs) as writer:
            for record in records:
                writer.write(record)
        return str(path)

    return _write


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def s3_client(aws_credentials):
    """Moto-backed S3 client with a test bucket."""
    with mock_aws():
        s3 = boto3.client("s3", region_name="us-east-1")
        s3.create_bucket(Bucket="test-bucket")
        yield s3


@pytest.fixture
def s3_fs(s3_client):
    config = StoreConfig(read_buffer_size=64)
    return S3FileSystem(config, s3_client=s3_client)
