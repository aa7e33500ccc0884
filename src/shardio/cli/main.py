"""
Command-line inspection and export tool for container datasets.

    shardio ls s3://bucket/events/
    shardio meta s3://bucket/events/part-00000-of-00004.avro
    shardio records s3://bucket/events/ --schema events_v2.avsc --limit 10
    shardio write out/part --schema events.avsc --input events.jsonl --num-shards 4
    shardio is-done s3://bucket/events/
"""

from __future__ import annotations

import functools
import json
import os
import shutil
import sys
from typing import Any, Callable, Optional, TextIO

import click

from shardio.config import StoreConfig
from shardio.container_io import Read, Write
from shardio.core.errors import ShardioError
from shardio.core.readers import open_stream
from shardio.core.resolving_reader import read_file_header
from shardio.fs.factory import get_filesystem
from shardio.storage import FileStorage
from shardio.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return str(value)


def _meta_value(value: bytes) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError:
        return "0x" + value.hex()


def _load_schema(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _parse_meta(pairs: tuple[str, ...]) -> dict[str, str]:
    metadata = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--meta")
        metadata[key] = value
    return metadata


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report shardio failures as CLI errors instead of tracebacks."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ShardioError as exc:
            logger.error("command_failed", command=func.__name__, error=str(exc))
            raise click.ClickException(str(exc)) from exc

    return wrapper


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML configuration file (default: SHARDIO_* environment variables).",
)
@click.option(
    "--log-level",
    default=lambda: os.getenv("LOG_LEVEL", "WARNING"),
    show_default="WARNING",
    help="Log level for diagnostics written to stderr.",
)
@click.option("--json-logs/--console-logs", default=True, help="Log rendering.")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: str, json_logs: bool) -> None:
    """Inspect and write sharded container datasets."""
    configure_logging(log_level, json_output=json_logs)
    ctx.obj = StoreConfig.from_yaml(config_path) if config_path else StoreConfig.from_env()


@cli.command("ls")
@click.argument("location")
@click.pass_obj
@handle_errors
def ls_command(config: StoreConfig, location: str) -> None:
    """List visible member files of LOCATION (directory or glob)."""
    for entry in FileStorage(location, config=config).list_files():
        click.echo(f"{entry.path}\t{entry.length}\t{entry.codec}")


@cli.command("cat")
@click.argument("path")
@click.pass_obj
@handle_errors
def cat_command(config: StoreConfig, path: str) -> None:
    """Write the decompressed bytes of PATH to stdout."""
    fs = get_filesystem(path, config)
    out = click.get_binary_stream("stdout")
    with open_stream(fs, path) as stream:
        shutil.copyfileobj(stream, out)
    out.flush()


@cli.command("meta")
@click.argument("path")
@click.pass_obj
@handle_errors
def meta_command(config: StoreConfig, path: str) -> None:
    """Print the header of one container file as JSON."""
    header = read_file_header(get_filesystem(path, config), path)
    payload = {
        "path": path,
        "codec": str(header.codec),
        "schema": header.writer_schema,
        "metadata": {k: _meta_value(v) for k, v in header.user_metadata.items()},
    }
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


@cli.command("records")
@click.argument("location")
@click.option("--schema", "schema_path", type=click.Path(exists=True, dir_okay=False), help="Reader schema file (.avsc).")
@click.option("--limit", type=click.IntRange(min=0), default=None, help="Stop after N records.")
@click.option("--no-validate", is_flag=True, help="Do not fail when nothing matches LOCATION.")
@click.pass_obj
@handle_errors
def records_command(
    config: StoreConfig,
    location: str,
    schema_path: Optional[str],
    limit: Optional[int],
    no_validate: bool,
) -> None:
    """Print records of LOCATION as JSON lines."""
    read = Read.from_(location)
    if schema_path:
        read = read.with_schema(_load_schema(schema_path))
    if no_validate:
        read = read.without_validation()

    for count, record in enumerate(read.expand(config=config)):
        if limit is not None and count >= limit:
            break
        click.echo(json.dumps(record, default=_json_default, sort_keys=True))


@cli.command("write")
@click.argument("prefix")
@click.option("--schema", "schema_path", required=True, type=click.Path(exists=True, dir_okay=False), help="Writer schema file (.avsc).")
@click.option("--input", "input_file", type=click.File("r", encoding="utf-8"), default="-", help="JSON lines to write (default: stdin).")
@click.option("--num-shards", type=click.IntRange(min=0), default=0, show_default=True, help="0 picks a count from the data size.")
@click.option("--no-sharding", is_flag=True, help="Write exactly one file named PREFIX+SUFFIX.")
@click.option("--template", default=None, help="Shard name template (default -SSSSS-of-NNNNN).")
@click.option("--suffix", default=".avro", show_default=True)
@click.option("--codec", default="null", show_default=True, help="null, deflate[-L], bzip2, snappy, xz[-L], zstandard[-L].")
@click.option("--meta", multiple=True, help="KEY=VALUE header metadata (repeatable).")
@click.pass_obj
@handle_errors
def write_command(
    config: StoreConfig,
    prefix: str,
    schema_path: str,
    input_file: TextIO,
    num_shards: int,
    no_sharding: bool,
    template: Optional[str],
    suffix: str,
    codec: str,
    meta: tuple[str, ...],
) -> None:
    """Write JSON-line records to sharded container files under PREFIX."""
    write = (
        Write.to(prefix)
        .with_schema(_load_schema(schema_path))
        .with_num_shards(num_shards)
        .with_suffix(suffix)
        .with_codec(codec)
        .with_metadata(_parse_meta(meta))
    )
    if template is not None:
        write = write.with_shard_name_template(template)
    if no_sharding:
        write = write.without_sharding()

    records = (json.loads(line) for line in input_file if line.strip())
    for path in write.expand(records, config=config):
        click.echo(path)


@cli.command("is-done")
@click.argument("location")
@click.pass_obj
@handle_errors
def is_done_command(config: StoreConfig, location: str) -> None:
    """Exit 0 when LOCATION holds a complete set of shards, 1 otherwise."""
    done = FileStorage(location, config=config).is_done()
    click.echo("true" if done else "false")
    sys.exit(0 if done else 1)


if __name__ == "__main__":
    cli()
