"""
Schema parsing and writer/reader compatibility.

Schemas travel as plain Avro JSON objects (dict, list or primitive type
name); fastavro parses them for encoding and decoding.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

import fastavro
from fastavro.schema import SchemaParseException

from shardio.core.errors import IncompatibleSchema

SchemaJSON = Union[Dict[str, Any], List[Any], str]


def parse_schema(schema: Any) -> SchemaJSON:
    """
    Normalize ``schema`` to its JSON form and check that it parses.

    Accepts a dict/list, a JSON document string, or a primitive type name
    such as ``"string"``.

    Raises:
        ValueError: The schema is not valid Avro.
    """
    if isinstance(schema, str):
        text = schema.strip()
        if text.startswith(("{", "[", '"')):
            try:
                schema = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Schema is not valid JSON: {exc}") from exc
        else:
            schema = text
    elif not isinstance(schema, (dict, list)):
        raise TypeError(f"Unsupported schema type: {type(schema).__name__}")

    try:
        fastavro.parse_schema(schema)
    except (SchemaParseException, ValueError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid schema: {exc}") from exc
    return schema


def schema_to_json(schema: SchemaJSON) -> str:
    return json.dumps(schema, sort_keys=False, separators=(",", ":"))


def _type_of(schema: SchemaJSON) -> str:
    if isinstance(schema, dict):
        return schema.get("type", "")
    if isinstance(schema, list):
        return "union"
    return schema


def _short_name(name: str) -> str:
    return name.rsplit(".", 1)[-1]


def _names_match(writer: Dict[str, Any], reader: Dict[str, Any]) -> bool:
    writer_name = writer.get("name", "")
    aliases = reader.get("aliases", [])
    return (
        _short_name(writer_name) == _short_name(reader.get("name", ""))
        or writer_name in aliases
        or _short_name(writer_name) in aliases
    )


def check_compatibility(
    writer_schema: SchemaJSON,
    reader_schema: SchemaJSON,
    path: Optional[str] = None,
) -> None:
    """
    Pre-check that records written under ``writer_schema`` can be read
    under ``reader_schema``.

    For records every reader field absent from the writer (by name or
    alias) must declare a default. Deeper mismatches are reported by the
    decoder while reading.

    Raises:
        IncompatibleSchema: The pair cannot be resolved.
    """
    writer_type = _type_of(writer_schema)
    reader_type = _type_of(reader_schema)
    if "union" in (writer_type, reader_type):
        return

    if reader_type == "record" or writer_type == "record":
        if reader_type != writer_type:
            raise IncompatibleSchema(
                f"Cannot read {writer_type!r} data with a {reader_type!r} schema", path
            )
        if not isinstance(writer_schema, dict) or not isinstance(reader_schema, dict):
            raise IncompatibleSchema("Record schemas must be JSON objects", path)
        if not _names_match(writer_schema, reader_schema):
            raise IncompatibleSchema(
                f"Record {writer_schema.get('name')!r} does not match "
                f"reader record {reader_schema.get('name')!r}",
                path,
            )
        writer_fields = {field["name"] for field in writer_schema.get("fields", [])}
        for field in reader_schema.get("fields", []):
            names = {field["name"], *field.get("aliases", [])}
            if names & writer_fields:
                continue
            if "default" not in field:
                raise IncompatibleSchema(
                    f"Field {field['name']!r} of {reader_schema.get('name')!r} is missing "
                    "from the writer schema and declares no default",
                    path,
                )


__all__ = ["SchemaJSON", "check_compatibility", "parse_schema", "schema_to_json"]
