"""Shared utilities for MongoDB MCP tools.

This module provides the Extended JSON conversions and document analysis
helpers used across tool categories.

Key Features:
    - Parse caller-supplied JSON into BSON types (``{"$oid": ...}`` -> ObjectId)
    - Render documents as relaxed Extended JSON text for tool results
    - Infer a field/type summary from a sample of documents
"""

import json
from typing import Any

from bson import json_util
from bson.json_util import JSONOptions, JSONMode

# Relaxed mode keeps numbers and strings readable while preserving ObjectId/date types
RELAXED_JSON_OPTIONS = JSONOptions(json_mode=JSONMode.RELAXED)

# Nesting depth analysed by infer_schema
MAX_SCHEMA_DEPTH = 3


def parse_ejson(value: Any) -> Any:
    """Convert plain JSON values into BSON types using Extended JSON rules.

    Args:
        value: A filter, pipeline or document as received from the caller

    Returns:
        The same structure with ``$oid``, ``$date`` and similar wrappers
        replaced by their BSON types

    Example:
        >>> parse_ejson({"_id": {"$oid": "64b7f0c2a1b2c3d4e5f60718"}})
        {'_id': ObjectId('64b7f0c2a1b2c3d4e5f60718')}
    """
    if value is None:
        return None
    return json.loads(json.dumps(value), object_hook=json_util.object_hook)


def to_ejson(value: Any) -> str:
    """Serialize a document (or any BSON value) as relaxed Extended JSON text."""
    return json_util.dumps(value, json_options=RELAXED_JSON_OPTIONS)


def describe_type(value: Any) -> str:
    """Determine the data type name of a value for schema analysis.

    Args:
        value: The value to analyze

    Returns:
        String representation of the value type
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    # BSON types: ObjectId, datetime, Decimal128, ...
    return type(value).__name__


def infer_schema(documents: list[dict[str, Any]]) -> dict[str, list[str]]:
    """Collect dotted field paths and the types observed for each.

    Nested documents are analysed up to ``MAX_SCHEMA_DEPTH`` levels deep.

    Args:
        documents: Sampled documents from one collection

    Returns:
        Mapping of field path to the sorted list of observed type names,
        in first-seen field order
    """
    field_types: dict[str, set[str]] = {}

    def extract_fields(document: dict[str, Any], prefix: str = "", depth: int = 0) -> None:
        if depth >= MAX_SCHEMA_DEPTH:
            return

        for key, value in document.items():
            field_path = f"{prefix}.{key}" if prefix else key
            field_types.setdefault(field_path, set()).add(describe_type(value))

            if isinstance(value, dict):
                extract_fields(value, field_path, depth + 1)

    for document in documents:
        extract_fields(document)

    return {path: sorted(types) for path, types in field_types.items()}
