"""Centralised Supabase table and column configuration.

The portal reads and writes three Supabase/PostgREST tables: ``users``,
``orders`` and ``reports``.  Each table name and column identifier used by the
code base is defined here so that deployments can adjust naming conventions
without modifying application logic.  When a mapping for a table or column is
missing the helpers fall back to the identifier supplied by the caller.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class SupabaseTable:
    """Configuration for a Supabase table."""

    name: str
    columns: Mapping[str, str] = field(default_factory=dict)


# Default table and column mappings, used unless SUPABASE_SCHEMA_JSON
# overrides them.
_DEFAULT_SUPABASE_SCHEMA: Dict[str, SupabaseTable] = {
    "users": SupabaseTable(
        name="users",
        columns={
            "id": "id",
            "username": "username",
            "password_hash": "password_hash",
            "station": "station",
            "operator": "operator",
            "role": "role",
            "is_active": "is_active",
        },
    ),
    "orders": SupabaseTable(
        name="orders",
        columns={
            "order_no": "order_no",
            "item_name": "item_name",
            "item_no": "item_no",
            "order_qty": "order_qty",
        },
    ),
    "reports": SupabaseTable(
        name="reports",
        columns={
            "id": "id",
            "station": "station",
            "order_no": "order_no",
            "item_name": "item_name",
            "item_no": "item_no",
            "operator": "operator",
            "good_qty": "good_qty",
            "bad_qty": "bad_qty",
            "report_time": "report_time",
        },
    ),
}


def _normalise_columns(columns: Any) -> Dict[str, str]:
    """Return a string-to-string column mapping from ``columns``."""

    if not isinstance(columns, Mapping):
        return {}
    return {
        str(logical): str(actual)
        for logical, actual in columns.items()
        if isinstance(logical, str) and isinstance(actual, str)
    }


def _load_schema_from_env() -> Dict[str, SupabaseTable]:
    """Build the Supabase schema from environment overrides."""

    schema = dict(_DEFAULT_SUPABASE_SCHEMA)

    raw_schema = os.getenv("SUPABASE_SCHEMA_JSON")
    if not raw_schema:
        return schema

    try:
        parsed = json.loads(raw_schema)
    except json.JSONDecodeError:
        return schema

    if not isinstance(parsed, Mapping):
        return schema

    for identifier, entry in parsed.items():
        if not isinstance(identifier, str) or not isinstance(entry, Mapping):
            continue

        name = entry.get("name")
        if not isinstance(name, str) or not name:
            continue

        # Partial column overrides keep the defaults for unlisted columns.
        columns = dict(schema[identifier].columns) if identifier in schema else {}
        columns.update(_normalise_columns(entry.get("columns", {})))
        schema[identifier] = SupabaseTable(name=name, columns=columns)

    return schema


SUPABASE_SCHEMA: Dict[str, SupabaseTable] = _load_schema_from_env()


def table_name(identifier: str) -> str:
    """Return the configured Supabase table name for ``identifier``."""

    table = SUPABASE_SCHEMA.get(identifier)
    if table:
        return table.name
    return identifier


def column_name(table_identifier: str, column_identifier: str) -> str:
    """Return the configured column name for ``table_identifier``."""

    table = SUPABASE_SCHEMA.get(table_identifier)
    if table and column_identifier in table.columns:
        return table.columns[column_identifier]
    return column_identifier


def table_columns(table_identifier: str) -> Mapping[str, str]:
    """Return the configured column mapping for ``table_identifier``."""

    table = SUPABASE_SCHEMA.get(table_identifier)
    if table:
        return table.columns
    return {}


def select_columns(table_identifier: str, *logical: str) -> str:
    """Return a PostgREST ``select`` clause for the logical column names."""

    return ",".join(column_name(table_identifier, column) for column in logical)


def to_supabase_payload(
    table_identifier: str, payload: Mapping[str, Any]
) -> Dict[str, Any]:
    """Return ``payload`` with keys mapped to Supabase column names."""

    columns = table_columns(table_identifier)
    if not columns:
        return dict(payload)
    return {columns.get(key, key): value for key, value in payload.items()}


def from_supabase_row(table_identifier: str, row: Mapping[str, Any]) -> Dict[str, Any]:
    """Return ``row`` with Supabase column names mapped back to logical names."""

    reverse = {actual: logical for logical, actual in table_columns(table_identifier).items()}
    return {reverse.get(key, key): value for key, value in row.items()}
