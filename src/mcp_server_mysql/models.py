"""
Typed shapes exchanged between the router, the catalog and the query gateway.

Driver rows are untyped dicts; they are mapped into these models (or into
plain JSON-safe row dicts) before anything downstream touches them.
"""

import datetime
import decimal
import json
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, StrictStr

from .configs import RESOURCE_MIME_TYPE, RESOURCE_SCHEME, SCHEMA_SUFFIX

Row = dict[str, Any]


def _row_value(row: Row, key: str) -> Any:
    # information_schema column names come back upper-cased on MySQL 8
    if key in row:
        return row[key]
    return row[key.upper()]


class ResourceDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    uri: str
    mimeType: str
    name: str

    @classmethod
    def for_table(cls, table_name: str) -> "ResourceDescriptor":
        # `/` delimits the schema suffix, so it must not appear in the table segment
        segment = quote(table_name, safe="")
        return cls(
            uri=f"{RESOURCE_SCHEME}://{segment}/{SCHEMA_SUFFIX}",
            mimeType=RESOURCE_MIME_TYPE,
            name=f'"{table_name}" database schema',
        )


class ColumnDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    columnName: str
    dataType: str
    isNullable: bool
    columnKey: str

    @classmethod
    def from_row(cls, row: Row) -> "ColumnDescriptor":
        return cls(
            columnName=_row_value(row, "column_name"),
            dataType=_row_value(row, "data_type"),
            isNullable=_row_value(row, "is_nullable") == "YES",
            columnKey=_row_value(row, "column_key") or "",
        )


class QueryRequest(BaseModel):
    """Arguments of the `query` tool; anything besides `sql` is ignored."""

    sql: StrictStr


class QueryResult(BaseModel):
    rows: list[Row]
    truncated: bool = False


class ToolDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    inputSchema: dict[str, Any]


def table_name_from_row(row: Row) -> str:
    return _row_value(row, "table_name")


def _json_default(value: Any) -> Any:
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, (datetime.date, datetime.time, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return value.hex()
    return str(value)


def to_json(payload: Any) -> str:
    """Serialize rows or descriptors as indented JSON text."""
    return json.dumps(payload, indent=2, default=_json_default)
