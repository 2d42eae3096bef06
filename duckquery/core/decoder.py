# duckquery/core/decoder.py
"""
DECODER - Turn a JSONCompact result into typed rows

Data Flow:
    QueryResult.meta + QueryResult.data → convert_value() per cell → List[Dict[str, Any]]

Type mapping (tag is matched case-insensitively):
    boolean                                       → bool
    tinyint, smallint, integer, int32             → int
    float, double                                 → float
    decimal                                       → Decimal
    bigint, int64, hugeint                        → int (built from the literal text, never via float)
    varchar, string, text, uuid                   → str
    date                                          → datetime at UTC midnight
    time                                          → str, untouched
    timestamp, datetime                           → aware datetime, naive values read as UTC
    timestamptz                                   → aware datetime, converted to UTC
    blob                                          → bytes (base64 text is decoded)
    list, array                                   → list
    struct, json                                  → dict (or whatever the JSON holds)
    anything else                                 → raw cell

A null cell is always None, whatever the column type says.
A cell that does not fit its type ('infinity' dates, non-numeric text...) is
kept raw. Only malformed list/struct/json text raises DecodeError.
"""

import base64
import json
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from duckquery.core.exceptions import DecodeError
from duckquery.core.schemas import QueryResult, RowData, TableData

logger = logging.getLogger(__name__)


TypedValue = Union[
    None, bool, int, float, Decimal, str, bytes, datetime, List[Any], Dict[str, Any]
]


class WireType(str, Enum):
    BOOLEAN = "boolean"

    TINYINT = "tinyint"
    SMALLINT = "smallint"
    INTEGER = "integer"
    INT32 = "int32"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"

    BIGINT = "bigint"
    INT64 = "int64"
    HUGEINT = "hugeint"

    VARCHAR = "varchar"
    STRING = "string"
    TEXT = "text"
    UUID = "uuid"

    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    DATETIME = "datetime"
    TIMESTAMPTZ = "timestamptz"

    BLOB = "blob"

    LIST = "list"
    ARRAY = "array"
    STRUCT = "struct"
    JSON = "json"

    @classmethod
    def from_tag(cls, tag: str) -> Optional["WireType"]:
        """Known tag → WireType, unknown tag → None (cell passes through)."""
        try:
            return cls(tag.lower())
        except ValueError:
            return None


# ============================================================================
# CELL CONVERTERS
# ============================================================================


def to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1")
    return bool(value)


def to_integer(value: Any) -> int:
    if isinstance(value, (bool, float)):
        return int(value)
    return int(str(value).strip())


def to_float(value: Any) -> float:
    return float(value)


def to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"invalid decimal literal {value!r}")


def to_big_integer(value: Any) -> int:
    """
    Build an exact int from the cell.

    "9223372036854775807" → 9223372036854775807
    A float cell has already lost precision on the server side; it is
    truncated as-is rather than rejected.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return int(str(value).strip())


def to_text(value: Any) -> str:
    return str(value)


def to_date(value: Any) -> datetime:
    # "2024-01-15" → 2024-01-15 00:00:00+00:00
    return datetime.strptime(str(value), "%Y-%m-%d").replace(tzinfo=timezone.utc)


# Python keeps at most microseconds; DuckDB can send nanoseconds
_EXTRA_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_iso(text: str) -> datetime:
    return datetime.fromisoformat(_EXTRA_FRACTION.sub(r"\1", text.strip()))


def to_timestamp(value: Any) -> datetime:
    # "2024-01-15 10:30:00" → 2024-01-15T10:30:00+00:00
    parsed = _parse_iso(str(value).replace(" ", "T", 1))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_timestamptz(value: Any) -> datetime:
    parsed = _parse_iso(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


_NOT_BASE64 = re.compile(r"[^A-Za-z0-9+/]")


def decode_base64(text: str) -> bytes:
    """
    Lenient base64: url-safe alphabet accepted, stray characters dropped,
    missing padding repaired. "aGk" → b"hi"
    """
    data = _NOT_BASE64.sub("", text.replace("-", "+").replace("_", "/"))
    if len(data) % 4 == 1:
        # A lone trailing character carries no full byte
        data = data[:-1]
    return base64.b64decode(data + "=" * (-len(data) % 4))


def to_blob(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return decode_base64(value)
    return bytes(value)


def to_list(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


def to_struct(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value)
    return value


_CONVERTERS: Dict[WireType, Callable[[Any], TypedValue]] = {
    WireType.BOOLEAN: to_boolean,
    WireType.TINYINT: to_integer,
    WireType.SMALLINT: to_integer,
    WireType.INTEGER: to_integer,
    WireType.INT32: to_integer,
    WireType.FLOAT: to_float,
    WireType.DOUBLE: to_float,
    WireType.DECIMAL: to_decimal,
    WireType.BIGINT: to_big_integer,
    WireType.INT64: to_big_integer,
    WireType.HUGEINT: to_big_integer,
    WireType.VARCHAR: to_text,
    WireType.STRING: to_text,
    WireType.TEXT: to_text,
    WireType.UUID: to_text,
    WireType.DATE: to_date,
    WireType.TIME: to_text,
    WireType.TIMESTAMP: to_timestamp,
    WireType.DATETIME: to_timestamp,
    WireType.TIMESTAMPTZ: to_timestamptz,
    WireType.BLOB: to_blob,
    WireType.LIST: to_list,
    WireType.ARRAY: to_list,
    WireType.STRUCT: to_struct,
    WireType.JSON: to_struct,
}


def convert_value(value: Any, type_tag: str, column: Optional[str] = None) -> TypedValue:
    """
    Convert one raw cell using its column's type tag.

    Raises:
        DecodeError: list/array/struct/json text that is not valid JSON
    """
    if value is None:
        return None

    wire_type = WireType.from_tag(type_tag)
    if wire_type is None:
        return value

    converter = _CONVERTERS[wire_type]
    try:
        return converter(value)
    except json.JSONDecodeError as e:
        raise DecodeError(str(e), column=column, type_tag=type_tag) from e
    except (ValueError, TypeError, OverflowError) as e:
        # e.g. 'infinity'::DATE has no datetime equivalent
        logger.debug(f"Keeping raw {type_tag} value {value!r} for {column!r}: {e}")
        return value


# ============================================================================
# TABLE DECODING
# ============================================================================


def decode_row(cells: List[Any], result: QueryResult) -> RowData:
    row: RowData = {}
    for index, column in enumerate(result.meta):
        raw = cells[index] if index < len(cells) else None
        # Duplicate column names: the later column wins
        row[column.name] = convert_value(raw, column.type, column.name)
    return row


def decode_result(result: QueryResult) -> TableData:
    """Decode every wire row, keeping wire order."""
    return [decode_row(cells, result) for cells in result.data]
