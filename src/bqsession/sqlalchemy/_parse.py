import logging
import re
from typing import Any, Dict, List, Optional

import sqlalchemy
from sqlalchemy.engine.interfaces import ReflectedColumn

from bqsession.sqlalchemy import _types as type_overrides

"""
This module contains helper functions that parse the metadata BigQuery returns from
INFORMATION_SCHEMA and the messages of the errors it raises. These are mostly just
wrappers around regexes.
"""

logger = logging.getLogger(__name__)


class BigQuerySessionParseException(Exception):
    pass


def _match_table_not_found_string(message: str) -> bool:
    """Return True if the message contains a substring indicating that a table or dataset was not found"""

    return any(
        [
            "Not found: Table" in message,
            "Not found: Dataset" in message,
        ]
    )


# The keys of this dictionary are the base type names BigQuery reports in
# INFORMATION_SCHEMA.COLUMNS.DATA_TYPE, lower-cased.
GET_COLUMNS_TYPE_MAP = {
    "bool": sqlalchemy.types.Boolean,
    "int64": sqlalchemy.types.BigInteger,
    "float64": sqlalchemy.types.Float,
    "numeric": sqlalchemy.types.Numeric,
    "bignumeric": sqlalchemy.types.Numeric,
    "string": sqlalchemy.types.String,
    "bytes": sqlalchemy.types.LargeBinary,
    "date": sqlalchemy.types.Date,
    "datetime": sqlalchemy.types.DATETIME,
    "time": sqlalchemy.types.Time,
    "timestamp": type_overrides.TIMESTAMP,
    "json": sqlalchemy.types.JSON,
    "geography": sqlalchemy.types.String,
    "interval": sqlalchemy.types.String,
    "struct": sqlalchemy.types.String,
    "range": sqlalchemy.types.String,
}

SIZED_TYPE_PATTERN = re.compile(r"^(\w+)\s*\(\s*(\d+)(?:\s*,\s*(\d+))?\s*\)$")
ARRAY_TYPE_PATTERN = re.compile(r"^ARRAY\s*<(.*)>$", re.IGNORECASE | re.DOTALL)
BASE_TYPE_PATTERN = re.compile(r"^\w+")


def parse_data_type(data_type: str) -> sqlalchemy.types.TypeEngine:
    """Return an instantiated sqlalchemy type for a BigQuery type name.

    data_type
      The value of INFORMATION_SCHEMA.COLUMNS.DATA_TYPE, e.g. STRING(10), NUMERIC(10, 2)
      or ARRAY<INT64>

    Parameterised types keep their length, or precision and scale. Unknown types are
    reflected as NullType.
    """
    data_type = data_type.strip()

    array_match = ARRAY_TYPE_PATTERN.match(data_type)
    if array_match:
        return sqlalchemy.types.ARRAY(parse_data_type(array_match.group(1)))

    base_match = BASE_TYPE_PATTERN.match(data_type)
    if base_match is None:
        raise BigQuerySessionParseException(
            "Could not parse BigQuery data type: " + data_type
        )

    base_type = base_match.group(0).lower()
    type_class = GET_COLUMNS_TYPE_MAP.get(base_type)
    if type_class is None:
        logger.warning(
            "Did not recognize type '%s'; reflecting it as NullType", data_type
        )
        return sqlalchemy.types.NullType()

    sized_match = SIZED_TYPE_PATTERN.match(data_type)
    if sized_match is None:
        return type_class()

    first, second = sized_match.group(2), sized_match.group(3)
    if type_class is sqlalchemy.types.Numeric:
        return sqlalchemy.types.Numeric(
            int(first), int(second) if second is not None else None
        )
    if type_class in (sqlalchemy.types.String, sqlalchemy.types.LargeBinary):
        return type_class(int(first))
    return type_class()


def _parse_column_default(column_default: Optional[str]) -> Optional[str]:
    # INFORMATION_SCHEMA reports a missing default as the string NULL
    if column_default is None or column_default.upper() == "NULL":
        return None
    return column_default


def parse_column_info_from_information_schema(row: Any) -> ReflectedColumn:
    """Returns a dictionary of the ReflectedColumn schema parsed from one row of

    SELECT column_name, data_type, is_nullable, column_default
    FROM <dataset>.INFORMATION_SCHEMA.COLUMNS
    """

    # BigQuery has no auto-incrementing columns, so per the guidance in SQLAlchemy's
    # docstrings the autoincrement key is left out of this dictionary.
    this_column = {
        "name": row.column_name,
        "type": parse_data_type(row.data_type),
        "nullable": row.is_nullable == "YES",
        "default": _parse_column_default(row.column_default),
    }

    # TODO: read column descriptions from INFORMATION_SCHEMA.COLUMN_FIELD_PATHS for comment reflection
    return this_column  # type: ignore


def information_schema_rows_to_column_list(rows: List[Any]) -> List[Dict[str, Any]]:
    return [parse_column_info_from_information_schema(row) for row in rows]
