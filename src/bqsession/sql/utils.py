from __future__ import annotations

import base64
import datetime
import decimal
import logging
from collections.abc import Mapping
from typing import Any, Dict, Sequence, Union

from bqsession.sql import exc

logger = logging.getLogger(__name__)


# Adapted from PyHive's escaper, rendering literals the way BigQuery GoogleSQL reads them
class ParamEscaper:
    _DATE_FORMAT = "%Y-%m-%d"
    _TIME_FORMAT = "%H:%M:%S.%f"

    def escape_args(self, parameters):
        if isinstance(parameters, dict):
            return {k: self.escape_item(v) for k, v in parameters.items()}
        elif isinstance(parameters, (list, tuple)):
            return tuple(self.escape_item(x) for x in parameters)
        else:
            raise exc.ProgrammingError(
                "Unsupported param format: {}".format(parameters)
            )

    def escape_identifier(self, item: str) -> str:
        """Like MySQL, BigQuery uses the nonstandard ` (backtick) for quoting identifiers."""
        return "`{}`".format(item.replace("\\", "\\\\").replace("`", "\\`"))

    def escape_boolean(self, item: bool) -> str:
        return "true" if item else "false"

    def escape_number(self, item):
        return item

    def escape_string(self, item):
        # Backslash is the escape character in GoogleSQL string literals, so it
        # has to be escaped first, then the quote character.
        return "'{}'".format(item.replace("\\", "\\\\").replace("'", "\\'"))

    def escape_bytes(self, item: bytes) -> str:
        return "FROM_BASE64('{}')".format(base64.b64encode(item).decode("ascii"))

    def escape_sequence(self, item):
        l = map(self.escape_item, item)
        l = list(map(str, l))
        return "[" + ", ".join(l) + "]"

    def escape_mapping(self, item):
        l = [
            "{} AS {}".format(self.escape_item(value), self.escape_identifier(key))
            for key, value in item.items()
        ]
        return "STRUCT(" + ", ".join(l) + ")"

    def escape_datetime(self, item: datetime.datetime) -> str:
        return "'{}'".format(item.isoformat())

    def escape_date(self, item: datetime.date) -> str:
        return "'{}'".format(item.strftime(self._DATE_FORMAT))

    def escape_time(self, item: datetime.time) -> str:
        fmt = self._TIME_FORMAT if item.microsecond else self._TIME_FORMAT[:-3]
        return "'{}'".format(item.strftime(fmt))

    def escape_decimal(self, item):
        return str(item)

    def escape_item(self, item):
        if item is None:
            return "NULL"
        # bool is a subclass of int so it must be checked first
        elif isinstance(item, bool):
            return self.escape_boolean(item)
        elif isinstance(item, (int, float)):
            return self.escape_number(item)
        elif isinstance(item, str):
            return self.escape_string(item)
        elif isinstance(item, (bytes, bytearray)):
            return self.escape_bytes(bytes(item))
        elif isinstance(item, datetime.datetime):
            return self.escape_datetime(item)
        elif isinstance(item, datetime.date):
            return self.escape_date(item)
        elif isinstance(item, datetime.time):
            return self.escape_time(item)
        elif isinstance(item, decimal.Decimal):
            return self.escape_decimal(item)
        elif isinstance(item, Sequence):
            return self.escape_sequence(item)
        elif isinstance(item, Mapping):
            return self.escape_mapping(item)
        else:
            raise exc.ProgrammingError("Unsupported object {}".format(item))


def inject_parameters(
    operation: str, parameters: Union[Dict[str, Any], Sequence[Any]]
) -> str:
    return operation % parameters
