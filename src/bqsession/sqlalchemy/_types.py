from datetime import datetime, timezone
from typing import Any, Optional, Union

import sqlalchemy
from sqlalchemy.engine.interfaces import Dialect
from sqlalchemy.ext.compiler import compiles

from bqsession.sql.utils import ParamEscaper


def process_literal_param_hack(value: Any):
    """Literal datetimes are rendered by the impl type's literal processor, so the value
    is passed through unchanged.
    """
    return value


@compiles(sqlalchemy.types.String, "bqsession")
def compile_string_bqsession(type_, compiler, **kw):
    """
    BigQuery has a single STRING type, optionally with a maximum length.

    https://cloud.google.com/bigquery/docs/reference/standard-sql/data-types#string_type
    """
    if type_.length:
        return f"STRING({type_.length})"
    return "STRING"


@compiles(sqlalchemy.types.Enum, "bqsession")
@compiles(sqlalchemy.types.Text, "bqsession")
@compiles(sqlalchemy.types.Unicode, "bqsession")
@compiles(sqlalchemy.types.UnicodeText, "bqsession")
@compiles(sqlalchemy.types.Uuid, "bqsession")
def compile_unsized_string_bqsession(type_, compiler, **kw):
    """
    SQLAlchemy defaults to incompatible names for these types

      Enum -> VARCHAR
      Text -> TEXT
      Unicode -> VARCHAR[LENGTH]
      UnicodeText -> TEXT
      Uuid -> CHAR[32]

    But all of them are stored as STRING in BigQuery
    """
    return "STRING"


@compiles(sqlalchemy.types.Integer, "bqsession")
@compiles(sqlalchemy.types.BigInteger, "bqsession")
@compiles(sqlalchemy.types.SmallInteger, "bqsession")
def compile_integer_bqsession(type_, compiler, **kw):
    """BigQuery only has a 64 bit integer type"""
    return "INT64"


@compiles(sqlalchemy.types.Float, "bqsession")
@compiles(sqlalchemy.types.Double, "bqsession")
def compile_float_bqsession(type_, compiler, **kw):
    return "FLOAT64"


@compiles(sqlalchemy.types.Numeric, "bqsession")
def compile_numeric_bqsession(type_, compiler, **kw):
    """
    NUMERIC takes an optional precision and scale. Without a precision BigQuery uses its
    defaults of NUMERIC(38, 9).
    """
    if type_.precision is None:
        return "NUMERIC"
    if type_.scale is None:
        return f"NUMERIC({type_.precision})"
    return f"NUMERIC({type_.precision}, {type_.scale})"


@compiles(sqlalchemy.types.Boolean, "bqsession")
def compile_boolean_bqsession(type_, compiler, **kw):
    return "BOOL"


@compiles(sqlalchemy.types.DateTime, "bqsession")
def compile_datetime_bqsession(type_, compiler, **kw):
    """
    DateTime() is stored as an absolute point in time. Use sqlalchemy.types.DATETIME for
    BigQuery's civil (zoneless) DATETIME type.
    """
    return "TIMESTAMP"


@compiles(sqlalchemy.types.LargeBinary, "bqsession")
def compile_binary_bqsession(type_, compiler, **kw):
    if type_.length:
        return f"BYTES({type_.length})"
    return "BYTES"


@compiles(sqlalchemy.types.JSON, "bqsession")
def compile_json_bqsession(type_, compiler, **kw):
    return "JSON"


@compiles(sqlalchemy.types.ARRAY, "bqsession")
def compile_array_bqsession(type_, compiler, **kw):
    """
    SQLAlchemy's default ARRAY can't compile as it's only implemented for Postgresql.

    :type_:
        This is an instance of sqlalchemy.types.ARRAY which always includes an item_type attribute
        which is itself an instance of TypeEngine

    https://cloud.google.com/bigquery/docs/reference/standard-sql/data-types#array_type
    """

    inner = compiler.process(type_.item_type, **kw)

    return f"ARRAY<{inner}>"


class TIMESTAMP(sqlalchemy.types.TypeDecorator):
    """An absolute point in time, read back in the local time zone of this process.

    google-cloud-bigquery decodes TIMESTAMP values as UTC datetimes. Our dialect maps
    sqlalchemy.types.DateTime() to this type, so every DateTime() column read through
    the dialect is converted to local time. Naive values are taken to be UTC.

    https://cloud.google.com/bigquery/docs/reference/standard-sql/data-types#timestamp_type
    """

    impl = sqlalchemy.types.DateTime

    cache_ok = True

    def process_result_value(self, value: Union[None, datetime], dialect):
        if value is None:
            return None

        if not value.tzinfo:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone()

    def process_bind_param(
        self, value: Union[datetime, None], dialect
    ) -> Optional[datetime]:
        """The DB-API driver renders datetime.datetime() objects itself"""
        return value

    def process_literal_param(
        self, value: Union[datetime, None], dialect: Dialect
    ) -> str:
        return process_literal_param_hack(value)


class BigQueryStringType(sqlalchemy.types.TypeDecorator):
    """SQLAlchemy's default String() escapes a single-quote by doubling it. GoogleSQL reads
    that as two adjacent literals, and uses a backslash for escaping instead.
    """

    impl = sqlalchemy.types.String
    cache_ok = True
    pe = ParamEscaper()

    def process_literal_param(self, value, dialect) -> str:
        """Render the literal with the same escaping as the DB-API driver's inline parameters."""

        return self.pe.escape_string(value)

    def literal_processor(self, dialect):
        """Overridden so that String.literal_processor() does not double the single-quotes
        already escaped by process_literal_param().

        See type_api.py::TypeEngine.literal_processor:

        ```python
            def process(value: Any) -> str:
                return fixed_impl_processor(
                    fixed_process_literal_param(value, dialect)
                )
        ```

        https://docs.sqlalchemy.org/en/20/core/custom_types.html#sqlalchemy.types.TypeDecorator.literal_processor
        """

        def process(value):
            _step1 = self.process_literal_param(value, dialect=dialect)
            if dialect.identifier_preparer._double_percents:
                _step2 = _step1.replace("%", "%%")
            else:
                _step2 = _step1

            return "%s" % _step2

        return process
