import enum
from datetime import datetime, timedelta, timezone

import pytest
import sqlalchemy

from bqsession.sqlalchemy.base import BigQuerySessionDialect
from bqsession.sqlalchemy._types import TIMESTAMP, BigQueryStringType


class BigQueryDataType(enum.Enum):
    """https://cloud.google.com/bigquery/docs/reference/standard-sql/data-types"""

    ARRAY = enum.auto()
    BIGINT = enum.auto()
    BOOL = enum.auto()
    BYTES = enum.auto()
    DATE = enum.auto()
    DATETIME = enum.auto()
    FLOAT64 = enum.auto()
    INT64 = enum.auto()
    JSON = enum.auto()
    NUMERIC = enum.auto()
    STRING = enum.auto()
    TIME = enum.auto()
    TIMESTAMP = enum.auto()


# Defines the way that SQLAlchemy CamelCase types are compiled into BigQuery types.
camel_case_type_map = {
    sqlalchemy.types.BigInteger: BigQueryDataType.INT64,
    sqlalchemy.types.LargeBinary: BigQueryDataType.BYTES,
    sqlalchemy.types.Boolean: BigQueryDataType.BOOL,
    sqlalchemy.types.Date: BigQueryDataType.DATE,
    sqlalchemy.types.DateTime: BigQueryDataType.TIMESTAMP,
    sqlalchemy.types.Double: BigQueryDataType.FLOAT64,
    sqlalchemy.types.Enum: BigQueryDataType.STRING,
    sqlalchemy.types.Float: BigQueryDataType.FLOAT64,
    sqlalchemy.types.Integer: BigQueryDataType.INT64,
    sqlalchemy.types.Interval: BigQueryDataType.TIMESTAMP,
    sqlalchemy.types.JSON: BigQueryDataType.JSON,
    sqlalchemy.types.Numeric: BigQueryDataType.NUMERIC,
    sqlalchemy.types.PickleType: BigQueryDataType.BYTES,
    sqlalchemy.types.SmallInteger: BigQueryDataType.INT64,
    sqlalchemy.types.String: BigQueryDataType.STRING,
    sqlalchemy.types.Text: BigQueryDataType.STRING,
    sqlalchemy.types.Time: BigQueryDataType.TIME,
    sqlalchemy.types.Unicode: BigQueryDataType.STRING,
    sqlalchemy.types.UnicodeText: BigQueryDataType.STRING,
    sqlalchemy.types.Uuid: BigQueryDataType.STRING,
}


def dict_as_tuple_list(d: dict):
    """Return a list of [(key, value), ...] from a dictionary."""
    return [(key, value) for key, value in d.items()]


class CompilationTestBase:
    dialect = BigQuerySessionDialect()

    def _assert_compiled_value(
        self, type_: sqlalchemy.types.TypeEngine, expected: BigQueryDataType
    ):
        """Assert that when type_ is compiled for the bqsession dialect, it renders the BigQueryDataType name.

        This method initialises the type_ with no arguments.
        """
        compiled_result = type_().compile(dialect=self.dialect)  # type: ignore
        assert compiled_result == expected.name

    def _assert_compiled_value_explicit(
        self, type_: sqlalchemy.types.TypeEngine, expected: str
    ):
        """Assert that when type_ is compiled for the bqsession dialect, it renders the expected string.

        This method expects an initialised type_ so that we can test how a TypeEngine created with arguments
        is compiled.
        """
        compiled_result = type_.compile(dialect=self.dialect)
        assert compiled_result == expected


class TestCamelCaseTypesCompilation(CompilationTestBase):
    """Per the sqlalchemy documentation[^1], the camel case members of sqlalchemy.types are
    expected to work across all dialects. These tests verify that the types compile into valid
    BigQuery type names. For example, sqlalchemy.types.Integer() should compile as "INT64".

    [1]: https://docs.sqlalchemy.org/en/20/core/type_basics.html#generic-camelcase-types
    """

    @pytest.mark.parametrize("type_, expected", dict_as_tuple_list(camel_case_type_map))
    def test_bare_camel_case_types_compile(self, type_, expected):
        self._assert_compiled_value(type_, expected)

    def test_string_renders_with_length(self):
        self._assert_compiled_value_explicit(sqlalchemy.types.String(10), "STRING(10)")

    def test_text_ignores_length(self):
        self._assert_compiled_value_explicit(sqlalchemy.types.Text(10), "STRING")

    def test_numeric_renders_with_precision(self):
        self._assert_compiled_value_explicit(
            sqlalchemy.types.Numeric(10), "NUMERIC(10)"
        )

    def test_numeric_renders_with_precision_and_scale(self):
        self._assert_compiled_value_explicit(
            sqlalchemy.types.Numeric(10, 2), "NUMERIC(10, 2)"
        )

    def test_large_binary_renders_with_length(self):
        self._assert_compiled_value_explicit(
            sqlalchemy.types.LargeBinary(16), "BYTES(16)"
        )


uppercase_type_map = {
    sqlalchemy.types.BIGINT: BigQueryDataType.BIGINT,
    sqlalchemy.types.DATE: BigQueryDataType.DATE,
    sqlalchemy.types.DATETIME: BigQueryDataType.DATETIME,
    sqlalchemy.types.TIMESTAMP: BigQueryDataType.TIMESTAMP,
    TIMESTAMP: BigQueryDataType.TIMESTAMP,
}


class TestUppercaseTypesCompilation(CompilationTestBase):
    """Per the sqlalchemy documentation[^1], uppercase types are considered to be specific to some
    database backends. These tests verify the ones BigQuery accepts under the same name.

    [1]: https://docs.sqlalchemy.org/en/20/core/type_basics.html#backend-specific-uppercase-datatypes
    """

    @pytest.mark.parametrize("type_, expected", dict_as_tuple_list(uppercase_type_map))
    def test_bare_uppercase_types_compile(self, type_, expected):
        self._assert_compiled_value(type_, expected)

    def test_array_string_renders_as_array_of_string(self):
        """SQLAlchemy's ARRAY type requires an item definition.

        https://docs.sqlalchemy.org/en/20/core/type_basics.html#sqlalchemy.types.ARRAY
        """
        self._assert_compiled_value_explicit(
            sqlalchemy.types.ARRAY(sqlalchemy.types.String), "ARRAY<STRING>"
        )

    def test_array_of_integer(self):
        self._assert_compiled_value_explicit(
            sqlalchemy.types.ARRAY(sqlalchemy.types.Integer), "ARRAY<INT64>"
        )


class TestTimestampValues:
    dialect = BigQuerySessionDialect()

    def test_aware_values_are_returned_in_local_time(self):
        value = datetime(2021, 1, 1, 12, 0, tzinfo=timezone.utc)

        result = TIMESTAMP().process_result_value(value, self.dialect)

        assert result == value
        assert result.utcoffset() == value.astimezone().utcoffset()

    def test_naive_values_are_taken_as_utc(self):
        value = datetime(2021, 1, 1, 12, 0)

        result = TIMESTAMP().process_result_value(value, self.dialect)

        assert result.tzinfo is not None
        assert result == value.replace(tzinfo=timezone.utc)

    def test_none_is_returned_unchanged(self):
        assert TIMESTAMP().process_result_value(None, self.dialect) is None

    def test_bind_values_pass_through(self):
        value = datetime(2021, 1, 1, tzinfo=timezone(timedelta(hours=10)))
        assert TIMESTAMP().process_bind_param(value, self.dialect) is value

    def test_datetime_columns_use_the_timestamp_decorator(self):
        impl = sqlalchemy.types.DateTime().dialect_impl(self.dialect)
        assert isinstance(impl, TIMESTAMP)


class TestStringLiterals:
    dialect = BigQuerySessionDialect()

    def test_literal_processor_escapes_with_backslashes(self):
        process = BigQueryStringType().literal_processor(self.dialect)
        assert process("it's") == r"'it\'s'"

    def test_string_columns_use_the_string_decorator(self):
        impl = sqlalchemy.types.String().dialect_impl(self.dialect)
        assert isinstance(impl, BigQueryStringType)
