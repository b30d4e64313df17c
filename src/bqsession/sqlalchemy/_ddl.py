import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import exc
from sqlalchemy.schema import Column, ExecutableDDLElement
from sqlalchemy.sql import compiler

logger = logging.getLogger(__name__)

ADD_COLUMN = "ADD COLUMN"
DROP_COLUMN = "DROP COLUMN"

# BigQuery rejects OFFSET without LIMIT, so an unbounded LIMIT is written instead
MAX_LIMIT = 9223372036854775807


class BigQuerySessionIdentifierPreparer(compiler.IdentifierPreparer):
    """Like MySQL, BigQuery uses the nonstandard ` (backtick) for quoting identifiers.
    Every identifier is quoted.

    https://cloud.google.com/bigquery/docs/reference/standard-sql/lexical#quoted_identifiers
    """

    def __init__(self, dialect):
        super().__init__(dialect, initial_quote="`")

    def _escape_identifier(self, value: str) -> str:
        value = value.replace("\\", "\\\\").replace("`", "\\`")
        if self._double_percents:
            value = value.replace("%", "%%")
        return value

    def _unescape_identifier(self, value: str) -> str:
        return value.replace("\\`", "`").replace("\\\\", "\\")

    def _requires_quotes(self, value: str) -> bool:
        return True


class AlterTable(ExecutableDDLElement):
    """An ALTER TABLE statement that adds and drops several columns of one table at once.

    BigQuery limits the number of schema updates per table, so a migration adding a
    dozen columns should issue one statement instead of twelve:

    ```python
    stmt = AlterTable("people").add_column(Column("age", Integer)).drop_column("nickname")
    # ALTER TABLE `people` ADD COLUMN `age` INT64, DROP COLUMN `nickname`
    ```

    Clauses are rendered in the order they were added.
    """

    __visit_name__ = "alter_table_columns"

    def __init__(self, table_name: str, schema: Optional[str] = None):
        self.table_name = table_name
        self.schema = schema
        self.operations: List[Tuple[str, Any, bool]] = []

    def add_column(self, column: Column, if_not_exists: bool = False) -> "AlterTable":
        self.operations.append((ADD_COLUMN, column, bool(if_not_exists)))
        return self

    def drop_column(self, column: Any, if_exists: bool = False) -> "AlterTable":
        """`column` may be a Column or a column name"""
        name = column if isinstance(column, str) else column.name
        self.operations.append((DROP_COLUMN, name, bool(if_exists)))
        return self

    def __len__(self) -> int:
        return len(self.operations)


class BigQuerySessionDDLCompiler(compiler.DDLCompiler):
    def post_create_table(self, table):
        """Render the BigQuery-specific table options given as dialect kwargs.

        bqsession_partition_by accepts a column name, a Column, a SQL expression, or a
        list of those:

        ```python
        Table("people", metadata, ..., bqsession_partition_by="date_of_birth")
        # CREATE TABLE `people` (...) PARTITION BY (`date_of_birth`)
        ```
        """
        partition_by = table.dialect_options["bqsession"]["partition_by"]
        if partition_by is None:
            return ""

        if not isinstance(partition_by, (list, tuple)):
            partition_by = [partition_by]

        expressions = [self._render_partition_expression(p) for p in partition_by]
        return " PARTITION BY ({})".format(", ".join(expressions))

    def _render_partition_expression(self, expression) -> str:
        if isinstance(expression, str):
            return self.preparer.quote(expression)
        if isinstance(expression, Column):
            return self.preparer.format_column(expression)
        return self.sql_compiler.process(
            expression, include_table=False, literal_binds=True
        )

    def visit_primary_key_constraint(self, constraint, **kw):
        """BigQuery primary keys are informational only and must be declared NOT ENFORCED.
        They cannot be named.

        https://cloud.google.com/bigquery/docs/reference/standard-sql/data-definition-language#create_table_statement
        """
        if len(constraint) == 0:
            return None
        return "PRIMARY KEY ({}) NOT ENFORCED".format(
            ", ".join(self.preparer.quote(c.name) for c in constraint)
        )

    def visit_foreign_key_constraint(self, constraint, **kw):
        logger.warning("This dialect does not support foreign key constraints")
        return None

    def visit_unique_constraint(self, constraint, **kw):
        logger.warning("BigQuery does not support unique constraints")
        return None

    def visit_check_constraint(self, constraint, **kw):
        logger.warning("This dialect does not support check constraints")
        return None

    def visit_column_check_constraint(self, constraint, **kw):
        logger.warning("This dialect does not support check constraints")
        return None

    def get_column_specification(self, column, **kwargs):
        """Overridden only to emit a log message if a user attempts to set autoincrement=True
        on a column. BigQuery has no auto-incrementing columns.
        """
        table = getattr(column, "table", None)
        if column.autoincrement is True or (
            table is not None and column is table._autoincrement_column
        ):
            logger.warning(
                "BigQuery does not support autoincrement; the autoincrement setting of column %s is ignored",
                column.name,
            )

        return super().get_column_specification(column, **kwargs)

    def _format_table_name(self, table_name: str, schema: Optional[str]) -> str:
        name = self.preparer.quote(table_name)
        if schema:
            name = self.preparer.quote_schema(schema) + "." + name
        return name

    def visit_alter_table_columns(self, alter: AlterTable, **kw):
        if not alter.operations:
            raise exc.CompileError(
                "ALTER TABLE %s has no column operations" % alter.table_name
            )

        clauses = []
        for kind, target, conditional in alter.operations:
            if kind == ADD_COLUMN:
                condition = "IF NOT EXISTS " if conditional else ""
                spec = self.get_column_specification(target)
            else:
                condition = "IF EXISTS " if conditional else ""
                spec = self.preparer.quote(target)
            clauses.append("{} {}{}".format(kind, condition, spec))

        return "ALTER TABLE {} {}".format(
            self._format_table_name(alter.table_name, alter.schema),
            ", ".join(clauses),
        )


class BigQuerySessionStatementCompiler(compiler.SQLCompiler):
    def limit_clause(self, select, **kw):
        """Identical to the default implementation of SQLCompiler.limit_clause except it writes
        the largest INT64 instead of LIMIT -1, since BigQuery supports neither LIMIT -1 nor
        OFFSET on its own.

        https://cloud.google.com/bigquery/docs/reference/standard-sql/query-syntax#limit_and_offset_clause
        """
        text = ""
        if select._limit_clause is not None:
            text += "\n LIMIT " + self.process(select._limit_clause, **kw)
        if select._offset_clause is not None:
            if select._limit_clause is None:
                text += "\n LIMIT %d" % MAX_LIMIT
            text += " OFFSET " + self.process(select._offset_clause, **kw)
        return text
