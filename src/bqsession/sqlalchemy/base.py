from typing import Any, Dict, List, Optional

import bqsession.sqlalchemy._ddl as dialect_ddl_impl
import bqsession.sqlalchemy._types as dialect_type_impl
from bqsession import sql
from bqsession.sqlalchemy._parse import (
    _match_table_not_found_string,
    information_schema_rows_to_column_list,
)

import sqlalchemy
from sqlalchemy import event, schema as sa_schema, text
from sqlalchemy.engine import Connection, Engine, default, reflection
from sqlalchemy.engine.interfaces import (
    ReflectedColumn,
    ReflectedForeignKeyConstraint,
    ReflectedPrimaryKeyConstraint,
)
from sqlalchemy.exc import DatabaseError

try:
    import alembic
except ImportError:
    pass
else:
    from alembic.ddl import DefaultImpl

    class BigQuerySessionImpl(DefaultImpl):
        """Alembic migration impl for the bqsession dialect.

        BigQuery allows only a handful of schema updates per table in a short window, so
        ``add_column`` and ``drop_column`` calls against the same table are held back and
        emitted as a single ALTER TABLE. The pending statement is flushed, in declaration
        order, before any other statement runs. That includes the version table update
        alembic issues at the end of every migration step, so each step still produces its
        combined ALTER TABLE before it is stamped.
        """

        __dialect__ = "bqsession"

        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            self._pending_alter: Optional[dialect_ddl_impl.AlterTable] = None

        def start_migrations(self) -> None:
            self._pending_alter = None
            super().start_migrations()

        def _alter_for(self, table_name, schema) -> dialect_ddl_impl.AlterTable:
            pending = self._pending_alter
            if pending is not None and (pending.table_name, pending.schema) != (
                table_name,
                schema,
            ):
                self.flush_pending_alter()
                pending = None

            if pending is None:
                pending = dialect_ddl_impl.AlterTable(table_name, schema=schema)
                self._pending_alter = pending
            return pending

        def add_column(
            self,
            table_name: str,
            column,
            *,
            schema=None,
            if_not_exists=None,
            **kw,
        ) -> None:
            logger.debug(
                "Holding back ADD COLUMN %s on %s to combine it with other column changes",
                column.name,
                table_name,
            )
            self._alter_for(table_name, schema).add_column(
                column, if_not_exists=bool(if_not_exists)
            )

        def drop_column(
            self,
            table_name: str,
            column,
            *,
            schema=None,
            if_exists=None,
            **kw,
        ) -> None:
            logger.debug(
                "Holding back DROP COLUMN %s on %s to combine it with other column changes",
                column.name,
                table_name,
            )
            self._alter_for(table_name, schema).drop_column(
                column, if_exists=bool(if_exists)
            )

        def flush_pending_alter(self) -> None:
            """Emit the combined ALTER TABLE, if any column changes are pending."""
            pending, self._pending_alter = self._pending_alter, None
            if pending is None:
                return

            if len(pending) > 1:
                logger.warning(
                    "Combining %d column changes on table %s into one ALTER TABLE statement",
                    len(pending),
                    pending.table_name,
                )
            super()._exec(pending)

        def _exec(self, construct, *args, **kwargs):
            self.flush_pending_alter()
            return super()._exec(construct, *args, **kwargs)

        def emit_commit(self) -> None:
            self.flush_pending_alter()
            super().emit_commit()


import logging

logger = logging.getLogger(__name__)


class BigQuerySessionDialect(default.DefaultDialect):
    """SQLAlchemy dialect for BigQuery, driven by the bqsession.sql DB-API connector"""

    # See sqlalchemy.engine.interfaces for descriptions of each of these properties
    name: str = "bqsession"
    driver: str = "bqsession"
    preparer = dialect_ddl_impl.BigQuerySessionIdentifierPreparer  # type: ignore
    ddl_compiler = dialect_ddl_impl.BigQuerySessionDDLCompiler
    statement_compiler = dialect_ddl_impl.BigQuerySessionStatementCompiler
    supports_statement_cache: bool = True
    supports_multivalues_insert: bool = True
    supports_native_decimal: bool = True
    supports_sane_rowcount: bool = False
    supports_sane_multi_rowcount: bool = False
    non_native_boolean_check_constraint: bool = False
    supports_identity_columns: bool = False
    supports_schemas: bool = True
    default_paramstyle: str = "pyformat"
    div_is_floordiv: bool = False
    supports_default_values: bool = False
    supports_empty_insert: bool = False
    supports_server_side_cursors: bool = False
    supports_sequences: bool = False
    supports_native_boolean: bool = True
    supports_alter: bool = True
    postfetch_lastrowid: bool = False
    max_identifier_length: int = 300

    construct_arguments = [
        (sa_schema.Table, {"partition_by": None}),
    ]

    colspecs = {
        sqlalchemy.types.DateTime: dialect_type_impl.TIMESTAMP,
        sqlalchemy.types.String: dialect_type_impl.BigQueryStringType,
    }

    # SQLAlchemy requires that a table with no primary key
    # constraint return a dictionary that looks like this.
    EMPTY_PK: Dict[str, Any] = {"constrained_columns": [], "name": None}

    # SQLAlchemy requires that a table with no foreign keys
    # defined return an empty list. Same for indexes.
    EMPTY_FK: List
    EMPTY_INDEX: List
    EMPTY_FK = EMPTY_INDEX = []

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.project: Optional[str] = None
        self.schema: Optional[str] = None
        self.location: Optional[str] = None

    @classmethod
    def import_dbapi(cls):
        return sql

    def create_connect_args(self, url):
        # Expected URI format is: bqsession://<project>/<dataset>?location=<location>

        kwargs = {
            "project": url.host or None,
            "dataset": url.database or None,
            "location": url.query.get("location"),
        }

        self.project = kwargs["project"]
        self.schema = kwargs["dataset"]
        self.location = kwargs["location"]

        return [], kwargs

    def _get_default_schema_name(self, connection) -> Optional[str]:
        return self.schema

    def _information_schema(self, schema: Optional[str]) -> str:
        target_schema = schema or self.schema
        if not target_schema:
            raise sqlalchemy.exc.ArgumentError(
                "A dataset is required to reflect BigQuery tables"
            )
        return self.identifier_preparer.quote_schema(target_schema) + ".INFORMATION_SCHEMA"

    def _select_table_names(self, connection, schema, table_types) -> List[str]:
        stmt = text(
            "SELECT table_name FROM {}.TABLES WHERE table_type IN ({}) ORDER BY table_name".format(
                self._information_schema(schema),
                ", ".join("'{}'".format(t) for t in table_types),
            )
        )
        try:
            result = connection.execute(stmt)
        except DatabaseError as e:
            if _match_table_not_found_string(str(e)):
                raise sqlalchemy.exc.NoSuchTableError(
                    f"No such dataset {schema or self.schema}"
                ) from e
            raise e
        return [row.table_name for row in result]

    @reflection.cache
    def get_schema_names(self, connection, **kw) -> List[str]:
        """Return the names of the datasets in the project."""
        if self.location:
            source = "`region-{}`.INFORMATION_SCHEMA.SCHEMATA".format(
                self.location.lower()
            )
        else:
            source = "INFORMATION_SCHEMA.SCHEMATA"

        result = connection.execute(
            text(f"SELECT schema_name FROM {source} ORDER BY schema_name")
        )
        return [row[0] for row in result]

    @reflection.cache
    def get_table_names(self, connection: Connection, schema=None, **kwargs):
        """Return a list of tables in the current dataset."""
        return self._select_table_names(connection, schema, ["BASE TABLE"])

    @reflection.cache
    def get_view_names(self, connection, schema=None, **kwargs) -> List[str]:
        """Returns a list of string view names contained in the dataset, if any."""
        return self._select_table_names(
            connection, schema, ["VIEW", "MATERIALIZED VIEW"]
        )

    @reflection.cache
    def get_materialized_view_names(
        self, connection: Connection, schema: Optional[str] = None, **kw: Any
    ) -> List[str]:
        return self._select_table_names(connection, schema, ["MATERIALIZED VIEW"])

    @reflection.cache
    def has_table(
        self, connection, table_name, schema=None, **kwargs
    ) -> bool:
        """For internal dialect use, check the existence of a particular table
        or view in the database.
        """

        stmt = text(
            "SELECT table_name FROM {}.TABLES WHERE table_name = :table_name".format(
                self._information_schema(schema)
            )
        )
        try:
            result = connection.execute(stmt, {"table_name": table_name})
        except DatabaseError as e:
            if _match_table_not_found_string(str(e)):
                return False
            raise e
        return result.first() is not None

    @reflection.cache
    def get_columns(
        self, connection, table_name, schema=None, **kwargs
    ) -> List[ReflectedColumn]:
        """Return information about columns in `table_name`."""

        stmt = text(
            "SELECT column_name, data_type, is_nullable, column_default "
            "FROM {}.COLUMNS WHERE table_name = :table_name "
            "ORDER BY ordinal_position".format(self._information_schema(schema))
        )
        try:
            rows = connection.execute(stmt, {"table_name": table_name}).all()
        except DatabaseError as e:
            if _match_table_not_found_string(str(e)):
                raise sqlalchemy.exc.NoSuchTableError(
                    f"No such table {table_name}"
                ) from e
            raise e

        # Every BigQuery table has at least one column
        if not rows:
            raise sqlalchemy.exc.NoSuchTableError(f"No such table {table_name}")

        return information_schema_rows_to_column_list(rows)  # type: ignore

    def get_pk_constraint(
        self, connection, table_name: str, schema: Optional[str] = None, **kw: Any
    ) -> ReflectedPrimaryKeyConstraint:
        """Primary keys in BigQuery are informational and not reflected."""
        return self.EMPTY_PK  # type: ignore

    def get_foreign_keys(
        self, connection, table_name, schema=None, **kw
    ) -> List[ReflectedForeignKeyConstraint]:
        """Foreign keys in BigQuery are informational and not reflected."""
        return self.EMPTY_FK

    def get_indexes(self, connection, table_name, schema=None, **kw):
        """SQLAlchemy requires this method. BigQuery doesn't support indexes."""
        return self.EMPTY_INDEX

    def get_unique_constraints(self, connection, table_name, schema=None, **kw):
        return []

    def do_begin(self, dbapi_connection):
        # BigQuery has no implicit transactions. A BEGIN TRANSACTION statement starts
        # buffering in the DB-API connection instead.
        pass

    def do_commit(self, dbapi_connection):
        dbapi_connection.commit()

    def do_rollback(self, dbapi_connection):
        dbapi_connection.rollback()


@event.listens_for(Engine, "do_connect")
def receive_do_connect(dialect, conn_rec, cargs, cparams):
    """Tag the user agent of connections made through SQLAlchemy"""

    # Ignore connect invocations that don't use our dialect
    if not dialect.name == "bqsession":
        return

    ua = cparams.get("_user_agent_entry", "")

    def add_sqla_tag_if_not_present(val: str):
        if not val:
            return "sqlalchemy"

        if "sqlalchemy" in val:
            return val

        return f"sqlalchemy + {val}"

    cparams["_user_agent_entry"] = add_sqla_tag_if_not_present(ua)
