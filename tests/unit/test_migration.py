import io
import logging

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import Column, Integer, String

from bqsession.sqlalchemy import BigQuerySessionDialect
from bqsession.sqlalchemy.base import BigQuerySessionImpl


def emitted(buf: io.StringIO):
    return [s.strip() for s in buf.getvalue().split("\n\n") if s.strip()]


class TestBigQuerySessionImpl:
    @pytest.fixture()
    def buf(self):
        return io.StringIO()

    @pytest.fixture()
    def context(self, buf) -> MigrationContext:
        return MigrationContext.configure(
            dialect=BigQuerySessionDialect(),
            opts={"as_sql": True, "output_buffer": buf},
        )

    @pytest.fixture()
    def op(self, context) -> Operations:
        return Operations(context)

    def test_impl_is_selected_for_the_dialect(self, context):
        assert isinstance(context.impl, BigQuerySessionImpl)

    def test_add_columns_are_held_back(self, op, buf):
        op.add_column("people", Column("a", String))

        assert emitted(buf) == []

    def test_twelve_add_columns_become_one_alter_table(self, op, context, buf):
        for i in range(1, 13):
            op.add_column("people", Column(f"col{i}", String))

        context.impl.emit_commit()

        statements = emitted(buf)
        assert len(statements) == 2
        assert statements[0].startswith("ALTER TABLE `people` ADD COLUMN `col1` STRING,")
        assert statements[0].count("ADD COLUMN") == 12
        assert statements[0].endswith("ADD COLUMN `col12` STRING;")
        assert statements[1] == "COMMIT;"

    def test_declaration_order_is_kept(self, op, context, buf):
        op.drop_column("people", "nickname")
        op.add_column("people", Column("age", Integer))

        context.impl.flush_pending_alter()

        assert emitted(buf) == [
            "ALTER TABLE `people` DROP COLUMN `nickname`, ADD COLUMN `age` INT64;"
        ]

    def test_pending_changes_are_flushed_before_other_statements(self, op, buf):
        op.add_column("people", Column("a", String))
        op.add_column("people", Column("b", String))

        op.execute("UPDATE people SET a = 'x' WHERE true")

        assert emitted(buf) == [
            "ALTER TABLE `people` ADD COLUMN `a` STRING, ADD COLUMN `b` STRING;",
            "UPDATE people SET a = 'x' WHERE true;",
        ]

    def test_switching_table_flushes_the_previous_table(self, op, context, buf):
        op.add_column("people", Column("a", String))
        op.add_column("pets", Column("b", String))

        assert emitted(buf) == ["ALTER TABLE `people` ADD COLUMN `a` STRING;"]

        context.impl.flush_pending_alter()

        assert emitted(buf)[-1] == "ALTER TABLE `pets` ADD COLUMN `b` STRING;"

    def test_schema_is_part_of_the_target(self, op, context, buf):
        op.add_column("people", Column("a", String), schema="one")
        op.add_column("people", Column("b", String), schema="two")
        context.impl.flush_pending_alter()

        assert emitted(buf) == [
            "ALTER TABLE `one`.`people` ADD COLUMN `a` STRING;",
            "ALTER TABLE `two`.`people` ADD COLUMN `b` STRING;",
        ]

    def test_if_exists_flags_are_rendered(self, op, context, buf):
        op.add_column("people", Column("a", String), if_not_exists=True)
        op.drop_column("people", "b", if_exists=True)
        context.impl.flush_pending_alter()

        assert emitted(buf) == [
            "ALTER TABLE `people` ADD COLUMN IF NOT EXISTS `a` STRING, "
            "DROP COLUMN IF EXISTS `b`;"
        ]

    def test_start_migrations_discards_pending_changes(self, op, context, buf):
        op.add_column("people", Column("a", String))

        context.impl.start_migrations()
        context.impl.emit_commit()

        assert emitted(buf) == ["COMMIT;"]

    def test_combining_is_logged_as_a_warning(self, op, context, caplog):
        op.add_column("people", Column("a", String))
        op.add_column("people", Column("b", String))

        with caplog.at_level(logging.WARNING, logger="bqsession.sqlalchemy.base"):
            context.impl.flush_pending_alter()

        assert "Combining 2 column changes on table people" in caplog.text

    def test_single_change_is_not_warned_about(self, op, context, caplog):
        op.add_column("people", Column("a", String))

        with caplog.at_level(logging.WARNING, logger="bqsession.sqlalchemy.base"):
            context.impl.flush_pending_alter()

        assert "Combining" not in caplog.text

    def test_flush_without_pending_changes_emits_nothing(self, context, buf):
        context.impl.flush_pending_alter()

        assert emitted(buf) == []
