from bqsession.sqlalchemy.base import BigQuerySessionDialect
from bqsession.sqlalchemy._ddl import AlterTable
from bqsession.sqlalchemy._types import TIMESTAMP

__all__ = ["BigQuerySessionDialect", "AlterTable", "TIMESTAMP"]
