"""
bqsession includes a SQLAlchemy 2.0 dialect for BigQuery. To install the optional migration
support you can run `pip install bqsession[alembic]`.

The expected connection string format which you can pass to create_engine() is:

bqsession://<project>/<dataset>?location=<location>

Every connection runs its statements inside one BigQuery session, so temporary tables and
transactions work across statements made through the same connection.
"""

# fmt: off

import os
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

# This dialect exposes a TIMESTAMP type that returns values in the local time zone
from bqsession.sqlalchemy import TIMESTAMP

# Beside the CamelCase types shown below, line comments reflect
# the underlying BigQuery type
from sqlalchemy import (
    BigInteger,      # INT64
    Boolean,         # BOOL
    Column,
    Date,            # DATE
    DateTime,        # TIMESTAMP
    Integer,         # INT64
    Numeric,         # NUMERIC
    String,          # STRING
    Time,            # TIME
    Uuid,            # STRING
    create_engine,
    select,
)
from sqlalchemy.orm import DeclarativeBase, Session

project = os.getenv("BIGQUERY_PROJECT")
dataset = os.getenv("BIGQUERY_DATASET")
location = os.getenv("BIGQUERY_LOCATION", "US")


# Extra arguments are passed to bqsession.sql.connect()
# Anything it does not consume itself goes to google.cloud.bigquery.Client
extra_connect_args = {
    "_user_agent_entry": "bqsession Example Script",
}


engine = create_engine(
    f"bqsession://{project}/{dataset}?location={location}",
    connect_args=extra_connect_args, echo=True,
)


class Base(DeclarativeBase):
    pass


# This object gives a usage example for each supported type
class SampleObject(Base):
    __tablename__ = "bqsession_sqlalchemy_example_table"
    __table_args__ = {"bqsession_partition_by": "date_col"}

    bigint_col = Column(BigInteger, primary_key=True, autoincrement=False)
    string_col = Column(String)
    int_col = Column(Integer)
    numeric_col = Column(Numeric(10, 2))
    boolean_col = Column(Boolean)
    date_col = Column(Date)
    datetime_col = Column(TIMESTAMP)
    time_col = Column(Time)
    uuid_col = Column(Uuid)

# This generates a CREATE TABLE statement in the dataset specified in the connection string
Base.metadata.create_all(engine)

# Output SQL is:
# CREATE TABLE `bqsession_sqlalchemy_example_table` (
#         `bigint_col` INT64 NOT NULL,
#         `string_col` STRING,
#         `int_col` INT64,
#         `numeric_col` NUMERIC(10, 2),
#         `boolean_col` BOOL,
#         `date_col` DATE,
#         `datetime_col` TIMESTAMP,
#         `time_col` TIME,
#         `uuid_col` STRING,
#         PRIMARY KEY (`bigint_col`) NOT ENFORCED
# ) PARTITION BY (`date_col`)

# The code that follows will INSERT a record using SQLAlchemy ORM containing these values
# and then SELECT it back out. The output is compared to the input to demonstrate that
# all type information is preserved.
sample_object = {
    "bigint_col": 1234567890123456789,
    "string_col": "foo",
    "int_col": 5280,
    "numeric_col": Decimal("525600.01"),
    "boolean_col": True,
    "date_col": date(2020, 12, 25),
    "datetime_col": datetime(
        1991, 8, 3, 21, 30, 5, tzinfo=timezone(timedelta(hours=-8))
    ),
    "time_col": time(23, 59, 59),
    "uuid_col": UUID(int=255),
}
sa_obj = SampleObject(**sample_object)

session = Session(engine)
session.add(sa_obj)
session.commit()

# Parameters are rendered inline before the statement is sent, so the output SQL is:
# INSERT INTO `bqsession_sqlalchemy_example_table` (`bigint_col`, `string_col`, ...)
# VALUES (1234567890123456789, 'foo', ...)

# Here we build a SELECT query using ORM
stmt = select(SampleObject).where(SampleObject.int_col == 5280)

# Then fetch one result with session.scalar()
result = session.scalar(stmt)

# Finally, we read out the input data and compare it to the output.
# TIMESTAMP values come back in the local time zone but compare equal.
compare = {key: getattr(result, key) for key in sample_object.keys()}
assert compare == sample_object

# Then we drop the demonstration table
Base.metadata.drop_all(engine)

# Output SQL is:
# DROP TABLE `bqsession_sqlalchemy_example_table`
