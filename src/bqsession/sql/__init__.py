import datetime

from bqsession.sql.exc import *

# PEP 249 module globals
apilevel = "2.0"
threadsafety = 1  # Threads may share the module, but not connections.
paramstyle = "pyformat"  # Python extended format codes, e.g. ...WHERE name=%(name)s


class DBAPITypeObject(object):
    def __init__(self, *values):
        self.values = values

    def __eq__(self, other):
        return other in self.values

    def __repr__(self):
        return "DBAPITypeObject({})".format(self.values)


# BigQuery reports both the legacy and the standard SQL names depending on the API
STRING = DBAPITypeObject("STRING", "JSON", "GEOGRAPHY")
BINARY = DBAPITypeObject("BYTES")
NUMBER = DBAPITypeObject(
    "INTEGER",
    "INT64",
    "FLOAT",
    "FLOAT64",
    "NUMERIC",
    "BIGNUMERIC",
    "BOOLEAN",
    "BOOL",
)
DATETIME = DBAPITypeObject("TIMESTAMP", "DATETIME")
DATE = DBAPITypeObject("DATE")
ROWID = DBAPITypeObject()

__version__ = "0.4.0"
USER_AGENT_NAME = "PyBigQuerySessionConnector"

# PEP 249 type constructors
Date = datetime.date
Timestamp = datetime.datetime


def DateFromTicks(ticks):
    return Date(*datetime.datetime.fromtimestamp(ticks).timetuple()[:3])


def TimestampFromTicks(ticks):
    return Timestamp(*datetime.datetime.fromtimestamp(ticks).timetuple()[:6])


def Binary(value):
    return bytes(value)


def connect(**kwargs):
    from .client import Connection

    return Connection(**kwargs)
