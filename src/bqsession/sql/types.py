from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from google.api_core.client_info import ClientInfo

import bqsession.sql

# Keys understood by this connector that google.cloud.bigquery.Client must not see
ADAPTER_OPTION_KEYS = ("adapter", "database", "dataset", "location", "logger")


@dataclass(frozen=True)
class ConnectionConfig:
    """Immutable connection settings for one BigQuery connection.

    ``client_options`` holds whatever is left once the adapter-specific keys are
    removed. It is passed verbatim to ``google.cloud.bigquery.Client``.
    """

    project: Optional[str] = None
    dataset: Optional[str] = None
    location: Optional[str] = None
    user_agent_entry: Optional[str] = None
    client_options: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_kwargs(cls, **kwargs) -> "ConnectionConfig":
        options = {
            k: v
            for k, v in kwargs.items()
            if k not in ADAPTER_OPTION_KEYS and k != "project" and not k.startswith("_")
        }
        return cls(
            project=kwargs.get("project"),
            dataset=kwargs.get("dataset") or kwargs.get("database"),
            location=kwargs.get("location"),
            user_agent_entry=kwargs.get("_user_agent_entry"),
            client_options=MappingProxyType(options),
        )

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for google.cloud.bigquery.Client"""
        kwargs = dict(self.client_options)
        if self.project:
            kwargs["project"] = self.project
        kwargs.setdefault("client_info", ClientInfo(user_agent=self.user_agent))
        return kwargs

    @property
    def user_agent(self) -> str:
        base = "{}/{}".format(bqsession.sql.USER_AGENT_NAME, bqsession.sql.__version__)
        if self.user_agent_entry:
            return "{} ({})".format(base, self.user_agent_entry)
        return base


class Row(tuple):
    """
    A row in a result set.

    The fields in it can be accessed:

    * like attributes (``row.key``)
    * like dictionary values (``row[key]``)
    * by position (``row[0]``)

    ``key in row`` will search through row keys.

    Row can be used to create a row class by passing the column names, and then
    calling that class with the values:

    >>> Person = Row("name", "age")
    >>> Person("Reginald", 27)
    Row(name='Reginald', age=27)
    """

    def __new__(cls, *args, **kwargs):
        if args and kwargs:
            raise ValueError("Can not use both args and kwargs to create Row")
        if kwargs:
            row = tuple.__new__(cls, list(kwargs.values()))
            row.__fields__ = list(kwargs.keys())
            return row
        # a row class: Row("name", "age")
        return tuple.__new__(cls, args)

    def asDict(self) -> Dict[str, Any]:
        """Return as a dict"""
        if not hasattr(self, "__fields__"):
            raise TypeError("Cannot convert a Row class into dict")
        return dict(zip(self.__fields__, self))

    def keys(self) -> List[str]:
        return list(getattr(self, "__fields__", []))

    def __contains__(self, item):
        if hasattr(self, "__fields__"):
            return item in self.__fields__
        return super(Row, self).__contains__(item)

    # let a Row object act like a class
    def __call__(self, *args):
        """create a new Row object using this Row as the field names"""
        if len(args) > len(self):
            raise ValueError(
                "Can not create Row with fields %s, expected %d values "
                "but got %s" % (self, len(self), args)
            )
        return _create_row(self, args)

    def __getitem__(self, item):
        if isinstance(item, (int, slice)):
            return super(Row, self).__getitem__(item)
        try:
            # it will be slow when it has many fields,
            # but this will not be used in normal cases
            idx = self.__fields__.index(item)
            return super(Row, self).__getitem__(idx)
        except IndexError:
            raise KeyError(item)
        except (AttributeError, ValueError):
            raise KeyError(item)

    def __getattr__(self, item):
        if item.startswith("__"):
            raise AttributeError(item)
        try:
            idx = self.__fields__.index(item)
            return self[idx]
        except IndexError:
            raise AttributeError(item)
        except ValueError:
            raise AttributeError(item)

    def __setattr__(self, key, value):
        if key != "__fields__":
            raise RuntimeError("Row is read-only")
        self.__dict__[key] = value

    def __reduce__(self):
        """Returns a tuple so Python knows how to pickle Row."""
        if hasattr(self, "__fields__"):
            return (_create_row, (self.__fields__, tuple(self)))
        else:
            return tuple.__reduce__(self)

    def __repr__(self):
        """Printable representation of Row used in Python REPL."""
        if hasattr(self, "__fields__"):
            return "Row(%s)" % ", ".join(
                "%s=%r" % (k, v) for k, v in zip(self.__fields__, tuple(self))
            )
        else:
            return "<Row(%s)>" % ", ".join("%r" % field for field in self)


def _create_row(fields, values) -> Row:
    row = Row(*values)
    row.__fields__ = list(fields)
    return row


def row_factory(column_names: Tuple[str, ...]) -> Row:
    """Return a Row class for the given column names"""
    return Row(*column_names)
