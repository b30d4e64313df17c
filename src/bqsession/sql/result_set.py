from __future__ import annotations

import itertools
import logging
from typing import Any, Iterable, Iterator, List, Optional, Tuple

try:
    import pyarrow
except ImportError:
    pyarrow = None

from bqsession.sql.exc import NotSupportedError, ProgrammingError
from bqsession.sql.types import Row, row_factory

logger = logging.getLogger(__name__)


class RowStream:
    """
    Forward-only view over the rows of one finished query.

    Column names are read once from the result schema. Rows are pulled lazily from the
    underlying google-cloud-bigquery iterator and can be read exactly once; run the
    query again to read them again. Values are whatever google-cloud-bigquery decoded
    them to.
    """

    def __init__(
        self,
        schema: Optional[Iterable[Any]] = None,
        rows: Optional[Iterable[Any]] = None,
        rowcount: int = -1,
        source: Any = None,
    ):
        self.schema = list(schema or [])
        self.column_names: Tuple[str, ...] = tuple(
            field.name for field in self.schema
        )
        self.rowcount = rowcount
        self._source = source
        self._rows: Iterator[Any] = iter(rows if rows is not None else ())
        self._consumed = False
        self._next_row_index = 0
        self._result_row = row_factory(self.column_names)

    @classmethod
    def from_row_iterator(cls, row_iterator) -> "RowStream":
        """Adapt a google.cloud.bigquery.table.RowIterator"""
        affected = getattr(row_iterator, "num_dml_affected_rows", None)
        return cls(
            schema=row_iterator.schema,
            rows=row_iterator,
            rowcount=affected if affected is not None else -1,
            source=row_iterator,
        )

    @classmethod
    def empty(cls) -> "RowStream":
        return cls()

    @property
    def description(self) -> Optional[List[Tuple]]:
        """PEP-249 description, or None when the result has no columns"""
        if not self.schema:
            return None
        return [
            (
                field.name,
                field.field_type,
                None,
                getattr(field, "max_length", None),
                getattr(field, "precision", None),
                getattr(field, "scale", None),
                getattr(field, "mode", "NULLABLE") != "REQUIRED",
            )
            for field in self.schema
        ]

    @property
    def rownumber(self) -> int:
        return self._next_row_index

    def _convert(self, raw_row) -> Row:
        return self._result_row(*[raw_row[i] for i in range(len(self.column_names))])

    def __iter__(self) -> Iterator[Row]:
        if self._consumed:
            raise ProgrammingError(
                "Result rows can only be read once; execute the query again to re-read them"
            )
        self._consumed = True
        for raw_row in self._rows:
            self._next_row_index += 1
            yield self._convert(raw_row)

    def fetchone(self) -> Optional[Row]:
        raw_row = next(self._rows, None)
        if raw_row is None:
            return None
        self._next_row_index += 1
        return self._convert(raw_row)

    def fetchmany(self, size: int) -> List[Row]:
        if size < 0:
            raise ValueError("size argument for fetchmany is %s but must be >= 0" % size)
        raw_rows = list(itertools.islice(self._rows, size))
        self._next_row_index += len(raw_rows)
        return [self._convert(raw_row) for raw_row in raw_rows]

    def fetchall(self) -> List[Row]:
        raw_rows = list(self._rows)
        self._next_row_index += len(raw_rows)
        return [self._convert(raw_row) for raw_row in raw_rows]

    def fetchall_arrow(self) -> "pyarrow.Table":
        """Fetch all (remaining) rows as a pyarrow Table."""
        if pyarrow is None:
            raise NotSupportedError(
                "pyarrow is not installed; run pip install bqsession[pyarrow] to use fetchall_arrow"
            )
        if self._consumed or self._next_row_index:
            raise ProgrammingError(
                "fetchall_arrow must be the first read of a result"
            )
        self._consumed = True
        if self._source is None:
            return pyarrow.table({name: [] for name in self.column_names})
        return self._source.to_arrow()

    def close(self) -> None:
        self._rows = iter(())
