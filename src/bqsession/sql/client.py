import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

try:
    import pyarrow
except ImportError:
    pyarrow = None

from bqsession.sql.exc import (
    DatabaseError,
    Error,
    InterfaceError,
    ProgrammingError,
    TransactionError,
)
from bqsession.sql.pipeline import ExecutionPipeline
from bqsession.sql.result_set import RowStream
from bqsession.sql.retry import DEFAULT_RETRY_DELAY, RateLimitRetryPolicy
from bqsession.sql.session import Session
from bqsession.sql.transaction import TransactionBuffer
from bqsession.sql.types import ConnectionConfig, Row
from bqsession.sql.utils import ParamEscaper, inject_parameters

logger = logging.getLogger(__name__)

DEFAULT_ARRAY_SIZE = 1000

BEGIN_TRANSACTION_SQL = "BEGIN TRANSACTION"
COMMIT_TRANSACTION_SQL = "COMMIT TRANSACTION"
ROLLBACK_TRANSACTION_SQL = "ROLLBACK TRANSACTION"

TParameters = Union[Dict[str, Any], Sequence[Any]]


class Connection:
    def __init__(
        self,
        project: Optional[str] = None,
        dataset: Optional[str] = None,
        database: Optional[str] = None,
        location: Optional[str] = None,
        **kwargs,
    ) -> None:
        """
        Connect to a BigQuery dataset.

        Parameters:
            :param project: Google Cloud project id. If omitted, google-cloud-bigquery infers it
                from the environment.
            :param dataset: The dataset that unqualified table names resolve to. It is created
                if it does not exist.
            :param database: Alias of `dataset`.
            :param location: `str`, optional
                The location (e.g. `australia-southeast2`) in which to create the dataset and
                run query jobs.

        Other Parameters:
            Any other keyword argument (e.g. `credentials`, `client_options`,
            `default_query_job_config`) is passed to google.cloud.bigquery.Client.

        Transactions:
            BigQuery has no transactions outside of a script or session. Executing a
            statement starting with BEGIN (or calling `begin()`) starts buffering: further
            statements return no rows and are not sent until COMMIT, when the whole
            transaction runs as one script inside this connection's BigQuery session.
            ROLLBACK drops the buffered statements without running them.

            ```
            connection = bqsession.sql.connect(project="my-project", dataset="books")
            cursor = connection.cursor()
            cursor.execute("BEGIN TRANSACTION")
            cursor.execute("INSERT INTO books (name) VALUES (%(name)s)", {"name": "The Name of the Wind"})
            connection.commit()
            ```
        """

        # Internal arguments in **kwargs:
        # _client
        #  A pre-built google.cloud.bigquery.Client to use instead of constructing one
        # _rate_limit_retry_delay
        #  Seconds to sleep before replaying a rate-limited ALTER TABLE (defaults to 1)
        # _user_agent_entry
        #  Tag appended to the user agent sent to BigQuery

        logger.debug(
            "Connection.__init__(project=%s, dataset=%s, location=%s)",
            project,
            dataset or database,
            location,
        )

        self.config = ConnectionConfig.from_kwargs(
            project=project,
            dataset=dataset,
            database=database,
            location=location,
            **kwargs,
        )
        self._cursors = []  # type: List[Cursor]

        self.session = Session(self.config, client=kwargs.get("_client"))
        self.session.open()

        self.pipeline = ExecutionPipeline(
            self.session,
            transaction_buffer=TransactionBuffer(),
            retry_policy=RateLimitRetryPolicy(
                delay=kwargs.get("_rate_limit_retry_delay", DEFAULT_RETRY_DELAY)
            ),
        )

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __del__(self):
        if getattr(self, "session", None) is not None and self.open:
            logger.debug("Closing unclosed connection")
            try:
                self._close(close_cursors=False)
            except Exception as e:
                # Close on best-effort basis.
                logger.debug("Couldn't close unclosed connection: {}".format(e))

    @property
    def open(self) -> bool:
        return self.session.is_open

    @property
    def in_transaction(self) -> bool:
        """Whether statements are currently being buffered for a transaction"""
        return self.pipeline.transaction_buffer.is_buffering

    def get_session_id(self) -> str:
        """Return the BigQuery session id of this connection, creating the session if needed"""
        self._check_open("get session id of")
        return self.session.session_id

    def _check_open(self, action: str) -> None:
        if not self.open:
            raise InterfaceError("Cannot {} closed connection".format(action))

    def cursor(self, arraysize: int = DEFAULT_ARRAY_SIZE) -> "Cursor":
        """
        Return a new Cursor object using the connection.

        Will throw an Error if the connection has been closed.
        """
        self._check_open("create cursor from")

        cursor = Cursor(self, arraysize=arraysize)
        self._cursors.append(cursor)
        return cursor

    def execute(
        self,
        sql: str,
        server_tag: Optional[str] = None,
        row_handler: Optional[Callable[[RowStream], Any]] = None,
    ) -> Any:
        """Run raw SQL through the execution pipeline.

        Returns a RowStream, or the return value of `row_handler` if one was given.
        """
        self._check_open("execute on")
        return self.pipeline.execute(sql, server_tag=server_tag, row_handler=row_handler)

    def begin(self) -> None:
        """Start buffering a transaction. Extension to PEP 249."""
        self._check_open("begin transaction on")
        if self.in_transaction:
            raise TransactionError("A transaction is already open on this connection")
        self.pipeline.execute(BEGIN_TRANSACTION_SQL)

    def commit(self) -> None:
        """
        Commit the buffered transaction by running it as one script.

        Does nothing when no transaction is open, since every statement outside a
        transaction is applied as soon as it is executed.

        Raises:
            InterfaceError: If connection is closed
            TransactionError: If the transaction script fails. The buffered statements are
                discarded either way.
        """
        self._check_open("commit on")
        if not self.in_transaction:
            return

        try:
            self.pipeline.execute(COMMIT_TRANSACTION_SQL)
        except DatabaseError as e:
            raise TransactionError(
                "Failed to commit transaction: {}".format(e.message),
                context={**e.context, "operation": "commit"},
            ) from e

    def rollback(self) -> None:
        """
        Discard the buffered transaction without running it.

        Does nothing when no transaction is open.
        """
        self._check_open("rollback on")
        if not self.in_transaction:
            return

        self.pipeline.execute(ROLLBACK_TRANSACTION_SQL)

    def drop_datasets(self, *dataset_names: str) -> None:
        """Delete each dataset together with its tables. Missing datasets are ignored."""
        self._check_open("drop datasets on")
        for dataset_name in dataset_names:
            self.session.backend.drop_dataset(dataset_name)

    drop_dataset = drop_datasets

    def close(self) -> None:
        """Close the underlying client and mark all associated cursors as closed."""
        self._close()

    def _close(self, close_cursors=True) -> None:
        if close_cursors:
            for cursor in self._cursors:
                cursor.close()

        if self.in_transaction:
            logger.warning(
                "Closing connection with an open transaction; buffered statements are discarded"
            )
            self.pipeline.transaction_buffer.reset()

        try:
            self.session.close()
        except Exception as e:
            logger.error(f"Attempt to close session raised a local exception: {e}")


class Cursor:
    def __init__(
        self,
        connection: Connection,
        arraysize: int = DEFAULT_ARRAY_SIZE,
    ) -> None:
        """
        These objects represent a database cursor, which is used to manage the context of a fetch
        operation.

        Cursors are not isolated, i.e., any changes done to the database by a cursor are immediately
        visible by other cursors or connections.
        """

        self.connection: Connection = connection
        self.active_result_set: Optional[RowStream] = None
        self.arraysize: int = arraysize
        # Note that Cursor closed => active result set closed, but not vice versa
        self.open: bool = True
        self.escaper = ParamEscaper()
        self.lastrowid = None

    def __enter__(self) -> "Cursor":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __iter__(self):
        if self.active_result_set:
            for row in self.active_result_set:
                yield row
        else:
            raise ProgrammingError("There is no active result set")

    def _check_not_closed(self):
        if not self.open:
            raise InterfaceError("Attempting operation on closed cursor")

    def _close_and_clear_active_result_set(self):
        if self.active_result_set:
            self.active_result_set.close()
        self.active_result_set = None

    def _prepare_inline_parameters(
        self, operation: str, parameters: Optional[TParameters]
    ) -> str:
        """Return `operation` with every `%(name)s` / `%s` marker replaced by a BigQuery literal.

        Parameters are always rendered inline: statements buffered inside a transaction are
        concatenated into a single script, which cannot carry per-statement parameters.
        """
        if parameters is None:
            return operation

        escaped_values = self.escaper.escape_args(parameters)
        return inject_parameters(operation, escaped_values)

    def execute(
        self, operation: str, parameters: Optional[TParameters] = None
    ) -> "Cursor":
        """
        Execute a query and wait for execution to complete.

        Parameters should be given in pyformat (`%(name)s`) or format (`%s`) style:

        ```python
        operation = "SELECT * FROM people WHERE name = %(name)s"
        parameters = {"name": "Reginald"}
        ```

        Statements executed while a transaction is open return no rows.

        :returns self
        """

        logger.debug(
            "Cursor.execute(operation=%s, parameters=%s)", operation, parameters
        )

        self._check_not_closed()
        self.connection._check_open("execute on")
        prepared_operation = self._prepare_inline_parameters(operation, parameters)

        self._close_and_clear_active_result_set()
        self.active_result_set = self.connection.pipeline.execute(prepared_operation)
        return self

    def executemany(self, operation, seq_of_parameters):
        """
        Execute the operation once for every set of passed in parameters.

        This will issue N sequential requests to the database where N is the length of the provided sequence.
        No optimisations of the query (like batching) will be performed.

        Only the final result set is retained.

        :returns self
        """
        for parameters in seq_of_parameters:
            self.execute(operation, parameters)
        return self

    def _active_result_set_or_raise(self) -> RowStream:
        self._check_not_closed()
        if not self.active_result_set:
            raise ProgrammingError("There is no active result set")
        return self.active_result_set

    def fetchall(self) -> List[Row]:
        """
        Fetch all (remaining) rows of a query result, returning them as a sequence of sequences.

        A bqsession.sql.Error (or subclass) exception is raised if the previous call to
        execute did not produce any result set or no call was issued yet.
        """
        return self._active_result_set_or_raise().fetchall()

    def fetchone(self) -> Optional[Row]:
        """
        Fetch the next row of a query result set, returning a single sequence, or ``None`` when
        no more data is available.
        """
        return self._active_result_set_or_raise().fetchone()

    def fetchmany(self, size: Optional[int] = None) -> List[Row]:
        """
        Fetch the next set of rows of a query result, returning a sequence of sequences (e.g. a
        list of tuples).

        An empty sequence is returned when no more rows are available. If `size` is not given,
        the cursor's arraysize determines the number of rows to be fetched.
        """
        if size is None:
            size = self.arraysize
        return self._active_result_set_or_raise().fetchmany(size)

    def fetchall_arrow(self) -> "pyarrow.Table":
        return self._active_result_set_or_raise().fetchall_arrow()

    def close(self) -> None:
        """Close cursor"""
        self.open = False
        self._close_and_clear_active_result_set()

    @property
    def rowcount(self) -> int:
        """Number of rows changed by the last DML statement, or -1 if unknown"""
        if self.active_result_set:
            return self.active_result_set.rowcount
        return -1

    @property
    def description(self) -> Optional[List[Tuple]]:
        """
        This read-only attribute is a sequence of 7-item sequences.

        Each of these sequences contains information describing one result column:

        - name
        - type_code (the BigQuery field type, e.g. STRING or TIMESTAMP)
        - display_size (always None)
        - internal_size (maximum length, if declared)
        - precision (if declared)
        - scale (if declared)
        - null_ok

        This attribute will be ``None`` for operations that do not return rows or if the cursor has
        not had an operation invoked via the execute method yet.

        The ``type_code`` can be interpreted by comparing it to the Type Objects.
        """
        if self.active_result_set:
            return self.active_result_set.description
        else:
            return None

    @property
    def rownumber(self):
        """This read-only attribute should provide the current 0-based index of the cursor in the
        result set.
        """
        return self.active_result_set.rownumber if self.active_result_set else 0

    def setinputsizes(self, sizes):
        """Does nothing by default"""
        pass

    def setoutputsize(self, size, column=None):
        """Does nothing by default"""
        pass
