import logging
from typing import Any, Callable, Optional

from google.api_core import exceptions as google_exceptions

from bqsession.sql.exc import RateLimitExceededError, ServerOperationError
from bqsession.sql.result_set import RowStream
from bqsession.sql.retry import RateLimitRetryPolicy
from bqsession.sql.rewrite import adapt_statement
from bqsession.sql.session import Session
from bqsession.sql.transaction import BufferAction, TransactionBuffer

logger = logging.getLogger(__name__)


class ExecutionPipeline:
    """
    Runs one SQL string end to end for a connection:

    1. rewrite the statement for BigQuery
    2. let the transaction buffer hold it back, or release a whole transaction
    3. submit it inside the connection's BigQuery session and wait for the job
    4. replay a rate-limited ALTER TABLE once
    5. adapt the result into a RowStream

    One pipeline belongs to one connection, and calls must be serialised by the caller.
    """

    def __init__(
        self,
        session: Session,
        transaction_buffer: Optional[TransactionBuffer] = None,
        retry_policy: Optional[RateLimitRetryPolicy] = None,
    ):
        self.session = session
        self.transaction_buffer = transaction_buffer or TransactionBuffer()
        self.retry_policy = retry_policy or RateLimitRetryPolicy()

    def execute(
        self,
        sql: str,
        server_tag: Optional[str] = None,
        row_handler: Optional[Callable[[RowStream], Any]] = None,
    ) -> Any:
        logger.debug("ExecutionPipeline.execute(server=%s): %s", server_tag, sql)

        statement = adapt_statement(sql)
        decision = self.transaction_buffer.feed(statement)
        if decision.action != BufferAction.EXECUTE:
            return self._handle(RowStream.empty(), row_handler)

        text = decision.script if decision.is_flush else statement
        row_iterator = self._submit(text)
        result = RowStream.from_row_iterator(row_iterator)
        logger.debug(
            "Query finished with columns %s (rowcount=%s)",
            result.column_names,
            result.rowcount,
        )
        return self._handle(result, row_handler)

    @staticmethod
    def _handle(result: RowStream, row_handler):
        if row_handler is not None:
            return row_handler(result)
        return result

    def _submit(self, text: str):
        attempt = 0
        while True:
            job = None
            try:
                job = self.session.backend.submit_query(
                    text, session_id=self.session.session_id
                )
                return self.session.backend.wait(job)
            except google_exceptions.GoogleAPIError as e:
                rate_limited = self.retry_policy.is_rate_limit_error(e)
                if rate_limited and self.retry_policy.should_retry(text, e):
                    if attempt < self.retry_policy.max_retries:
                        attempt += 1
                        self.retry_policy.sleep()
                        continue
                    logger.error(
                        "Query still rate-limited after %d retry(s); giving up", attempt
                    )

                self.session.invalidate_if_expired(e)
                error_class = (
                    RateLimitExceededError if rate_limited else ServerOperationError
                )
                raise error_class(
                    str(e),
                    context={
                        "original-exception": e,
                        "job-id": getattr(job, "job_id", None),
                        "sql": text,
                        "attempt": attempt + 1,
                    },
                ) from e
