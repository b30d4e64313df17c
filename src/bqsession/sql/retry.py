import logging
import re
import time

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "too many table update operations for this table"
ALTER_TABLE_PATTERN = re.compile(r"^alter table ", re.IGNORECASE)

DEFAULT_RETRY_DELAY = 1.0
DEFAULT_MAX_RETRIES = 1


class RateLimitRetryPolicy:
    """
    Decides whether a query rejected by BigQuery's per-table schema update quota can
    be replayed.

    Only a single ALTER TABLE statement is replayed. Replaying a script or a DML
    statement could apply its other effects (e.g. inserts) twice.

    :param delay:
        Float of seconds to sleep before the retry. The sleep blocks the calling thread.

    :param max_retries:
        Integer number of retries allowed for one execution.

    See https://cloud.google.com/bigquery/docs/troubleshoot-quotas
    """

    def __init__(
        self,
        delay: float = DEFAULT_RETRY_DELAY,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        self.delay = delay
        self.max_retries = max_retries

    @staticmethod
    def is_rate_limit_error(error: BaseException) -> bool:
        return RATE_LIMIT_MESSAGE in str(error)

    @staticmethod
    def is_single_statement(sql: str) -> bool:
        stripped = sql.rstrip()
        if stripped.endswith(";"):
            stripped = stripped[:-1]
        return ";" not in stripped

    @staticmethod
    def is_alter_table(sql: str) -> bool:
        return ALTER_TABLE_PATTERN.match(sql) is not None

    def is_retryable_query(self, sql: str) -> bool:
        return self.is_single_statement(sql) and self.is_alter_table(sql)

    def should_retry(self, sql: str, error: BaseException) -> bool:
        if not self.is_rate_limit_error(error):
            return False

        logger.warning(
            "Triggered rate limit of table update operations for this table. For more "
            "information, see https://cloud.google.com/bigquery/docs/troubleshoot-quotas"
        )
        if not self.is_retryable_query(sql):
            logger.error(
                "Query not detected as retryable; can't automatically recover from being rate-limited"
            )
            return False
        return True

    def sleep(self) -> None:
        logger.warning(
            "Detected retryable query - re-running query after a %s second sleep",
            self.delay,
        )
        time.sleep(self.delay)

