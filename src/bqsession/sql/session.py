import logging
import re
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import bigquery

from bqsession.sql.backend import BigQueryBackend
from bqsession.sql.exc import ConfigurationError, SessionError
from bqsession.sql.types import ConnectionConfig

logger = logging.getLogger(__name__)

SESSION_PROBE_SQL = "select 1"
SESSION_EXPIRED_PATTERN = re.compile(
    r"session\b.*\b(expired|terminated|not found|is not valid)", re.IGNORECASE
)


class Session:
    def __init__(
        self,
        config: ConnectionConfig,
        client: Optional[bigquery.Client] = None,
    ) -> None:
        """
        Hold the BigQuery client, the target dataset and the BigQuery session id of one
        connection.

        The client is only constructed when first needed, from the filtered
        configuration. The session id is created lazily, cached, and then attached to
        every query job so that BigQuery scopes all of them to one logical session.
        """

        self.config = config
        self.is_open = False
        self._client = client
        self._backend: Optional[BigQueryBackend] = None
        self._bigquery_session_id: Optional[str] = None

    @property
    def dataset_name(self) -> str:
        if not self.config.dataset:
            raise ConfigurationError("BigQuery dataset must be specified")
        return self.config.dataset

    @property
    def backend(self) -> BigQueryBackend:
        if self._backend is None:
            client = self._client
            if client is None:
                client = bigquery.Client(**self.config.client_kwargs())
            self._backend = BigQueryBackend(
                client,
                location=self.config.location,
                default_dataset=self.dataset_name,
            )
        return self._backend

    def open(self) -> None:
        # resolve the dataset before any request is made
        dataset_name = self.dataset_name
        self.backend.get_or_create_dataset(dataset_name)
        self.is_open = True
        logger.info("Successfully opened connection to dataset %s", dataset_name)

    def close(self) -> None:
        if self._backend is not None:
            self._backend.close()
        self._bigquery_session_id = None
        self.is_open = False

    @property
    def session_id(self) -> str:
        if self._bigquery_session_id is None:
            self._bigquery_session_id = self._create_bigquery_session()
        return self._bigquery_session_id

    def _create_bigquery_session(self) -> str:
        # google-cloud-bigquery can only create a session as a side effect of a query
        logger.debug("Creating BigQuery session for use in transactions")
        job = None
        try:
            job = self.backend.submit_query(SESSION_PROBE_SQL, create_session=True)
            self.backend.wait(job)
        except google_exceptions.GoogleAPIError as e:
            raise SessionError(
                "Failed to create BigQuery session: {}".format(e),
                context={
                    "original-exception": e,
                    "job-id": getattr(job, "job_id", None),
                },
            ) from e

        session_info = job.session_info
        if session_info is None or not session_info.session_id:
            raise SessionError(
                "BigQuery did not return a session id",
                context={"job-id": job.job_id},
            )

        logger.debug("Session created: %s", session_info.session_id)
        return session_info.session_id

    def invalidate_if_expired(self, error: BaseException) -> bool:
        """Drop the cached session id when BigQuery reports it no longer exists.

        The next query on this connection will create a fresh session. The error itself
        is left for the caller to raise.
        """
        if self._bigquery_session_id is None:
            return False
        if not SESSION_EXPIRED_PATTERN.search(str(error)):
            return False

        logger.warning(
            "BigQuery session %s is no longer valid; a new one will be created on next use",
            self._bigquery_session_id,
        )
        self._bigquery_session_id = None
        return True
