import logging
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import bigquery
from google.cloud.bigquery.table import RowIterator

logger = logging.getLogger(__name__)

SESSION_ID_PROPERTY = "session_id"


class BigQueryBackend:
    """
    Thin wrapper over google.cloud.bigquery.Client exposing only the calls this
    connector makes: submit a query job (optionally inside a session), wait for it, and
    look up, create or delete datasets.

    Job polling is owned by google-cloud-bigquery; `wait` blocks until the job reaches
    a terminal state and raises a google.api_core exception if it failed.
    """

    def __init__(
        self,
        client: bigquery.Client,
        location: Optional[str] = None,
        default_dataset: Optional[str] = None,
    ):
        self.client = client
        self.location = location
        self.default_dataset = default_dataset

    @property
    def project(self) -> Optional[str]:
        return self.client.project

    def _dataset_reference(self, dataset_name: str) -> bigquery.DatasetReference:
        return bigquery.DatasetReference(self.project, dataset_name)

    def submit_query(
        self,
        sql: str,
        session_id: Optional[str] = None,
        create_session: bool = False,
    ) -> bigquery.QueryJob:
        job_config = bigquery.QueryJobConfig()
        if self.default_dataset:
            job_config.default_dataset = self._dataset_reference(self.default_dataset)
        if create_session:
            job_config.create_session = True
        if session_id:
            job_config.connection_properties = [
                bigquery.ConnectionProperty(SESSION_ID_PROPERTY, session_id)
            ]

        logger.debug(
            "BigQueryBackend.submit_query(session_id=%s, create_session=%s)",
            session_id,
            create_session,
        )
        return self.client.query(sql, job_config=job_config, location=self.location)

    @staticmethod
    def wait(job: bigquery.QueryJob) -> RowIterator:
        return job.result()

    def get_dataset(self, dataset_name: str) -> Optional[bigquery.Dataset]:
        try:
            return self.client.get_dataset(self._dataset_reference(dataset_name))
        except google_exceptions.NotFound:
            return None

    def create_dataset(self, dataset_name: str) -> bigquery.Dataset:
        dataset = bigquery.Dataset(self._dataset_reference(dataset_name))
        if self.location:
            dataset.location = self.location
        return self.client.create_dataset(dataset)

    def get_or_create_dataset(self, dataset_name: str) -> bigquery.Dataset:
        dataset = self.get_dataset(dataset_name)
        if dataset is None:
            logger.debug(
                "BigQuery dataset %s does not exist; creating it", dataset_name
            )
            dataset = self.create_dataset(dataset_name)
        return dataset

    def drop_dataset(self, dataset_name: str) -> bool:
        """Delete a dataset and every table in it. Returns False if it did not exist."""
        dataset = self.get_dataset(dataset_name)
        if dataset is None:
            return False

        logger.debug("Dropping dataset %s", dataset_name)
        for table in self.client.list_tables(dataset):
            self.client.delete_table(table, not_found_ok=True)
        self.client.delete_dataset(dataset, not_found_ok=True)
        return True

    def close(self) -> None:
        self.client.close()
