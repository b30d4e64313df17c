from types import SimpleNamespace
from unittest.mock import Mock

from google.api_core.exceptions import NotFound
from google.cloud import bigquery

SESSION_ID = "test-session-id"
PROJECT = "test-project"


class FakeRowIterator:
    """Stands in for google.cloud.bigquery.table.RowIterator"""

    def __init__(self, schema=(), rows=(), num_dml_affected_rows=None):
        self.schema = list(schema)
        self._rows = list(rows)
        self.num_dml_affected_rows = num_dml_affected_rows
        self.to_arrow = Mock(return_value="arrow-table")

    def __iter__(self):
        return iter(self._rows)


class FakeQueryJob:
    def __init__(self, result=None, error=None, session_id=None, job_id="job-1"):
        self._result = result if result is not None else FakeRowIterator()
        self._error = error
        self.job_id = job_id
        self.session_info = (
            SimpleNamespace(session_id=session_id) if session_id else None
        )

    def result(self):
        if self._error is not None:
            raise self._error
        return self._result


class QueryRecorder:
    """side_effect for Client.query.

    Session creation probes always succeed. Every other submission is recorded and
    answered with the next scripted response: a FakeRowIterator, or an exception the
    job raises when waited on.
    """

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.submitted = []
        self.session_probes = 0

    def __call__(self, sql, job_config=None, location=None):
        if job_config is not None and job_config.create_session:
            self.session_probes += 1
            return FakeQueryJob(session_id=SESSION_ID, job_id="session-job")

        self.submitted.append((sql, job_config))
        job_id = "job-%d" % len(self.submitted)
        response = self.responses.pop(0) if self.responses else FakeRowIterator()
        if isinstance(response, Exception):
            return FakeQueryJob(error=response, job_id=job_id)
        return FakeQueryJob(response, job_id=job_id)

    @property
    def statements(self):
        return [sql for sql, _ in self.submitted]


class BigQueryClientMockFactory:
    @classmethod
    def new(cls, responses=(), dataset_exists=True):
        client = Mock(spec=bigquery.Client)
        client.project = PROJECT

        recorder = QueryRecorder(responses)
        client.query.side_effect = recorder
        client.recorder = recorder

        if dataset_exists:
            client.get_dataset.side_effect = lambda ref: bigquery.Dataset(ref)
        else:
            client.get_dataset.side_effect = NotFound("Dataset not found")
        client.create_dataset.side_effect = lambda dataset: dataset
        client.list_tables.return_value = []

        return client


def session_id_of(job_config) -> str:
    """The session id attached to a submitted QueryJobConfig, or None"""
    properties = job_config.connection_properties
    for prop in properties:
        if prop.key == "session_id":
            return prop.value
    return None
