import os
import pytest
from sqlalchemy.dialects import registry

# Make the dialect resolvable from bqsession:// URLs without an installed entry point
registry.register("bqsession", "bqsession.sqlalchemy", "BigQuerySessionDialect")


@pytest.fixture(scope="session")
def project():
    return os.getenv("BIGQUERY_PROJECT")


@pytest.fixture(scope="session")
def dataset():
    return os.getenv("BIGQUERY_DATASET", "bqsession_e2e")


@pytest.fixture(scope="session")
def location():
    return os.getenv("BIGQUERY_LOCATION")


@pytest.fixture(scope="session", autouse=True)
def connection_details(project, dataset, location):
    return {
        "project": project,
        "dataset": dataset,
        "location": location,
    }
