import pickle
from types import MappingProxyType

import pytest

from bqsession.sql import USER_AGENT_NAME, __version__
from bqsession.sql.types import ConnectionConfig, Row


class TestConnectionConfig:
    def test_adapter_keys_are_not_passed_to_the_client(self):
        config = ConnectionConfig.from_kwargs(
            adapter="bigquery",
            project="my-project",
            database="my_dataset",
            location="australia-southeast2",
            logger="ignored",
            _rate_limit_retry_delay=0,
            default_query_job_config="passed",
        )

        assert config.project == "my-project"
        assert config.dataset == "my_dataset"
        assert config.location == "australia-southeast2"
        assert dict(config.client_options) == {"default_query_job_config": "passed"}

    def test_dataset_takes_precedence_over_database(self):
        config = ConnectionConfig.from_kwargs(dataset="a", database="b")
        assert config.dataset == "a"

    def test_config_is_immutable(self):
        config = ConnectionConfig.from_kwargs(dataset="a", credentials="c")

        with pytest.raises(Exception):
            config.dataset = "b"
        assert isinstance(config.client_options, MappingProxyType)

    def test_client_kwargs_include_project_and_client_info(self):
        config = ConnectionConfig.from_kwargs(project="p", dataset="d", credentials="c")
        kwargs = config.client_kwargs()

        assert kwargs["project"] == "p"
        assert kwargs["credentials"] == "c"
        assert kwargs["client_info"].user_agent == "{}/{}".format(
            USER_AGENT_NAME, __version__
        )

    def test_client_kwargs_omit_missing_project(self):
        kwargs = ConnectionConfig.from_kwargs(dataset="d").client_kwargs()
        assert "project" not in kwargs

    def test_user_agent_entry_is_appended(self):
        config = ConnectionConfig.from_kwargs(dataset="d", _user_agent_entry="sqlalchemy")
        assert config.user_agent.endswith("(sqlalchemy)")

    def test_explicit_client_info_is_kept(self):
        config = ConnectionConfig.from_kwargs(dataset="d", client_info="mine")
        assert config.client_kwargs()["client_info"] == "mine"


class TestRow:
    def test_row_class_creates_rows(self):
        Person = Row("name", "age")
        row = Person("Reginald", 27)

        assert row.name == "Reginald"
        assert row["age"] == 27
        assert "name" in row
        assert row.keys() == ["name", "age"]
        assert repr(row) == "Row(name='Reginald', age=27)"

    def test_row_from_kwargs(self):
        row = Row(name="Reginald", age=27)
        assert row.asDict() == {"name": "Reginald", "age": 27}

    def test_unknown_key_raises(self):
        row = Row("name")("Reginald")

        with pytest.raises(KeyError):
            row["missing"]
        with pytest.raises(AttributeError):
            row.missing

    def test_rows_are_read_only(self):
        row = Row("name")("Reginald")
        with pytest.raises(RuntimeError):
            row.name = "Bob"

    def test_rows_pickle(self):
        row = Row("name", "age")("Reginald", 27)
        restored = pickle.loads(pickle.dumps(row))

        assert restored == row
        assert restored.asDict() == row.asDict()

    def test_too_many_values_raise(self):
        with pytest.raises(ValueError):
            Row("name")("Reginald", 27)
