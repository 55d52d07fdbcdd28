# ==============================================
# Tests for MongoStore / PostgresStore
# ==============================================
#
# No live database: the driver entry points are monkeypatched.
# ==============================================

import psycopg
import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from opsrunner.config import MongoConfig, PostgresConfig
from opsrunner.errors import StoreConnectionError, StoreNotConnectedError
from opsrunner.storage import MongoStore, PostgresStore
from opsrunner.storage import mongo_store as mongo_module
from opsrunner.storage import postgres_store as postgres_module


class FakePyMongoClient:
    instances: list = []

    def __init__(self, uri, **kwargs):
        self.uri = uri
        self.kwargs = kwargs
        self.closed = False
        self.ping_error = None
        FakePyMongoClient.instances.append(self)

    @property
    def admin(self):
        client = self

        class Admin:
            def command(self, name):
                if client.ping_error is not None:
                    raise client.ping_error
                return {"ok": 1.0}
        return Admin()

    def __getitem__(self, name):
        return {"db": name}

    def close(self):
        self.closed = True


@pytest.fixture
def fake_pymongo(monkeypatch):
    FakePyMongoClient.instances = []
    monkeypatch.setattr(mongo_module, "PyMongoClient", FakePyMongoClient)
    return FakePyMongoClient


class TestMongoStore:

    def test_uri_without_credentials(self):
        store = MongoStore("db", 27017, "weatherDB")
        assert store.uri == "mongodb://db:27017/weatherDB"

    def test_uri_quotes_credentials(self):
        store = MongoStore("db", 27017, "weatherDB", user="we@ther", password="p:ss/word")
        assert store.uri == "mongodb://we%40ther:p%3Ass%2Fword@db:27017/weatherDB"

    def test_from_config(self):
        store = MongoStore.from_config(MongoConfig(host="mongo", server_selection_timeout_ms=100))
        assert store.host == "mongo"
        assert store.database_name == "weatherDB"
        assert store.server_selection_timeout_ms == 100

    def test_handles_require_connection(self):
        store = MongoStore("db", 27017, "weatherDB")

        with pytest.raises(StoreNotConnectedError):
            store.collection("weather")
        with pytest.raises(StoreConnectionError):
            store.admin_command({"ping": 1})

    def test_disconnect_without_connect_is_noop(self):
        MongoStore("db", 27017, "weatherDB").disconnect()

    def test_connect_and_disconnect(self, fake_pymongo):
        store = MongoStore("db", 27017, "weatherDB", server_selection_timeout_ms=250)

        with store:
            client = fake_pymongo.instances[0]
            assert client.kwargs == {"serverSelectionTimeoutMS": 250}
            assert store.database == {"db": "weatherDB"}

        assert client.closed
        assert store.client is None

    def test_unreachable_server_translated(self, fake_pymongo, monkeypatch):
        def failing_init(self, uri, **kwargs):
            FakePyMongoClient.instances.append(self)
            self.closed = False
            self.ping_error = ServerSelectionTimeoutError("timed out")
        monkeypatch.setattr(FakePyMongoClient, "__init__", failing_init)
        store = MongoStore("db", 27017, "weatherDB")

        with pytest.raises(StoreConnectionError) as exc_info:
            store.connect()

        assert isinstance(exc_info.value.__cause__, ServerSelectionTimeoutError)
        assert fake_pymongo.instances[0].closed
        assert store.client is None

    def test_auth_failure_translated(self, fake_pymongo, monkeypatch):
        def failing_init(self, uri, **kwargs):
            self.closed = False
            self.ping_error = OperationFailure("Authentication failed.", code=18)
        monkeypatch.setattr(FakePyMongoClient, "__init__", failing_init)

        with pytest.raises(StoreConnectionError, match="Authentication"):
            MongoStore("db", 27017, "weatherDB", user="u", password="p").connect()

    def test_connection_error_classification(self):
        store = MongoStore("db", 27017, "weatherDB")

        assert store.is_connection_error(ServerSelectionTimeoutError("gone"))
        assert not store.is_connection_error(OperationFailure("bad", code=2))


class TestPostgresStore:

    def test_from_config(self):
        store = PostgresStore.from_config(PostgresConfig(host="pg", database="w"))
        assert (store.host, store.port, store.database) == ("pg", 5432, "w")

    def test_requires_connection(self):
        store = PostgresStore("pg", 5432, "u", "p", "w")

        with pytest.raises(StoreNotConnectedError):
            store.execute("SELECT 1")
        with pytest.raises(StoreNotConnectedError):
            store.fetch_all("SELECT 1")

    def test_connect_failure_translated(self, monkeypatch):
        def refuse(**kwargs):
            raise psycopg.OperationalError("connection refused")
        monkeypatch.setattr(postgres_module.psycopg, "connect", refuse)
        store = PostgresStore("pg", 5432, "u", "p", "w")

        with pytest.raises(StoreConnectionError) as exc_info:
            store.connect()

        assert exc_info.value.context["database"] == "w"
        assert store.connection is None

    def test_connect_uses_autocommit_dict_rows(self, monkeypatch):
        captured = {}

        class Connection:
            closed = False

            def close(self):
                self.closed = True

        def connect(**kwargs):
            captured.update(kwargs)
            return Connection()
        monkeypatch.setattr(postgres_module.psycopg, "connect", connect)

        with PostgresStore("pg", 5432, "u", "p", "w", connect_timeout=3) as store:
            connection = store.connection

        assert captured["autocommit"] is True
        assert captured["dbname"] == "w"
        assert captured["connect_timeout"] == 3
        assert captured["row_factory"] is postgres_module.dict_row
        assert connection.closed

    def test_connection_error_classification(self):
        store = PostgresStore("pg", 5432, "u", "p", "w")

        assert store.is_connection_error(psycopg.OperationalError("server closed the connection"))
        assert not store.is_connection_error(ValueError("nope"))
