import psycopg2
import pytest

from legacy_migration.loaders import postgres_loader
from legacy_migration.loaders.postgres_loader import PostgresLoader
from legacy_migration.models.record import TransformedRecord
from legacy_migration.settings import TargetDatabaseSettings


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        if self.connection.error:
            raise self.connection.error
        self.connection.executed.append((query, params))

    def fetchone(self):
        return self.connection.results.pop(0) if self.connection.results else None


class FakeConnection:
    def __init__(self, results=None, error=None):
        self.results = list(results or [])
        self.error = error
        self.executed = []
        self.autocommit = False
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True


def record(**data):
    values = {"id": "new-uuid", "username": "ouyang", "phone": "15622252279"}
    values.update(data)
    return TransformedRecord(
        id=values["id"],
        target_service="postgres",
        target_entity="users",
        data=values,
        kind="users",
        legacy_id="1633",
        natural_keys=[["username"]],
    )


def test_find_existing_tries_each_lookup_group():
    connection = FakeConnection(results=[None, ("existing-uuid",)])
    loader = PostgresLoader(TargetDatabaseSettings(), connection=connection)

    found = loader.find_existing("users", [{"id": "new-uuid"}, {"username": "ouyang"}])

    assert found == "existing-uuid"
    assert [params for _, params in connection.executed] == [["new-uuid"], ["ouyang"]]


def test_insert_row_binds_values_in_column_order():
    connection = FakeConnection(results=[("new-uuid",)])
    loader = PostgresLoader(TargetDatabaseSettings(), connection=connection)

    inserted = loader.insert_row("users", {"id": "new-uuid", "username": "ouyang", "vip": False})

    assert inserted == "new-uuid"
    assert connection.executed[0][1] == ["new-uuid", "ouyang", False]


def test_insert_conflict_returns_none():
    loader = PostgresLoader(TargetDatabaseSettings(), connection=FakeConnection(results=[]))
    assert loader.insert_row("users", {"id": "x"}) is None


def test_load_record_skips_existing_row():
    connection = FakeConnection(results=[None, ("existing-uuid",)])
    loader = PostgresLoader(TargetDatabaseSettings(), connection=connection)

    result = loader.load_record(record())

    assert result.skipped
    assert result.target_id == "existing-uuid"
    assert len(connection.executed) == 2


def test_load_record_inserts_new_row():
    connection = FakeConnection(results=[None, None, ("new-uuid",)])
    loader = PostgresLoader(TargetDatabaseSettings(), connection=connection)

    result = loader.load_record(record())

    assert result.success
    assert result.target_id == "new-uuid"
    assert loader.inserted_counts() == {"users": 1}


def test_dry_run_never_inserts():
    connection = FakeConnection(results=[None, None])
    loader = PostgresLoader(TargetDatabaseSettings(), dry_run=True, connection=connection)

    result = loader.load_record(record())

    assert result.success
    assert len(connection.executed) == 2
    assert loader.inserted_counts() == {}


def test_database_error_becomes_failed_result():
    connection = FakeConnection(error=psycopg2.IntegrityError("null value in column"))
    loader = PostgresLoader(TargetDatabaseSettings(), connection=connection)

    result = loader.load_record(record())

    assert not result.success
    assert result.error_code == "IntegrityError"


def test_validate_connection_reports_unreachable_database():
    loader = PostgresLoader(
        TargetDatabaseSettings(),
        connection=FakeConnection(error=psycopg2.OperationalError("connection refused")),
    )
    assert loader.validate_connection() is False


def test_connects_lazily_in_autocommit_mode(monkeypatch):
    calls = []
    connection = FakeConnection(results=[(1,)])

    def fake_connect(**kwargs):
        calls.append(kwargs)
        return connection

    monkeypatch.setattr(postgres_loader.psycopg2, "connect", fake_connect)
    settings = TargetDatabaseSettings(host="db", database="oms", user="migrator", password="secret")
    loader = PostgresLoader(settings)

    assert calls == []
    assert loader.validate_connection()
    assert calls[0]["dbname"] == "oms"
    assert calls[0]["password"] == "secret"
    assert connection.autocommit is True

    loader.close()
    assert connection.closed


@pytest.mark.parametrize("table", ["users", "bank_cards"])
def test_fetch_value(table):
    connection = FakeConnection(results=[("ICBC",)])
    loader = PostgresLoader(TargetDatabaseSettings(), connection=connection)
    assert loader.fetch_value(table, "name", "bank-uuid") == "ICBC"
    assert connection.executed[0][1] == ["bank-uuid"]
