from __future__ import annotations

from contextlib import contextmanager

import asyncpg
import psycopg
import pytest
from psycopg.types.json import Jsonb

from fleetboard.errors import RecordNotFoundError
from fleetboard.infrastructure import db_factory, sources
from fleetboard.infrastructure.sources import (
    AsyncPostgresRecordSource,
    AsyncRecordSource,
    JsonFileRecordSource,
    PostgresRecordSource,
    RecordSource,
)

STATEMENT_TIMEOUT_MS = 30_000


# --------------- JSON document ---------------


def test_json_source_satisfies_protocol(json_source):
    assert isinstance(json_source, RecordSource)


def test_json_source_fetch_applies_filters(json_source):
    assert len(json_source.fetch_all("vehicles")) == 3
    assert [r["id"] for r in json_source.fetch_all("vehicles", {"partner_id": "p1"})] == ["v1", "v3"]
    assert len(json_source.fetch_all("vehicles", {"status": "all", "category": None})) == 3


def test_json_source_missing_table_and_file(tmp_path, json_source):
    assert json_source.fetch_all("users") == []
    missing = JsonFileRecordSource(tmp_path / "absent.json")
    assert missing.fetch_all("vehicles") == []
    assert missing.tables() == []


def test_json_source_rejects_non_object_document(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError, match="JSON object"):
        JsonFileRecordSource(path).fetch_all("vehicles")


def test_json_source_update_merges_fields(json_source):
    row = json_source.update("vehicles", "v1", {"status": "rented"})
    assert row["status"] == "rented"
    assert row["make"] == "Toyota"
    assert json_source.fetch_all("vehicles", {"status": "rented"})[0]["id"] == "v1"


def test_json_source_update_missing_row(json_source):
    with pytest.raises(RecordNotFoundError):
        json_source.update("vehicles", "nope", {"status": "rented"})


def test_json_source_insert_creates_table(tmp_path):
    source = JsonFileRecordSource(tmp_path / "new" / "tables.json")
    row = source.insert("users", {"email": "a@example.com"})
    assert row["id"]
    assert source.tables() == ["users"]
    assert source.fetch_all("users") == [row]


def test_json_source_delete(json_source):
    assert json_source.delete("vehicles", "v1") is True
    assert json_source.delete("vehicles", "v1") is False
    assert len(json_source.fetch_all("vehicles")) == 2


# --------------- PostgreSQL (psycopg) with a fake pool ---------------


class _FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rowcount = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        self.conn.executed.append((query, params))
        self.rowcount = self.conn.rowcount

    def fetchall(self):
        return list(self.conn.rows)

    def fetchone(self):
        return self.conn.rows[0] if self.conn.rows else None


class _FakeConnection:
    def __init__(self, rows=None, rowcount=0):
        self.rows = rows or []
        self.rowcount = rowcount
        self.executed = []
        self.row_factories = []

    def cursor(self, row_factory=None):
        self.row_factories.append(row_factory)
        return _FakeCursor(self)


class _FakePool:
    def __init__(self, conn, failures=0):
        self.conn = conn
        self.failures = failures
        self.checkouts = 0

    @contextmanager
    def connection(self):
        self.checkouts += 1
        if self.failures:
            self.failures -= 1
            raise psycopg.OperationalError("connection refused")
        yield self.conn


@pytest.fixture
def fake_pool(monkeypatch):
    def install(rows=None, rowcount=0, failures=0):
        pool = _FakePool(_FakeConnection(rows, rowcount), failures)
        monkeypatch.setattr(sources, "get_sync_pool", lambda **kwargs: pool)
        return pool

    return install


def test_postgres_fetch_all_sets_timeout_and_binds_filters(fake_pool):
    pool = fake_pool(rows=[{"id": "v1", "status": "available"}])
    source = PostgresRecordSource(dsn="postgresql://example/db")

    rows = source.fetch_all("vehicles", {"status": "available", "category": "all", "year": 2021})

    assert rows == [{"id": "v1", "status": "available"}]
    timeout, select = pool.conn.executed
    assert str(STATEMENT_TIMEOUT_MS) in repr(timeout[0])
    assert "Identifier('vehicles')" in repr(select[0])
    assert "Identifier('year')" in repr(select[0])
    assert "Identifier('category')" not in repr(select[0])
    assert select[1] == ["available", "2021"]


def test_postgres_fetch_all_retries_transient_errors(fake_pool, monkeypatch):
    monkeypatch.setattr(PostgresRecordSource.fetch_all.retry, "sleep", lambda seconds: None)
    pool = fake_pool(rows=[{"id": "v1"}], failures=2)

    rows = PostgresRecordSource().fetch_all("vehicles")

    assert rows == [{"id": "v1"}]
    assert pool.checkouts == 3


def test_postgres_fetch_all_gives_up_after_three_attempts(fake_pool, monkeypatch):
    monkeypatch.setattr(PostgresRecordSource.fetch_all.retry, "sleep", lambda seconds: None)
    pool = fake_pool(failures=5)

    with pytest.raises(psycopg.OperationalError):
        PostgresRecordSource().fetch_all("vehicles")
    assert pool.checkouts == 3


def test_postgres_writes_are_not_retried(fake_pool):
    pool = fake_pool(failures=1)

    with pytest.raises(psycopg.OperationalError):
        PostgresRecordSource().update("vehicles", "v1", {"status": "rented"})
    assert pool.checkouts == 1


def test_postgres_update_returns_stored_row(fake_pool):
    pool = fake_pool(rows=[{"id": "v1", "status": "rented", "meta": {"a": 1}}])
    row = PostgresRecordSource().update("vehicles", "v1", {"status": "rented", "meta": {"a": 1}})

    assert row["status"] == "rented"
    assert len(pool.conn.executed) == 1
    query, params = pool.conn.executed[0]
    assert params[0] == "rented"
    assert isinstance(params[1], Jsonb)
    assert params[2] == "v1"


def test_postgres_update_missing_row(fake_pool):
    fake_pool(rows=[])
    with pytest.raises(RecordNotFoundError):
        PostgresRecordSource().update("vehicles", "nope", {"status": "rented"})


def test_postgres_update_requires_fields(fake_pool):
    fake_pool()
    with pytest.raises(ValueError):
        PostgresRecordSource().update("vehicles", "v1", {})


def test_postgres_insert(fake_pool):
    pool = fake_pool(rows=[{"id": "v4", "make": "Ford"}])
    row = PostgresRecordSource().insert("vehicles", {"id": "v4", "make": "Ford"})
    assert row == {"id": "v4", "make": "Ford"}
    assert pool.conn.executed[0][1] == ["v4", "Ford"]


@pytest.mark.parametrize("rowcount,expected", [(1, True), (0, False)])
def test_postgres_delete_reports_rowcount(fake_pool, rowcount, expected):
    fake_pool(rowcount=rowcount)
    assert PostgresRecordSource().delete("vehicles", "v1") is expected


@pytest.mark.parametrize("name", ["vehicles; drop table users", "1abc", "a-b", ""])
def test_postgres_rejects_unsafe_identifiers(fake_pool, name):
    fake_pool()
    with pytest.raises(ValueError, match="invalid identifier"):
        PostgresRecordSource().fetch_all(name)


# --------------- PostgreSQL (asyncpg) ---------------


def test_async_build_query_numbers_placeholders():
    query = AsyncPostgresRecordSource._build_query("vehicles", {"status": "rented", "partner_id": "p1"})
    assert query == 'SELECT * FROM "vehicles" WHERE "status"::text = $1 AND "partner_id"::text = $2'


def test_async_build_query_without_filters():
    assert AsyncPostgresRecordSource._build_query("users", {}) == 'SELECT * FROM "users"'


def test_async_source_satisfies_protocol():
    assert isinstance(AsyncPostgresRecordSource(), AsyncRecordSource)


@pytest.mark.asyncio
async def test_async_fetch_all_uses_asyncpg(monkeypatch):
    calls = {}

    class _Conn:
        async def fetch(self, query, *args):
            calls["fetch"] = (query, args)
            return [{"id": "v1", "status": "rented"}]

        async def close(self):
            calls["closed"] = True

    async def fake_connect(dsn):
        calls["dsn"] = dsn
        return _Conn()

    monkeypatch.setattr(asyncpg, "connect", fake_connect)
    source = AsyncPostgresRecordSource(dsn="postgresql://example/db")

    rows = await source.fetch_all("vehicles", {"status": "rented", "category": ""})

    assert rows == [{"id": "v1", "status": "rented"}]
    assert calls["dsn"] == "postgresql://example/db"
    assert calls["fetch"] == ('SELECT * FROM "vehicles" WHERE "status"::text = $1', ("rented",))
    assert calls["closed"] is True


# --------------- pool manager ---------------


class _RecordingPool:
    def __init__(self, conninfo, min_size, max_size, open):
        self.conninfo = conninfo
        self.closed = False

    def close(self):
        self.closed = True


def test_pool_manager_shares_one_pool_per_dsn(monkeypatch):
    monkeypatch.setattr(db_factory, "ConnectionPool", _RecordingPool)
    manager = db_factory.PoolManager()
    manager.close_all()

    first = db_factory.get_sync_pool(dsn="postgresql://example/a")
    again = manager.get_sync_pool(dsn="postgresql://example/a")
    other = manager.get_sync_pool(dsn="postgresql://example/b")

    assert db_factory.PoolManager() is manager
    assert first is again
    assert other is not first

    manager.close_all()
    assert first.closed and other.closed
    assert manager.get_sync_pool(dsn="postgresql://example/a") is not first
    manager.close_all()
