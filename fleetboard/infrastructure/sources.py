"""
Record sources: the external collaborators that populate a RecordStore.

A source fetches whole tables (`fetch_all`) and performs the writes whose
success is mirrored into the store (`update`, `insert`, `delete`). Sources do
all of the I/O; the store, query pipeline and metrics aggregator never do.

Three implementations:
- PostgresRecordSource: psycopg + psycopg_pool, dict rows, tenacity retries on reads.
- AsyncPostgresRecordSource: asyncpg reads for async callers.
- JsonFileRecordSource: a `{table: [rows]}` JSON document, for the CLI and tests.
"""

from __future__ import annotations

import json
import re
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Mapping, Optional, Protocol, runtime_checkable

import asyncpg
import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fleetboard.config import get_settings
from fleetboard.domain.fields import Record, normalize
from fleetboard.errors import RecordNotFoundError
from fleetboard.infrastructure.db_factory import (
    TRANSIENT_ERRORS,
    apply_statement_timeout,
    get_sync_connection,
    get_sync_pool,
)
from fleetboard.query import is_no_filter
from fleetboard.utils.logging import get_logger

log = get_logger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@runtime_checkable
class RecordSource(Protocol):
    """
    Interface of the hosted data source behind a dashboard table.

    Filters passed to `fetch_all` use the same "all"/""/None sentinels as the
    query pipeline.
    """

    def fetch_all(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> List[Record]:
        ...

    def update(self, table: str, record_id: Any, fields: Mapping[str, Any]) -> Record:
        ...

    def insert(self, table: str, fields: Mapping[str, Any]) -> Record:
        ...

    def delete(self, table: str, record_id: Any) -> bool:
        ...


@runtime_checkable
class AsyncRecordSource(Protocol):
    async def fetch_all(
        self, table: str, filters: Optional[Mapping[str, Any]] = None
    ) -> List[Record]:
        ...


def _active_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    return {k: v for k, v in (filters or {}).items() if not is_no_filter(v)}


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"invalid identifier: {name!r}")
    return name


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


# --------------- PostgreSQL (psycopg) ---------------


class PostgresRecordSource:
    """
    Table access through psycopg with a managed connection pool.

    Parameters
    ----------
    dsn : str, optional
        Connection string override; defaults to settings.
    id_field : str, optional
        Primary-key column; defaults to settings.id_field.
    pooled : bool
        Use the shared PoolManager pool (default) or a dedicated connection
        per call.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        id_field: Optional[str] = None,
        pooled: bool = True,
        pool_min_size: int = 1,
        pool_max_size: int = 10,
    ) -> None:
        settings = get_settings()
        self._dsn = dsn
        self.id_field = _check_identifier(id_field or settings.id_field)
        self.pooled = pooled
        self.pool_min_size = pool_min_size
        self.pool_max_size = pool_max_size
        self.statement_timeout_ms = settings.db_statement_timeout_ms

    @contextmanager
    def _connection(self) -> Generator[psycopg.Connection, None, None]:
        if self.pooled:
            pool = get_sync_pool(
                dsn=self._dsn, min_size=self.pool_min_size, max_size=self.pool_max_size
            )
            with pool.connection() as conn:
                yield conn
        else:
            with get_sync_connection(self._dsn) as conn:
                yield conn

    def _where(self, filters: Mapping[str, Any]) -> sql.Composable:
        if not filters:
            return sql.SQL("")
        clauses = [
            sql.SQL("{}::text = %s").format(sql.Identifier(_check_identifier(column)))
            for column in filters
        ]
        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    def fetch_all(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> List[Record]:
        """Read every row of `table` matching the equality `filters`."""
        active = _active_filters(filters)
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(_check_identifier(table)))
        query = query + self._where(active)
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                apply_statement_timeout(cur, self.statement_timeout_ms)
                cur.execute(query, [normalize(v) for v in active.values()])
                rows = cur.fetchall()
        log.info("Fetched table", extra={"table": table, "rows": len(rows)})
        return rows

    def update(self, table: str, record_id: Any, fields: Mapping[str, Any]) -> Record:
        """
        Update columns of one row and return it as stored.

        Raises
        ------
        RecordNotFoundError
            If no row carries `record_id`.
        """
        if not fields:
            raise ValueError("update requires at least one field")
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(_check_identifier(column)))
            for column in fields
        )
        query = sql.SQL("UPDATE {} SET {} WHERE {}::text = %s RETURNING *").format(
            sql.Identifier(_check_identifier(table)), assignments, sql.Identifier(self.id_field)
        )
        params = [_adapt(v) for v in fields.values()] + [str(record_id)]
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
        if row is None:
            raise RecordNotFoundError(str(record_id))
        log.info("Updated row", extra={"table": table, "id": str(record_id), "fields": list(fields)})
        return row

    def insert(self, table: str, fields: Mapping[str, Any]) -> Record:
        columns = [sql.Identifier(_check_identifier(column)) for column in fields]
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(_check_identifier(table)),
            sql.SQL(", ").join(columns),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, [_adapt(v) for v in fields.values()])
                row = cur.fetchone()
        log.info("Inserted row", extra={"table": table, "id": str(row.get(self.id_field))})
        return row

    def delete(self, table: str, record_id: Any) -> bool:
        query = sql.SQL("DELETE FROM {} WHERE {}::text = %s").format(
            sql.Identifier(_check_identifier(table)), sql.Identifier(self.id_field)
        )
        with self._connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, [str(record_id)])
                deleted = cur.rowcount > 0
        log.info("Deleted row", extra={"table": table, "id": str(record_id), "deleted": deleted})
        return deleted


# --------------- PostgreSQL (asyncpg) ---------------


class AsyncPostgresRecordSource:
    """
    Async table reads using asyncpg.

    Only `fetch_all` is asynchronous: it is the one step that populates a
    store; everything downstream of it is synchronous and pure.
    """

    def __init__(self, dsn: Optional[str] = None) -> None:
        self._dsn = dsn

    def _resolve_dsn(self) -> str:
        return self._dsn or get_settings().dsn

    @staticmethod
    def _build_query(table: str, filters: Mapping[str, Any]) -> str:
        query = f'SELECT * FROM "{_check_identifier(table)}"'
        if filters:
            clauses = [
                f'"{_check_identifier(column)}"::text = ${position}'
                for position, column in enumerate(filters, start=1)
            ]
            query += " WHERE " + " AND ".join(clauses)
        return query

    async def fetch_all(
        self, table: str, filters: Optional[Mapping[str, Any]] = None
    ) -> List[Record]:
        active = _active_filters(filters)
        conn = await asyncpg.connect(self._resolve_dsn())
        try:
            rows = await conn.fetch(
                self._build_query(table, active), *[normalize(v) for v in active.values()]
            )
        finally:
            await conn.close()
        log.info("Fetched table", extra={"table": table, "rows": len(rows), "driver": "asyncpg"})
        return [dict(row) for row in rows]


# --------------- JSON document ---------------


class JsonFileRecordSource:
    """
    Tables stored in one JSON document: `{"vehicles": [{...}, ...], ...}`.

    Writes rewrite the whole file. Missing tables read as empty.
    """

    def __init__(self, path: Path | str, id_field: Optional[str] = None) -> None:
        self.path = Path(path)
        self.id_field = id_field or get_settings().id_field
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, List[Dict[str, Any]]]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            document = json.load(f)
        if not isinstance(document, dict):
            raise ValueError(f"{self.path} must contain a JSON object of tables")
        return document

    def _write(self, document: Dict[str, List[Dict[str, Any]]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, default=str)

    def tables(self) -> List[str]:
        return sorted(self._read().keys())

    def _position(self, rows: List[Dict[str, Any]], record_id: Any) -> int:
        key = str(record_id)
        for position, row in enumerate(rows):
            if str(row.get(self.id_field)) == key:
                return position
        raise RecordNotFoundError(key)

    def fetch_all(self, table: str, filters: Optional[Mapping[str, Any]] = None) -> List[Record]:
        active = _active_filters(filters)
        rows = self._read().get(table, [])
        selected = [
            row
            for row in rows
            if all(normalize(row.get(column)) == normalize(value) for column, value in active.items())
        ]
        log.info("Fetched table", extra={"table": table, "rows": len(selected), "path": str(self.path)})
        return selected

    def update(self, table: str, record_id: Any, fields: Mapping[str, Any]) -> Record:
        with self._lock:
            document = self._read()
            rows = document.get(table, [])
            position = self._position(rows, record_id)
            rows[position] = {**rows[position], **fields}
            self._write(document)
        return rows[position]

    def insert(self, table: str, fields: Mapping[str, Any]) -> Record:
        row = dict(fields)
        row.setdefault(self.id_field, str(uuid.uuid4()))
        with self._lock:
            document = self._read()
            document.setdefault(table, []).append(row)
            self._write(document)
        return row

    def delete(self, table: str, record_id: Any) -> bool:
        with self._lock:
            document = self._read()
            rows = document.get(table, [])
            try:
                position = self._position(rows, record_id)
            except RecordNotFoundError:
                return False
            del rows[position]
            self._write(document)
        return True


__all__ = [
    "RecordSource",
    "AsyncRecordSource",
    "PostgresRecordSource",
    "AsyncPostgresRecordSource",
    "JsonFileRecordSource",
]
