"""
Database connection factory utilities for fleetboard.

Provides centralized management of the PostgreSQL connection pool that backs
the Postgres record source, with proper lifecycle management. The PoolManager
singleton ensures the pool is cleaned up on application exit.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

import atexit
import threading
from typing import Optional

import psycopg
from psycopg import Connection, sql
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fleetboard.config import get_settings

TRANSIENT_ERRORS = (psycopg.OperationalError, psycopg.InterfaceError)


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    return get_settings().dsn


def apply_statement_timeout(cur: psycopg.Cursor, timeout_ms: Optional[int]) -> None:
    """Set a transaction-local statement timeout; no-op for falsy values."""
    if not timeout_ms:
        return
    cur.execute(
        sql.SQL("SELECT set_config('statement_timeout', {}, true)").format(
            sql.Literal(str(int(timeout_ms)))
        )
    )


class PoolManager:
    """
    Thread-safe singleton for managing the database connection pool.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pools = {}
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_sync_pool(
        self, dsn: Optional[str] = None, min_size: int = 1, max_size: int = 10
    ) -> ConnectionPool:
        """
        Get or create the synchronous connection pool for `dsn`.

        Parameters
        ----------
        dsn : str, optional
            Connection string; defaults to the one built from settings.
        min_size : int
            Minimum number of idle connections to keep.
        max_size : int
            Maximum total connections in the pool.

        Returns
        -------
        ConnectionPool
            The managed sync pool instance.
        """
        conninfo = dsn or build_dsn()
        with self._lock:
            pool = self._pools.get(conninfo)
            if pool is None:
                pool = ConnectionPool(
                    conninfo=conninfo, min_size=min_size, max_size=max_size, open=True
                )
                self._pools[conninfo] = pool
            return pool

    def close_all(self) -> None:
        """
        Close all managed pools and release resources.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            pools, self._pools = self._pools, {}
        for pool in pools.values():
            pool.close()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.
    Use this for simple, one-off operations. Prefer the pool for repeated use.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn())


def get_sync_pool(dsn: Optional[str] = None, min_size: int = 1, max_size: int = 10) -> ConnectionPool:
    """Get or create a synchronous connection pool via PoolManager."""
    return PoolManager().get_sync_pool(dsn=dsn, min_size=min_size, max_size=max_size)


__all__ = [
    "TRANSIENT_ERRORS",
    "PoolManager",
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
    "get_sync_pool",
]
