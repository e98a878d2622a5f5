"""
Infrastructure package for fleetboard.

Centralizes data-source concerns (connection pooling, table reads and writes).
Keep this layer focused on I/O and resource management, decoupled from the
store, query and metrics logic.
"""

from fleetboard.infrastructure.db_factory import PoolManager, get_sync_connection, get_sync_pool
from fleetboard.infrastructure.sources import (
    AsyncPostgresRecordSource,
    AsyncRecordSource,
    JsonFileRecordSource,
    PostgresRecordSource,
    RecordSource,
)

__all__ = [
    "PoolManager",
    "get_sync_connection",
    "get_sync_pool",
    "AsyncPostgresRecordSource",
    "AsyncRecordSource",
    "JsonFileRecordSource",
    "PostgresRecordSource",
    "RecordSource",
]
