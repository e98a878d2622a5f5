"""
In-memory record store.

Holds the authoritative snapshot of one record collection (one dashboard
table). The snapshot is an immutable tuple that is swapped in a single
assignment, so a reader calling `all()` sees either the old collection or
the new one in full. Mutations are serialised with a lock; concurrent
writers resolve as last-write-wins.

Usage:
    from fleetboard.store import RecordStore

    store = RecordStore()
    store.load(rows)
    store.patch("abc", lambda r: {**r, "status": "suspended"})
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from fleetboard.domain.fields import Record
from fleetboard.errors import RecordNotFoundError
from fleetboard.utils.logging import get_logger

log = get_logger(__name__)

Updater = Callable[[Record], Record]


class RecordStore:
    """
    Ordered, id-unique collection of records with atomic mutation primitives.

    Parameters
    ----------
    id_field : str
        Key holding each record's identifier. Ids are compared as strings.
    name : str
        Label used in log messages (usually the source table name).
    """

    def __init__(self, id_field: str = "id", name: str = "records") -> None:
        self.id_field = id_field
        self.name = name
        self._lock = threading.Lock()
        # (records, id -> position) swapped as one object
        self._state: Tuple[Tuple[Record, ...], Dict[str, int]] = ((), {})
        self._version = 0

    # -------- read side --------

    def all(self) -> Tuple[Record, ...]:
        """Return the current snapshot. Callers must not mutate its records."""
        return self._state[0]

    def get(self, record_id: Any) -> Optional[Record]:
        records, index = self._state
        position = index.get(str(record_id))
        return None if position is None else records[position]

    @property
    def version(self) -> int:
        """Monotonic counter bumped on every change, for change detection."""
        return self._version

    def __len__(self) -> int:
        return len(self._state[0])

    def __contains__(self, record_id: object) -> bool:
        return str(record_id) in self._state[1]

    def __iter__(self):
        return iter(self._state[0])

    # -------- write side --------

    def _key(self, record: Record) -> Optional[str]:
        value = record.get(self.id_field)
        return None if value is None else str(value)

    def _swap(self, records: Tuple[Record, ...], index: Dict[str, int]) -> None:
        self._state = (records, index)
        self._version += 1

    def load(self, records: Iterable[Record]) -> None:
        """
        Replace the entire collection.

        Duplicate ids keep the first position and the last value. Records
        without an id are skipped.
        """
        ordered: Dict[str, Record] = {}
        skipped = 0
        for record in records:
            key = self._key(record)
            if key is None:
                skipped += 1
                continue
            ordered[key] = record
        if skipped:
            log.warning(
                "Skipped records without an id",
                extra={"store": self.name, "id_field": self.id_field, "skipped": skipped},
            )
        snapshot = tuple(ordered.values())
        index = {key: position for position, key in enumerate(ordered)}
        with self._lock:
            self._swap(snapshot, index)
        log.debug("Store loaded", extra={"store": self.name, "rows": len(snapshot)})

    def patch(self, record_id: Any, updater: Updater) -> Record:
        """
        Replace one record in place with `updater(existing)`.

        The patched record keeps its original id and position; every other
        record is left untouched.

        Raises
        ------
        RecordNotFoundError
            If no record carries `record_id`.
        """
        key = str(record_id)
        with self._lock:
            records, index = self._state
            position = index.get(key)
            if position is None:
                raise RecordNotFoundError(key)
            current = records[position]
            updated = updater(current)
            if self._key(updated) != key:
                updated = {**updated, self.id_field: current.get(self.id_field)}
            self._swap(records[:position] + (updated,) + records[position + 1 :], index)
        log.debug("Store patched", extra={"store": self.name, "id": key})
        return updated

    def upsert(self, record: Record) -> Record:
        """Insert a record at the end, or replace it in place when its id exists."""
        key = self._key(record)
        if key is None:
            raise ValueError(f"record has no {self.id_field!r} field")
        with self._lock:
            records, index = self._state
            position = index.get(key)
            if position is None:
                self._swap(records + (record,), {**index, key: len(records)})
            else:
                self._swap(records[:position] + (record,) + records[position + 1 :], index)
        return record

    def remove(self, record_id: Any) -> None:
        """
        Delete the record carrying `record_id`.

        Raises
        ------
        RecordNotFoundError
            If no record carries `record_id`.
        """
        key = str(record_id)
        with self._lock:
            records, index = self._state
            position = index.get(key)
            if position is None:
                raise RecordNotFoundError(key)
            self._swap(
                records[:position] + records[position + 1 :],
                {k: (p if p < position else p - 1) for k, p in index.items() if k != key},
            )
        log.debug("Store removed", extra={"store": self.name, "id": key})


__all__ = ["RecordStore", "Updater"]
