"""
Dashboard coordinator.

Wires a record source, a RecordStore and a DashboardPreset together in the
order every admin page follows:

    source.fetch_all  ->  store.load
    store.all + QuerySpec  ->  run_query  ->  visible page
    store.all + preset.rules  ->  compute_metrics  ->  summary cards
    source.update/insert/delete  ->  store.patch/upsert/remove

Writes go to the source first; the store only changes after the source
reports success, so a failed write leaves the previous state displayed.

Usage:
    from fleetboard.dashboard import Dashboard
    from fleetboard.infrastructure.sources import JsonFileRecordSource

    board = Dashboard.for_preset("fleet_vehicles", JsonFileRecordSource("data.json"))
    board.refresh()
    page = board.view(search_text="ford", filters={"status": "available"})
    cards = board.metrics()
"""

from __future__ import annotations

import inspect
from typing import Any, Mapping, Optional

from fleetboard.config import get_settings
from fleetboard.domain.fields import Record
from fleetboard.domain.models import MetricsSnapshot, QueryResult, QuerySpec
from fleetboard.errors import RecordNotFoundError
from fleetboard.metrics import compute_metrics
from fleetboard.presets import DashboardPreset, get_preset
from fleetboard.query import run_query
from fleetboard.store import RecordStore
from fleetboard.utils.logging import get_logger

log = get_logger(__name__)


class Dashboard:
    """
    One dashboard page: a preset, its data source and its in-memory store.

    Parameters
    ----------
    preset : DashboardPreset
        Search fields, default sort and metric rules of the page.
    source : RecordSource | AsyncRecordSource
        External collaborator that reads and writes the preset's table.
    store : RecordStore, optional
        Existing store to reuse; a fresh one is created otherwise.
    source_filters : mapping, optional
        Equality filters applied when fetching (e.g. a partner id).
    """

    def __init__(
        self,
        preset: DashboardPreset,
        source: Any,
        store: Optional[RecordStore] = None,
        source_filters: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.preset = preset
        self.source = source
        self.store = store or RecordStore(id_field=get_settings().id_field, name=preset.table)
        self.source_filters = dict(source_filters or {})

    @classmethod
    def for_preset(cls, name: str, source: Any, **kwargs: Any) -> "Dashboard":
        return cls(get_preset(name), source, **kwargs)

    @property
    def table(self) -> str:
        return self.preset.table

    # -------- reads --------

    def refresh(self) -> int:
        """Reload the whole table from the source; returns the row count."""
        rows = self.source.fetch_all(self.table, self.source_filters or None)
        if inspect.isawaitable(rows):
            close = getattr(rows, "close", None)
            if close is not None:
                close()
            raise TypeError("source is asynchronous; use refresh_async()")
        self.store.load(rows)
        log.info("Dashboard refreshed", extra={"dashboard": self.preset.name, "rows": len(self.store)})
        return len(self.store)

    async def refresh_async(self) -> int:
        rows = self.source.fetch_all(self.table, self.source_filters or None)
        if inspect.isawaitable(rows):
            rows = await rows
        self.store.load(rows)
        log.info("Dashboard refreshed", extra={"dashboard": self.preset.name, "rows": len(self.store)})
        return len(self.store)

    def query(self, **overrides: Any) -> QuerySpec:
        if overrides.get("page_size") is None:
            overrides["page_size"] = get_settings().default_page_size
        return self.preset.query(**overrides)

    def view(self, spec: Optional[QuerySpec] = None, **overrides: Any) -> QueryResult:
        """Run the query pipeline over the current snapshot."""
        return run_query(self.store.all(), spec or self.query(**overrides))

    def metrics(self) -> MetricsSnapshot:
        """Recompute every summary card over the full collection."""
        return compute_metrics(self.store.all(), self.preset.rules)

    # -------- writes --------

    def _reload_after_miss(self, exc: RecordNotFoundError) -> None:
        log.warning(
            "Store is stale relative to source, reloading",
            extra={"dashboard": self.preset.name, "id": exc.id},
        )
        self.refresh()

    def apply_update(self, record_id: Any, fields: Mapping[str, Any]) -> Record:
        """
        Write `fields` to the source, then patch the store with the stored row.

        Raises
        ------
        RecordNotFoundError
            If the source has no such row, or the store was stale (after the
            store has been reloaded).
        """
        stored = self.source.update(self.table, record_id, fields)
        try:
            return self.store.patch(record_id, lambda current: {**current, **stored})
        except RecordNotFoundError as exc:
            self._reload_after_miss(exc)
            raise

    def apply_insert(self, fields: Mapping[str, Any]) -> Record:
        stored = self.source.insert(self.table, fields)
        return self.store.upsert(stored)

    def apply_delete(self, record_id: Any) -> None:
        """
        Delete the row at the source, then remove it from the store.

        Raises
        ------
        RecordNotFoundError
            If the source reported nothing deleted, or the store was stale.
        """
        if not self.source.delete(self.table, record_id):
            raise RecordNotFoundError(str(record_id))
        try:
            self.store.remove(record_id)
        except RecordNotFoundError as exc:
            self._reload_after_miss(exc)
            raise

    def set_status(self, record_id: Any, status: str) -> Record:
        """Status change shortcut used by approve/suspend/resolve actions."""
        return self.apply_update(record_id, {"status": status})


__all__ = ["Dashboard"]
