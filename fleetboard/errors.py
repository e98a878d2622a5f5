"""
Typed error taxonomy for fleetboard.

Every error raised by the store and the query pipeline derives from
FleetboardError so callers can catch the family, while each concrete error
also subclasses the closest builtin (LookupError, ValueError).
"""

from __future__ import annotations


class FleetboardError(Exception):
    """Base class for all fleetboard errors."""


class RecordNotFoundError(FleetboardError, LookupError):
    """
    Raised by RecordStore.patch/remove when no record carries the given id.

    Always recoverable: the store may simply be stale relative to the data
    source, in which case a reload resolves it.
    """

    def __init__(self, record_id: str) -> None:
        self.id = record_id
        super().__init__(f"record not found: {record_id!r}")


class InvalidQueryError(FleetboardError, ValueError):
    """Raised for structurally invalid query specifications."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"invalid query: {reason}")


__all__ = ["FleetboardError", "RecordNotFoundError", "InvalidQueryError"]
