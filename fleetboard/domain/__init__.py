"""
Domain package for fleetboard.

Exports the request/result models and the field helpers shared by the store,
the query pipeline and the metrics aggregator. Keep this package focused on
data definitions and value semantics.
"""

from fleetboard.domain.fields import FieldRef, Record, normalize, resolve_field, to_number
from fleetboard.domain.models import (
    NO_FILTER_VALUES,
    MetricKind,
    MetricRule,
    MetricsSnapshot,
    QueryResult,
    QuerySpec,
    SortDirection,
)

__all__ = [
    "FieldRef",
    "Record",
    "normalize",
    "resolve_field",
    "to_number",
    "NO_FILTER_VALUES",
    "MetricKind",
    "MetricRule",
    "MetricsSnapshot",
    "QueryResult",
    "QuerySpec",
    "SortDirection",
]
