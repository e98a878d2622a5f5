"""
fleetboard - list views and summary metrics for fleet-rental admin dashboards.

This package provides the list-processing core shared by every dashboard page:

- RecordStore: in-memory, id-unique record collection with atomic mutations
- Query pipeline: search, equality filters, stable sort and pagination
- Metrics aggregator: declarative count/sum/average/distinct/percentage rules
- Dashboard presets and a coordinator wiring them to a record source
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from fleetboard.config import Settings, get_settings
from fleetboard.dashboard import Dashboard
from fleetboard.domain.models import (
    MetricKind,
    MetricRule,
    MetricsSnapshot,
    QueryResult,
    QuerySpec,
    SortDirection,
)
from fleetboard.errors import FleetboardError, InvalidQueryError, RecordNotFoundError
from fleetboard.metrics import compute_metrics
from fleetboard.presets import DashboardPreset, available_dashboards, get_preset
from fleetboard.query import run_query
from fleetboard.store import RecordStore
from fleetboard.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Core
    "RecordStore",
    "run_query",
    "compute_metrics",
    # Models
    "MetricKind",
    "MetricRule",
    "MetricsSnapshot",
    "QueryResult",
    "QuerySpec",
    "SortDirection",
    # Errors
    "FleetboardError",
    "InvalidQueryError",
    "RecordNotFoundError",
    # Dashboards
    "Dashboard",
    "DashboardPreset",
    "available_dashboards",
    "get_preset",
    # Logging
    "configure_logging",
    "get_logger",
]
