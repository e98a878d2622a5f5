"""
Domain models for fleetboard.

Records themselves stay plain mappings (their shape differs on every
dashboard page); these models describe the requests made against a record
collection and the values computed from it.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator

from fleetboard.domain.fields import FieldRef, Record

Predicate = Callable[[Record], bool]

# Filter values meaning "this dimension does not constrain the result".
NO_FILTER_VALUES = frozenset({"all", ""})


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class MetricKind(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVERAGE = "average"
    DISTINCT_COUNT = "distinct_count"
    PERCENTAGE = "percentage"


_FIELD_KINDS = {MetricKind.SUM, MetricKind.AVERAGE, MetricKind.DISTINCT_COUNT}


class QuerySpec(BaseModel):
    """
    One list-view request: search text, equality filters, sort and page.

    `page` and `page_size` are deliberately unconstrained here; the query
    pipeline rejects non-positive values with InvalidQueryError.
    """

    search_text: str = Field("", description="Case-insensitive substring; empty matches all.")
    search_fields: Tuple[FieldRef, ...] = Field(
        (), description="Field names, dotted paths or accessors checked by the search stage."
    )
    filters: Dict[str, Any] = Field(
        default_factory=dict, description="Field -> expected value; 'all', '' and None match all."
    )
    sort_key: Optional[FieldRef] = Field(None, description="Field to sort by; None keeps order.")
    sort_direction: SortDirection = Field(SortDirection.ASC)
    page: int = Field(1, description="1-based page number.")
    page_size: int = Field(10, description="Records per page.")

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }


@dataclass(frozen=True)
class QueryResult:
    """
    Visible page of a query plus the totals needed by pagination controls.
    """

    items: Tuple[Record, ...]
    total_matched: int
    total_pages: int
    page: int = 1
    page_size: int = 10

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


class MetricRule(BaseModel):
    """
    Declarative description of one dashboard summary number.
    """

    name: str
    kind: MetricKind
    predicate: Optional[Predicate] = None
    field: Optional[FieldRef] = None
    precision: Optional[int] = Field(
        None, description="Round sum/average results to this many decimals."
    )
    description: str = ""

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }

    @model_validator(mode="after")
    def _field_required(self) -> "MetricRule":
        if self.kind in _FIELD_KINDS and self.field is None:
            raise ValueError(f"metric {self.name!r} of kind {self.kind.value!r} requires a field")
        return self

    def matches(self, record: Record) -> bool:
        return True if self.predicate is None else bool(self.predicate(record))


MetricsSnapshot = Dict[str, Union[int, float]]


__all__ = [
    "NO_FILTER_VALUES",
    "Predicate",
    "SortDirection",
    "MetricKind",
    "QuerySpec",
    "QueryResult",
    "MetricRule",
    "MetricsSnapshot",
]
