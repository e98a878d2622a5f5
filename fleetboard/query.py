"""
Query pipeline: search -> filter -> sort -> page.

`run_query` is a pure function of a record snapshot and a QuerySpec. Each
stage runs to completion before the next starts and none of them mutates its
input, so the same inputs always produce the same QueryResult.

Usage:
    from fleetboard.domain.models import QuerySpec
    from fleetboard.query import run_query

    spec = QuerySpec(search_text="ford", search_fields=("make", "model"),
                     filters={"status": "available"}, sort_key="year",
                     sort_direction="desc", page=1, page_size=20)
    result = run_query(store.all(), spec)
"""

from __future__ import annotations

import math
from typing import Any, List, Mapping, Optional, Sequence

from fleetboard.domain.fields import FieldRef, Record, normalize, resolve_field, sort_key
from fleetboard.domain.models import NO_FILTER_VALUES, QueryResult, QuerySpec, SortDirection
from fleetboard.errors import InvalidQueryError


def is_no_filter(value: Any) -> bool:
    """True when a filter value means "do not constrain this dimension"."""
    return value is None or (isinstance(value, str) and value.strip().lower() in NO_FILTER_VALUES)


def search_records(
    records: Sequence[Record], search_text: str, search_fields: Sequence[FieldRef]
) -> List[Record]:
    """Keep records where any search field contains `search_text` (case-insensitive)."""
    if not search_text:
        return list(records)
    needle = search_text.lower()
    return [
        record
        for record in records
        if any(needle in normalize(resolve_field(record, f)).lower() for f in search_fields)
    ]


def matches_filters(record: Record, filters: Mapping[str, Any]) -> bool:
    """Conjunction of all non-sentinel equality filters."""
    for field, expected in filters.items():
        if is_no_filter(expected):
            continue
        if normalize(resolve_field(record, field)) != normalize(expected):
            return False
    return True


def filter_records(records: Sequence[Record], filters: Mapping[str, Any]) -> List[Record]:
    active = {f: v for f, v in filters.items() if not is_no_filter(v)}
    if not active:
        return list(records)
    return [record for record in records if matches_filters(record, active)]


def sort_records(
    records: Sequence[Record],
    key: Optional[FieldRef],
    direction: SortDirection = SortDirection.ASC,
) -> List[Record]:
    """
    Stable sort by `key`; records missing the field go last in both directions.

    Python's sort stays stable with reverse=True, so ties keep their
    relative order whichever way the column is sorted.
    """
    if key is None:
        return list(records)
    present = []
    missing = []
    for record in records:
        value = resolve_field(record, key)
        if value is None:
            missing.append(record)
        else:
            present.append((sort_key(value), record))
    present.sort(key=lambda pair: pair[0], reverse=SortDirection(direction) is SortDirection.DESC)
    return [record for _, record in present] + missing


def paginate(records: Sequence[Record], page: int, page_size: int) -> List[Record]:
    """1-based page slice; pages past the end are empty."""
    start = (page - 1) * page_size
    return list(records[start : start + page_size])


def validate_spec(spec: QuerySpec) -> None:
    if spec.page < 1:
        raise InvalidQueryError(f"page must be >= 1, got {spec.page}")
    if spec.page_size < 1:
        raise InvalidQueryError(f"page_size must be >= 1, got {spec.page_size}")


def run_query(records: Sequence[Record], spec: QuerySpec) -> QueryResult:
    """
    Compute the visible page of `records` for `spec`.

    Raises
    ------
    InvalidQueryError
        If `page` or `page_size` is below 1.
    """
    validate_spec(spec)
    matched = search_records(records, spec.search_text, spec.search_fields)
    matched = filter_records(matched, spec.filters)
    ordered = sort_records(matched, spec.sort_key, spec.sort_direction)
    total = len(ordered)
    return QueryResult(
        items=tuple(paginate(ordered, spec.page, spec.page_size)),
        total_matched=total,
        total_pages=math.ceil(total / spec.page_size),
        page=spec.page,
        page_size=spec.page_size,
    )


def iter_pages(records: Sequence[Record], spec: QuerySpec):
    """Yield every page of `spec` from page 1 through the last one."""
    first = run_query(records, spec.model_copy(update={"page": 1}))
    yield first
    for page in range(2, first.total_pages + 1):
        yield run_query(records, spec.model_copy(update={"page": page}))


__all__ = [
    "is_no_filter",
    "search_records",
    "matches_filters",
    "filter_records",
    "sort_records",
    "paginate",
    "validate_spec",
    "run_query",
    "iter_pages",
]
