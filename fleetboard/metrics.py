"""
Metrics aggregator for dashboard summary cards.

`compute_metrics` evaluates a list of MetricRule objects over the full,
unfiltered record collection and returns a flat name -> number mapping. It is
recomputed in full on every call; there is no cache and no rule can see the
output of another.

The predicate builders below cover the shapes used by the dashboard cards
(status counts, score bands, "last 7 days" windows) so rules stay
declarative.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from fleetboard.domain.fields import FieldRef, Record, normalize, parse_datetime, resolve_field, to_number
from fleetboard.domain.models import MetricKind, MetricRule, MetricsSnapshot, Predicate
from fleetboard.utils.logging import get_logger

log = get_logger(__name__)

Number = Union[int, float]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


def _round(value: Number, precision: Optional[int]) -> Number:
    if precision is None:
        return value
    return round(value, precision)


def _evaluate(rule: MetricRule, records: Sequence[Record]) -> Number:
    matching = [record for record in records if rule.matches(record)]
    kind = rule.kind

    if kind is MetricKind.COUNT:
        return len(matching)

    if kind is MetricKind.PERCENTAGE:
        if not records:
            return 0
        return round_half_up(len(matching) / len(records) * 100)

    if kind is MetricKind.DISTINCT_COUNT:
        values = {
            normalize(value)
            for value in (resolve_field(record, rule.field) for record in matching)
            if value is not None
        }
        return len(values)

    amount = sum((to_number(resolve_field(record, rule.field)) for record in matching), 0)
    if kind is MetricKind.SUM:
        return _round(amount, rule.precision)

    # average
    if not matching:
        return 0
    return _round(amount / len(matching), rule.precision)


def compute_metric(records: Sequence[Record], rule: MetricRule) -> Number:
    return _evaluate(rule, records)


def compute_metrics(records: Iterable[Record], rules: Iterable[MetricRule]) -> MetricsSnapshot:
    """
    Evaluate every rule against `records`.

    Parameters
    ----------
    records : iterable of Record
        The full collection (never a filtered page).
    rules : iterable of MetricRule
        Rules are independent; when two share a name the later one wins.

    Returns
    -------
    MetricsSnapshot
        Mapping of metric name to value.
    """
    snapshot_records = records if isinstance(records, (list, tuple)) else list(records)
    snapshot: MetricsSnapshot = {}
    for rule in rules:
        snapshot[rule.name] = _evaluate(rule, snapshot_records)
    log.debug(
        "Metrics computed",
        extra={"rows": len(snapshot_records), "metrics": len(snapshot)},
    )
    return snapshot


# --------------- rule shorthands ---------------


def count(name: str, predicate: Optional[Predicate] = None, **kwargs: Any) -> MetricRule:
    return MetricRule(name=name, kind=MetricKind.COUNT, predicate=predicate, **kwargs)


def total(name: str, field: FieldRef, predicate: Optional[Predicate] = None, **kwargs: Any) -> MetricRule:
    return MetricRule(name=name, kind=MetricKind.SUM, field=field, predicate=predicate, **kwargs)


def average(name: str, field: FieldRef, predicate: Optional[Predicate] = None, **kwargs: Any) -> MetricRule:
    return MetricRule(name=name, kind=MetricKind.AVERAGE, field=field, predicate=predicate, **kwargs)


def distinct(name: str, field: FieldRef, predicate: Optional[Predicate] = None, **kwargs: Any) -> MetricRule:
    return MetricRule(
        name=name, kind=MetricKind.DISTINCT_COUNT, field=field, predicate=predicate, **kwargs
    )


def percentage(name: str, predicate: Optional[Predicate] = None, **kwargs: Any) -> MetricRule:
    return MetricRule(name=name, kind=MetricKind.PERCENTAGE, predicate=predicate, **kwargs)


# --------------- predicate builders ---------------


def field_equals(field: FieldRef, expected: Any) -> Predicate:
    target = normalize(expected)

    def predicate(record: Record) -> bool:
        return normalize(resolve_field(record, field)) == target

    return predicate


def field_in(field: FieldRef, expected: Iterable[Any]) -> Predicate:
    targets = {normalize(value) for value in expected}

    def predicate(record: Record) -> bool:
        return normalize(resolve_field(record, field)) in targets

    return predicate


def field_truthy(field: FieldRef) -> Predicate:
    def predicate(record: Record) -> bool:
        return bool(resolve_field(record, field))

    return predicate


def field_falsy(field: FieldRef) -> Predicate:
    def predicate(record: Record) -> bool:
        return not resolve_field(record, field)

    return predicate


def field_between(
    field: FieldRef,
    low: Optional[Number] = None,
    high: Optional[Number] = None,
    missing: Optional[Number] = None,
) -> Predicate:
    """
    Half-open numeric band: low <= value < high.

    Missing values never match unless `missing` gives the number to use in
    their place.
    """

    def predicate(record: Record) -> bool:
        value = resolve_field(record, field)
        if value is None:
            if missing is None:
                return False
            value = missing
        number = to_number(value)
        if low is not None and number < low:
            return False
        if high is not None and number >= high:
            return False
        return True

    return predicate


def field_at_least(field: FieldRef, low: Number, missing: Optional[Number] = None) -> Predicate:
    return field_between(field, low=low, missing=missing)


def field_below(field: FieldRef, high: Number, missing: Optional[Number] = None) -> Predicate:
    return field_between(field, high=high, missing=missing)


def within_last(
    field: FieldRef,
    window: timedelta,
    now: Optional[Callable[[], datetime]] = None,
) -> Predicate:
    """Match records whose date-like field falls within `window` before now."""
    clock = now or (lambda: datetime.now(timezone.utc))

    def predicate(record: Record) -> bool:
        moment = parse_datetime(resolve_field(record, field))
        if moment is None:
            return False
        return moment > clock() - window

    return predicate


def older_than(
    field: FieldRef,
    window: timedelta,
    now: Optional[Callable[[], datetime]] = None,
) -> Predicate:
    clock = now or (lambda: datetime.now(timezone.utc))

    def predicate(record: Record) -> bool:
        moment = parse_datetime(resolve_field(record, field))
        if moment is None:
            return False
        return moment < clock() - window

    return predicate


def all_of(*predicates: Predicate) -> Predicate:
    def predicate(record: Record) -> bool:
        return all(p(record) for p in predicates)

    return predicate


def any_of(*predicates: Predicate) -> Predicate:
    def predicate(record: Record) -> bool:
        return any(p(record) for p in predicates)

    return predicate


def negate(inner: Predicate) -> Predicate:
    def predicate(record: Record) -> bool:
        return not inner(record)

    return predicate


__all__ = [
    "round_half_up",
    "compute_metric",
    "compute_metrics",
    "count",
    "total",
    "average",
    "distinct",
    "percentage",
    "field_equals",
    "field_in",
    "field_truthy",
    "field_falsy",
    "field_between",
    "field_at_least",
    "field_below",
    "within_last",
    "older_than",
    "all_of",
    "any_of",
    "negate",
]
