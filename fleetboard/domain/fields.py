"""
Field access and value normalisation helpers.

Records are plain mappings whose shape varies per dashboard page, so every
stage of the pipeline addresses fields through `resolve_field`, which accepts
either a field name, a dotted path into nested mappings, or a callable
accessor. The normalisers here define what "equal", "contains" and "numeric"
mean for heterogeneous values.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, Optional, Tuple, Union

Record = Mapping[str, Any]
FieldRef = Union[str, Callable[[Record], Any]]

MISSING: Any = None

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?)?(Z|[+-]\d{2}:?\d{2})?$")


def resolve_field(record: Record, field: FieldRef) -> Any:
    """
    Return the value addressed by `field`, or None when it is absent.

    A field name is looked up directly first, so keys that contain dots are
    still reachable; otherwise a dotted name walks nested mappings.
    """
    if callable(field):
        return field(record)
    if field in record:
        return record[field]
    if "." not in field:
        return MISSING
    current: Any = record
    for part in field.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def field_label(field: FieldRef) -> str:
    if callable(field):
        return getattr(field, "__name__", repr(field))
    return field


def normalize(value: Any) -> str:
    """
    Canonical string form used for search, equality filters and distinct counts.

    None becomes the empty string, booleans are lower-case, integral floats
    drop their fractional part so 4 and 4.0 compare equal.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, Decimal):
        if value.is_nan():
            return "nan"
        if value == value.to_integral_value():
            return str(value.to_integral_value())
        return str(value.normalize())
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_number(value: Any) -> Union[int, float]:
    """Coerce a value to a number; anything non-numeric counts as 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value if not (isinstance(value, float) and math.isnan(value)) else 0
    if isinstance(value, Decimal):
        return 0 if value.is_nan() else float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            number = Decimal(text)
        except InvalidOperation:
            return 0
        if not number.is_finite():
            return 0
        return int(number) if number == number.to_integral_value() and "." not in text else float(number)
    return 0


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Interpret dates, datetimes and ISO-8601 strings as aware datetimes.

    Naive values are taken to be UTC. Returns None for anything that is not
    date-like.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and _ISO_DATE_RE.match(value.strip()):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# type ranks keep mixed-type columns totally ordered
_RANK_NUMBER = 0
_RANK_DATE = 1
_RANK_STRING = 2
_RANK_OTHER = 3


def sort_key(value: Any) -> Tuple[int, Any]:
    """Total-order key for a present (non-None) sort value."""
    if isinstance(value, (bool, int, float, Decimal)):
        if isinstance(value, Decimal) and value.is_nan():
            return (_RANK_OTHER, "nan")
        number = float(value)
        if math.isnan(number):
            return (_RANK_OTHER, "nan")
        return (_RANK_NUMBER, number)
    moment = parse_datetime(value)
    if moment is not None:
        return (_RANK_DATE, moment.timestamp())
    if isinstance(value, str):
        return (_RANK_STRING, value)
    return (_RANK_OTHER, normalize(value))


__all__ = [
    "Record",
    "FieldRef",
    "resolve_field",
    "field_label",
    "normalize",
    "to_number",
    "parse_datetime",
    "sort_key",
]
