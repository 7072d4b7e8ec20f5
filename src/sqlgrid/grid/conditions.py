"""Typed evaluation of highlight conditions against fetched values.

Values read from the database arrive in driver-specific Python types
(``1`` vs ``"1"`` vs ``True``). Comparisons are dispatched on the declared
field kind of the column instead of relying on implicit coercion:

- boolean columns compare truthiness parsed from common spellings
- number columns compare as ``Decimal``
- everything else compares canonical strings

When the two sides cannot be brought to the column's kind, equality falls
back to comparing canonical strings and ordering comparisons are false.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlgrid.constants import FieldKind

from .config import HighlightSpec

_TRUE_STRINGS = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "f", "no", "n", "off", ""})


def canonical_string(value: Any) -> str:
    """String form used for text comparisons (``True`` -> ``"1"``, ``2.0`` -> ``"2"``)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal):
        normalized = value.normalize()
        return format(normalized, "f")
    return str(value)


def to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None


def to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float | Decimal):
        return value != 0
    text = canonical_string(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return None


def values_equal(left: Any, right: Any, kind: FieldKind | None) -> bool:
    if kind is FieldKind.BOOLEAN:
        lb, rb = to_bool(left), to_bool(right)
        if lb is not None and rb is not None:
            return lb == rb
    elif kind is FieldKind.NUMBER:
        ld, rd = to_decimal(left), to_decimal(right)
        if ld is not None and rd is not None:
            return ld == rd
    return canonical_string(left) == canonical_string(right)


def _compare(left: Any, right: Any, kind: FieldKind | None) -> int | None:
    """Three-way comparison, None when the values are not comparable."""
    ld, rd = to_decimal(left), to_decimal(right)
    if ld is not None and rd is not None and kind in {FieldKind.NUMBER, None}:
        return (ld > rd) - (ld < rd)
    if kind is FieldKind.NUMBER:
        return None
    ls, rs = canonical_string(left), canonical_string(right)
    return (ls > rs) - (ls < rs)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",")]
    if isinstance(value, Iterable):
        return list(value)
    return [value]


def evaluate(spec: HighlightSpec, value: Any, kind: FieldKind | None = None) -> bool:
    """Return True when ``value`` satisfies the highlight condition."""
    op = spec.operator
    if op == "empty":
        return canonical_string(value).strip() == ""
    if op == "not_empty":
        return canonical_string(value).strip() != ""
    if op == "equals":
        return values_equal(value, spec.value, kind)
    if op == "not_equals":
        return not values_equal(value, spec.value, kind)
    if op in {"in", "not_in"}:
        hit = any(values_equal(value, candidate, kind) for candidate in _as_list(spec.value))
        return hit if op == "in" else not hit

    text = canonical_string(value).lower()
    needle = canonical_string(spec.value).lower()
    if op == "contains":
        return needle in text
    if op == "not_contains":
        return needle not in text
    if op == "starts_with":
        return text.startswith(needle)
    if op == "ends_with":
        return text.endswith(needle)

    order = _compare(value, spec.value, kind)
    if order is None:
        return False
    return {
        "gt": order > 0,
        "gte": order >= 0,
        "lt": order < 0,
        "lte": order <= 0,
    }.get(op, False)
