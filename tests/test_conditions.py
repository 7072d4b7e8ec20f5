from __future__ import annotations

from decimal import Decimal

import pytest

from sqlgrid.constants import FieldKind
from sqlgrid.grid import HighlightSpec
from sqlgrid.grid.conditions import canonical_string, evaluate, values_equal


def _spec(operator: str, value: object) -> HighlightSpec:
    return HighlightSpec("col", operator, value, "hl")


@pytest.mark.parametrize(
    ("value", "expected"),
    [(True, "1"), (False, "0"), (2.0, "2"), (2.5, "2.5"), (Decimal("3.10"), "3.1"), (None, "")],
)
def test_canonical_string(value: object, expected: str) -> None:
    assert canonical_string(value) == expected


def test_equality_dispatches_on_field_kind() -> None:
    assert values_equal(1, True, FieldKind.BOOLEAN)
    assert values_equal("yes", 1, FieldKind.BOOLEAN)
    assert values_equal("10.50", 10.5, FieldKind.NUMBER)
    assert values_equal(Decimal("7"), "7.0", FieldKind.NUMBER)
    assert not values_equal("10.50", 10.5, FieldKind.TEXT)


def test_mismatched_kinds_compare_canonical_strings() -> None:
    assert values_equal(True, "1", None)
    assert values_equal(2.0, "2", None)
    assert values_equal("abc", "abc", FieldKind.NUMBER)
    assert not values_equal("maybe", True, FieldKind.BOOLEAN)


@pytest.mark.parametrize(
    ("operator", "expected_value", "value", "kind", "hit"),
    [
        ("equals", "1", 1, FieldKind.NUMBER, True),
        ("not_equals", "1", 2, FieldKind.NUMBER, True),
        ("contains", "EXAMPLE", "bob@example.com", None, True),
        ("not_contains", "org", "bob@example.com", None, True),
        ("starts_with", "bob", "Bob@example.com", None, True),
        ("ends_with", ".org", "bob@example.com", None, False),
        ("gt", 10, "10.5", FieldKind.NUMBER, True),
        ("gte", 10, 10, FieldKind.NUMBER, True),
        ("lt", 10, "abc", FieldKind.NUMBER, False),
        ("lte", "b", "a", FieldKind.TEXT, True),
        ("in", ["draft", "review"], "draft", None, True),
        ("in", "draft, review", "review", None, True),
        ("not_in", (1, 2), 3, FieldKind.NUMBER, True),
        ("empty", None, "   ", None, True),
        ("empty", None, 0, None, False),
        ("not_empty", None, None, None, False),
    ],
)
def test_evaluate(
    operator: str, expected_value: object, value: object, kind: FieldKind | None, hit: bool
) -> None:
    assert evaluate(_spec(operator, expected_value), value, kind) is hit
