"""Column metadata models and type-to-field-kind inference."""

from __future__ import annotations

from dataclasses import dataclass
import re

from sqlgrid.constants import Constants, FieldKind

_PARENTHESIZED = re.compile(r"\([^)]*\)")
_QUALIFIERS = re.compile(r"\b(unsigned|zerofill)\b")
_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
_BOOLEAN_WIDTH_ONE = re.compile(r"^(tinyint|bit)\s*\(\s*1\s*\)")


@dataclass(frozen=True)
class ColumnSchema:
    """Metadata for one column of a table.

    Attributes:
        name: Column name as reported by the database
        raw_type: Type string exactly as reported (may be empty)
        normalized_type: Lowercased type without size or qualifiers
    """

    name: str
    raw_type: str
    normalized_type: str

    @classmethod
    def from_raw(cls, name: str, raw_type: str | None) -> ColumnSchema:
        raw = raw_type or ""
        return cls(name=name, raw_type=raw, normalized_type=normalize_type(raw))


@dataclass(frozen=True)
class FieldKindHint:
    """Inferred field kind plus an optional numeric step hint."""

    kind: FieldKind
    step: str | None = None


def normalize_type(raw_type: str) -> str:
    """Strip size/precision and ``unsigned``/``zerofill``, lowercase, collapse spaces.

    Example:
        >>> normalize_type("DECIMAL(10, 2) UNSIGNED ZEROFILL")
        'decimal'
        >>> normalize_type("character  varying(255)")
        'character varying'
    """
    lowered = raw_type.lower()
    stripped = _PARENTHESIZED.sub("", lowered)
    stripped = _QUALIFIERS.sub("", stripped)
    return " ".join(stripped.split())


def type_tokens(normalized_type: str) -> set[str]:
    return {tok for tok in _TOKEN_SPLIT.split(normalized_type) if tok}


def map_type_to_field_kind(raw_type: str | None) -> FieldKindHint | None:
    """Infer an abstract field kind from a raw database type.

    Returns None when nothing matches; callers treat that as plain text.
    """
    if not raw_type:
        return None

    compact = " ".join(raw_type.lower().split())
    if _BOOLEAN_WIDTH_ONE.match(compact):
        return FieldKindHint(FieldKind.BOOLEAN)

    tokens = type_tokens(normalize_type(raw_type))
    if tokens & Constants.BOOLEAN_TYPE_TOKENS:
        return FieldKindHint(FieldKind.BOOLEAN)
    if tokens & Constants.JSON_TYPE_TOKENS:
        return FieldKindHint(FieldKind.JSON)
    if "xml" in tokens or any(tok.endswith("text") for tok in tokens):
        return FieldKindHint(FieldKind.TEXTAREA)
    # timestamp/datetime before date and time: "timestamp without time zone"
    if tokens & {"timestamp", "datetime", "timestamptz"}:
        return FieldKindHint(FieldKind.DATETIME)
    if "date" in tokens:
        return FieldKindHint(FieldKind.DATE)
    if tokens & {"time", "timetz"}:
        return FieldKindHint(FieldKind.TIME)
    numeric = tokens & Constants.NUMERIC_TYPE_TOKENS
    if numeric:
        step = "any" if numeric & Constants.CONTINUOUS_TYPE_TOKENS else "1"
        return FieldKindHint(FieldKind.NUMBER, step=step)
    return None


def is_unsearchable_type(normalized_type: str) -> bool:
    """True for binary, JSON and geometry-family types."""
    tokens = type_tokens(normalized_type)
    if tokens & Constants.UNSEARCHABLE_TYPE_TOKENS:
        return True
    return any(tok.endswith(("blob", "binary")) for tok in tokens)
