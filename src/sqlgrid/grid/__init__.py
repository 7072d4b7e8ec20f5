"""Grid configuration: immutable model, fluent builder and payload codec."""

from __future__ import annotations

from .builder import GridBuilder
from .config import (
    ChangeType,
    ColumnCondition,
    ColumnTransform,
    FieldBehavior,
    GridConfig,
    HighlightSpec,
    JoinSpec,
    OrderSpec,
    RawCondition,
    RelationSpec,
    Subselect,
    SummarySpec,
    WhereCondition,
)
from .payload import from_payload, to_payload

__all__ = [
    "ChangeType",
    "ColumnCondition",
    "ColumnTransform",
    "FieldBehavior",
    "GridBuilder",
    "GridConfig",
    "HighlightSpec",
    "JoinSpec",
    "OrderSpec",
    "RawCondition",
    "RelationSpec",
    "Subselect",
    "SummarySpec",
    "WhereCondition",
    "from_payload",
    "to_payload",
]
