"""Schema introspection, type inference and identifier quoting."""

from __future__ import annotations

from .dialects import dialect_family, map_sqlalchemy_to_sqlglot
from .introspector import SchemaIntrospector
from .quoting import IdentifierQuoter, is_raw_expression
from .types import (
    ColumnSchema,
    FieldKindHint,
    is_unsearchable_type,
    map_type_to_field_kind,
    normalize_type,
)

__all__ = [
    "ColumnSchema",
    "FieldKindHint",
    "IdentifierQuoter",
    "SchemaIntrospector",
    "dialect_family",
    "is_raw_expression",
    "is_unsearchable_type",
    "map_sqlalchemy_to_sqlglot",
    "map_type_to_field_kind",
    "normalize_type",
]
