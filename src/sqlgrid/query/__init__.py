"""SQL compilation for grids: statements, visibility and execution helpers."""

from __future__ import annotations

from .compiler import CompiledQuery, QueryCompiler
from .execution import classify_error, fetch_rows, fetch_scalar, translate_errors
from .visibility import (
    normalize_column_name,
    resolve_searchable_columns,
    resolve_sortable,
    resolve_visible_columns,
)

__all__ = [
    "CompiledQuery",
    "QueryCompiler",
    "classify_error",
    "fetch_rows",
    "fetch_scalar",
    "normalize_column_name",
    "resolve_searchable_columns",
    "resolve_sortable",
    "resolve_visible_columns",
    "translate_errors",
]
