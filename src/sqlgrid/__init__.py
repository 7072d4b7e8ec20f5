"""sqlgrid: declarative grids compiled to parameterized SQL.

A grid is described once with ``GridBuilder`` and served through
``GridService``, which pages, searches, summarizes and edits rows of one
table on MySQL, PostgreSQL, SQLite or any other SQLAlchemy backend.
"""

from __future__ import annotations

from .exceptions import (
    ConfigurationError,
    ConflictError,
    ExecuteFailedError,
    GridError,
    PrepareFailedError,
    QueryExecutionError,
    RecordNotFoundError,
    SchemaError,
    ValidationError,
)
from .grid import GridBuilder, GridConfig, from_payload, to_payload
from .models import BatchResult, PageResult, Pagination, SummaryResult
from .services import ConfigService, GridService, GridSettings

__all__ = [
    "BatchResult",
    "ConfigService",
    "ConfigurationError",
    "ConflictError",
    "ExecuteFailedError",
    "GridBuilder",
    "GridConfig",
    "GridError",
    "GridService",
    "GridSettings",
    "PageResult",
    "Pagination",
    "PrepareFailedError",
    "QueryExecutionError",
    "RecordNotFoundError",
    "SchemaError",
    "SummaryResult",
    "ValidationError",
    "from_payload",
    "to_payload",
]
