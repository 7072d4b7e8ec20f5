"""Exception hierarchy for sqlgrid.

Every error raised by the library derives from ``GridError`` so callers can
catch the whole family at a transport boundary while still telling the
categories apart:

- Configuration errors: rejected while a grid is being built
- Schema errors: unknown tables/columns during introspection or mutation
- Query execution errors: a compiled statement failed to prepare or execute
- Validation errors: a write was refused with per-field messages
- Conflict errors: a duplicate-key violation that could not be resolved
"""

from __future__ import annotations


class GridError(Exception):
    """Base exception for all sqlgrid operations."""


class ConfigurationError(GridError):
    """Raised when a grid definition is invalid.

    Raised synchronously by the builder (or the payload decoder) before any
    SQL is produced, for example when:
    - A table or column name is not a plain identifier
    - An operator, summary kind or edit mode is unsupported
    - An ``IN`` condition receives an empty collection
    - A custom base query is not a single SELECT statement
    """


class SchemaError(GridError):
    """Raised when a table or column is unknown to the live schema."""


class RecordNotFoundError(SchemaError):
    """Raised when a primary key does not match any row."""


class QueryExecutionError(GridError):
    """Raised when a compiled statement fails at the database.

    Attributes:
        operation: Short name of the operation that issued the statement
        driver_message: Message reported by the DBAPI driver, when available
    """

    def __init__(self, operation: str, message: str, *, driver_message: str | None = None) -> None:
        self.operation = operation
        self.driver_message = driver_message
        detail = f"{operation}: {message}"
        if driver_message:
            detail = f"{detail} ({driver_message})"
        super().__init__(detail)


class PrepareFailedError(QueryExecutionError):
    """The statement could not be compiled or prepared by the driver."""


class ExecuteFailedError(QueryExecutionError):
    """The statement was accepted but failed while executing."""


class ConflictError(QueryExecutionError):
    """A duplicate-key violation survived the automatic retry."""


class ValidationError(GridError):
    """Raised when one or more fields fail validation on a write.

    Attributes:
        field_errors: Mapping of field name to a human readable message
    """

    def __init__(self, field_errors: dict[str, str], message: str = "Validation failed") -> None:
        self.field_errors = dict(field_errors)
        super().__init__(message)


__all__ = [
    "ConfigurationError",
    "ConflictError",
    "ExecuteFailedError",
    "GridError",
    "PrepareFailedError",
    "QueryExecutionError",
    "RecordNotFoundError",
    "SchemaError",
    "ValidationError",
]
