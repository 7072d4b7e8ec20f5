"""Statement execution with typed failures.

SQLAlchemy errors are translated at this seam so callers can tell a
statement the driver refused to prepare from one that failed while running.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Connection
from sqlalchemy.exc import (
    ArgumentError,
    CompileError,
    DBAPIError,
    ProgrammingError,
    SQLAlchemyError,
    StatementError,
)

from sqlgrid.exceptions import ExecuteFailedError, PrepareFailedError, QueryExecutionError

from .compiler import CompiledQuery

_logger = get_logger(__name__)


def driver_message(exc: BaseException) -> str:
    """Return the DBAPI driver's message when one is attached."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


def classify_error(exc: SQLAlchemyError, operation: str) -> QueryExecutionError:
    """Wrap ``exc`` as a prepare or execute failure for ``operation``."""
    message = driver_message(exc)
    not_prepared = isinstance(exc, ProgrammingError | ArgumentError | CompileError) or (
        isinstance(exc, StatementError) and not isinstance(exc, DBAPIError)
    )
    if not_prepared:
        return PrepareFailedError(
            operation, "statement could not be prepared", driver_message=message
        )
    return ExecuteFailedError(operation, "statement failed", driver_message=message)


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        _logger.warning("%s failed: %s", operation, exc)
        raise classify_error(exc, operation) from exc


def fetch_rows(conn: Connection, query: CompiledQuery, operation: str) -> list[dict[str, Any]]:
    _logger.debug("%s SQL: %s", operation, query.sql)
    with translate_errors(operation):
        result = conn.execute(sa.text(query.sql), query.params)
        return [dict(row) for row in result.mappings()]


def fetch_scalar(conn: Connection, query: CompiledQuery, operation: str) -> Any:
    _logger.debug("%s SQL: %s", operation, query.sql)
    with translate_errors(operation):
        return conn.execute(sa.text(query.sql), query.params).scalar()
