"""sqlglot-backed checks for caller-supplied SQL fragments.

Custom base queries and subselect expressions are embedded verbatim in the
compiled statements, so they are parsed once at build time and must be a
single read-only query.
"""

from __future__ import annotations

from functools import lru_cache

import sqlglot
from sqlglot import expressions as sgl_exp
from sqlglot.errors import ParseError

from sqlgrid.exceptions import ConfigurationError
from sqlgrid.schema.dialects import map_sqlalchemy_to_sqlglot


def strip_trailing_semicolon(sql: str) -> str:
    s = sql.strip()
    return s.removesuffix(";").rstrip()


@lru_cache(maxsize=256)
def _cached_parse(sql: str, dialect: str | None) -> tuple[sgl_exp.Expression | None, ...]:
    """Small cache for parse results; grids are rebuilt on every request."""
    return tuple(sqlglot.parse(sql, read=dialect))


def ensure_select_statement(sql: str, dialect: str | None = None) -> str:
    """Validate that ``sql`` is exactly one SELECT (or set operation of SELECTs).

    Args:
        sql: SQL text supplied by the caller
        dialect: SQLAlchemy dialect name used to pick the sqlglot parser

    Returns:
        The SQL with surrounding whitespace and a trailing semicolon removed

    Raises:
        ConfigurationError: If the SQL is empty, unparsable, has several
            statements, or is not a query
    """
    cleaned = strip_trailing_semicolon(sql)
    if not cleaned:
        msg = "SQL fragment must not be empty"
        raise ConfigurationError(msg)

    try:
        statements = [s for s in _cached_parse(cleaned, map_sqlalchemy_to_sqlglot(dialect)) if s]
    except ParseError as exc:
        msg = f"SQL fragment could not be parsed: {exc}"
        raise ConfigurationError(msg) from exc

    if len(statements) != 1:
        msg = "SQL fragment must contain exactly one statement"
        raise ConfigurationError(msg)
    if not isinstance(statements[0], sgl_exp.Query):
        msg = f"Only SELECT queries are permitted, got {type(statements[0]).__name__}"
        raise ConfigurationError(msg)
    return cleaned
