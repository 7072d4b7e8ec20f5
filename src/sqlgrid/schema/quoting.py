"""Dialect-aware identifier quoting."""

from __future__ import annotations

import re

import sqlalchemy as sa

from .dialects import dialect_family

_RAW_EXPRESSION = re.compile(r"[\s()]")
_QUOTE_PAIRS: dict[str, str] = {'"': '"', "`": "`", "[": "]"}


def is_raw_expression(expr: str) -> bool:
    """Return True when ``expr`` is a free-form SQL fragment rather than a name."""
    return bool(_RAW_EXPRESSION.search(expr.strip()))


def _is_quoted(segment: str) -> bool:
    if len(segment) < 2:
        return False
    closing = _QUOTE_PAIRS.get(segment[0])
    return closing is not None and segment.endswith(closing)


class IdentifierQuoter:
    """Quote table and column identifiers for one dialect.

    PostgreSQL and SQLite use double quotes; MySQL and every other dialect
    use backticks. Expressions containing whitespace or parentheses are
    passed through untouched; the caller is responsible for them.
    """

    def __init__(self, dialect: str | None = "mysql") -> None:
        self.dialect = dialect or "mysql"
        family = dialect_family(self.dialect)
        self.quote_char = '"' if family in {"postgres", "sqlite"} else "`"

    @classmethod
    def for_engine(cls, engine: sa.Engine) -> IdentifierQuoter:
        return cls(engine.dialect.name)

    def quote(self, identifier: str) -> str:
        """Quote a single identifier segment."""
        ident = identifier.strip()
        if not ident or ident == "*" or _is_quoted(ident) or is_raw_expression(ident):
            return ident
        q = self.quote_char
        return f"{q}{ident.replace(q, q * 2)}{q}"

    def quote_qualified(self, expr: str) -> str:
        """Quote a possibly qualified reference such as ``alias.column``."""
        text = expr.strip()
        if is_raw_expression(text):
            return text
        return ".".join(self.quote(part) for part in text.split("."))
