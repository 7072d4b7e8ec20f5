"""Dialect name mapping.

SQLAlchemy reports dialect names such as ``postgresql`` or ``mariadb``. The
rest of the package only needs to know which family a dialect belongs to
(for quoting and introspection) and which sqlglot dialect parses it.
"""

from __future__ import annotations

from typing import Literal

DialectFamily = Literal["mysql", "postgres", "sqlite", "generic"]

SQLALCHEMY_TO_FAMILY: dict[str, DialectFamily] = {
    "mysql": "mysql",
    "mariadb": "mysql",
    "postgresql": "postgres",
    "postgres": "postgres",
    "pgsql": "postgres",
    "sqlite": "sqlite",
}

SQLALCHEMY_TO_SQLGLOT: dict[str, str] = {
    "postgresql": "postgres",
    "postgres": "postgres",
    "pgsql": "postgres",
    "mysql": "mysql",
    "mariadb": "mysql",
    "sqlite": "sqlite",
    "mssql": "tsql",
    "sqlserver": "tsql",
    "oracle": "oracle",
    "snowflake": "snowflake",
    "bigquery": "bigquery",
}


def dialect_family(sa_dialect_name: str | None) -> DialectFamily:
    """Map a SQLAlchemy dialect name to its family, ``generic`` when unknown."""
    if not sa_dialect_name:
        return "generic"
    return SQLALCHEMY_TO_FAMILY.get(sa_dialect_name.lower(), "generic")


def map_sqlalchemy_to_sqlglot(sa_dialect_name: str | None) -> str | None:
    """Map a SQLAlchemy dialect name to a sqlglot dialect.

    Returns None (sqlglot's generic dialect) when unknown.
    """
    if not sa_dialect_name:
        return None
    return SQLALCHEMY_TO_SQLGLOT.get(sa_dialect_name.lower())
