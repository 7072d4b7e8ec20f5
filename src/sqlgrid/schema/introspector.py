"""Live schema introspection.

This module provides the SchemaIntrospector class that fetches column
metadata for a table using a dialect-specific query, normalizes the reported
types and caches the result for the lifetime of the instance. Metadata
failures never propagate: a table whose columns cannot be read is reported
with an empty schema so callers fall back to generic text handling.

Classes:
- SchemaIntrospector: Per-instance cached column metadata and unique indexes
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from sqlgrid.constants import Constants

from .dialects import dialect_family
from .quoting import IdentifierQuoter
from .types import ColumnSchema, FieldKindHint, map_type_to_field_kind

_logger = get_logger(__name__)

_Fetcher = Callable[[Connection, str], list[ColumnSchema]]


class SchemaIntrospector:
    """Fetch and cache column metadata per table.

    The cache is never invalidated; create a new instance to observe schema
    changes. Instances are not synchronized and belong to one grid.

    Attributes:
        engine: SQLAlchemy engine used for metadata queries
        dialect: SQLAlchemy dialect name of the engine
        quoter: Identifier quoter for the same dialect
    """

    def __init__(self, engine: Engine, quoter: IdentifierQuoter | None = None) -> None:
        self.engine = engine
        self.dialect = engine.dialect.name
        self.family = dialect_family(self.dialect)
        self.quoter = quoter or IdentifierQuoter(self.dialect)
        self._cache: dict[str, dict[str, ColumnSchema]] = {}
        self._query_cache: dict[str, dict[str, ColumnSchema]] = {}
        self._unique_cache: dict[str, list[str]] = {}

    # ---- public API --------------------------------------------------------
    def get_schema(self, table: str) -> dict[str, ColumnSchema]:
        """Return ``{column: ColumnSchema}`` for ``table`` in database order."""
        cached = self._cache.get(table)
        if cached is not None:
            return cached

        if not Constants.IDENTIFIER_PATTERN.match(table):
            _logger.warning("Refusing to introspect invalid table name %r", table)
            self._cache[table] = {}
            return self._cache[table]

        columns = self._fetch_columns(table)
        schema = {col.name: col for col in columns}
        if not schema:
            _logger.warning("No column metadata available for table %s", table)
        self._cache[table] = schema
        return schema

    def column_names(self, table: str) -> list[str]:
        return list(self.get_schema(table))

    def has_column(self, table: str, column: str) -> bool:
        return column in self.get_schema(table)

    def field_kind(self, table: str, column: str) -> FieldKindHint | None:
        col = self.get_schema(table).get(column)
        return map_type_to_field_kind(col.raw_type) if col else None

    def describe_query(self, sql: str) -> dict[str, ColumnSchema]:
        """Return result-set metadata of ``SELECT * FROM (sql) AS main``.

        Used when a grid reads from a custom base query instead of a table.
        """
        cached = self._query_cache.get(sql)
        if cached is not None:
            return cached
        main = self.quoter.quote(Constants.MAIN_ALIAS)
        probe = f"SELECT * FROM ({sql}) AS {main} LIMIT 0"
        try:
            with self.engine.connect() as conn:
                columns = self._describe(conn, probe)
        except Exception as e:  # noqa: BLE001 - degrade to empty metadata
            _logger.warning("Cannot describe custom base query: %s", e)
            columns = []
        self._query_cache[sql] = {col.name: col for col in columns}
        return self._query_cache[sql]

    def unique_columns(self, table: str) -> list[str]:
        """Columns covered by a single-column unique index (primary key excluded)."""
        cached = self._unique_cache.get(table)
        if cached is not None:
            return cached
        if not Constants.IDENTIFIER_PATTERN.match(table):
            return []

        try:
            with self.engine.connect() as conn:
                if self.family == "mysql":
                    found = self._mysql_unique_columns(conn, table)
                else:
                    found = self._inspector_unique_columns(conn, table)
        except Exception as e:  # noqa: BLE001 - no unique metadata
            _logger.warning("Cannot read unique indexes for %s: %s", table, e)
            found = []

        self._unique_cache[table] = found
        return found

    # ---- column fetchers ---------------------------------------------------
    def _fetch_columns(self, table: str) -> list[ColumnSchema]:
        fetchers: dict[str, _Fetcher] = {
            "mysql": self._fetch_mysql,
            "postgres": self._fetch_postgres,
            "sqlite": self._fetch_sqlite,
        }
        fetcher = fetchers.get(self.family, self._fetch_inspector)

        columns: list[ColumnSchema] = []
        try:
            with self.engine.connect() as conn:
                columns = fetcher(conn, table)
        except Exception as e:  # noqa: BLE001 - fall back to result metadata
            _logger.warning(
                "Column query failed for %s on %s, using result metadata: %s",
                table,
                self.dialect,
                e,
            )

        if columns:
            return columns

        try:
            with self.engine.connect() as conn:
                probe = f"SELECT * FROM {self.quoter.quote(table)} LIMIT 0"
                return self._describe(conn, probe)
        except Exception as e:  # noqa: BLE001 - empty schema on failure
            _logger.warning("Result metadata fallback failed for %s: %s", table, e)
            return []

    def _fetch_mysql(self, conn: Connection, table: str) -> list[ColumnSchema]:
        result = conn.execute(sa.text(f"SHOW FULL COLUMNS FROM {self.quoter.quote(table)}"))
        return [ColumnSchema.from_raw(str(row["Field"]), row["Type"]) for row in result.mappings()]

    def _fetch_postgres(self, conn: Connection, table: str) -> list[ColumnSchema]:
        sql = sa.text(
            "SELECT column_name, data_type, udt_name FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = :table "
            "ORDER BY ordinal_position"
        )
        out: list[ColumnSchema] = []
        for row in conn.execute(sql, {"table": table}).mappings():
            data_type = row["data_type"] or ""
            if data_type.upper() in {"USER-DEFINED", "ARRAY"} or not data_type:
                data_type = row["udt_name"] or data_type
            out.append(ColumnSchema.from_raw(str(row["column_name"]), data_type))
        return out

    def _fetch_sqlite(self, conn: Connection, table: str) -> list[ColumnSchema]:
        result = conn.execute(sa.text(f"PRAGMA table_info({self.quoter.quote(table)})"))
        return [ColumnSchema.from_raw(str(row["name"]), row["type"]) for row in result.mappings()]

    def _fetch_inspector(self, conn: Connection, table: str) -> list[ColumnSchema]:
        inspector = sa.inspect(conn)
        return [
            ColumnSchema.from_raw(str(col["name"]), str(col["type"]))
            for col in inspector.get_columns(table)
        ]

    def _describe(self, conn: Connection, probe: str) -> list[ColumnSchema]:
        """Read column names and native type hints from an empty result set."""
        result = conn.execute(sa.text(probe))
        names = list(result.keys())
        cursor = getattr(result, "cursor", None)
        description: Any = getattr(cursor, "description", None) or []
        hints: dict[str, str] = {}
        for entry in description:
            type_code = entry[1] if len(entry) > 1 else None
            hints[str(entry[0])] = _type_hint(type_code)
        result.close()
        return [ColumnSchema.from_raw(name, hints.get(name, "")) for name in names]

    # ---- unique indexes ----------------------------------------------------
    def _mysql_unique_columns(self, conn: Connection, table: str) -> list[str]:
        result = conn.execute(sa.text(f"SHOW INDEX FROM {self.quoter.quote(table)}"))
        indexes: dict[str, list[str]] = {}
        for row in result.mappings():
            if str(row["Key_name"]) == "PRIMARY" or int(row["Non_unique"]) != 0:
                continue
            indexes.setdefault(str(row["Key_name"]), []).append(str(row["Column_name"]))
        return _single_columns(indexes.values())

    def _inspector_unique_columns(self, conn: Connection, table: str) -> list[str]:
        inspector = sa.inspect(conn)
        groups: list[list[str]] = []
        for constraint in inspector.get_unique_constraints(table):
            groups.append([c for c in constraint.get("column_names", []) if c])
        for index in inspector.get_indexes(table):
            if index.get("unique"):
                groups.append([c for c in index.get("column_names", []) if c])
        return _single_columns(groups)


def _type_hint(type_code: object) -> str:
    if type_code is None:
        return ""
    if isinstance(type_code, str):
        return type_code
    name = getattr(type_code, "__name__", None)
    return name if isinstance(name, str) else str(type_code)


def _single_columns(groups: Any) -> list[str]:
    out: list[str] = []
    for cols in groups:
        if len(cols) == 1 and cols[0] not in out:
            out.append(cols[0])
    return out
