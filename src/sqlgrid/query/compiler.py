"""Compile a ``GridConfig`` into parameterized SELECT, COUNT and aggregate SQL.

The compiled text depends only on the config, the request parameters and
the schema snapshot held by the introspector, so the same inputs always
yield byte-identical SQL. Every condition value is bound to a named
placeholder (``:w_<n>``, ``:w_<n>_<i>`` for list operators, ``:s_0`` for the
search term) except for columns the config marks as ``no_quotes``.

Classes:
- CompiledQuery: SQL text with its bound parameters
- QueryCompiler: Statement builder for one schema introspector
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlgrid.constants import LIST_OPERATORS, NULL_OPERATORS, Constants
from sqlgrid.grid.config import GridConfig, JoinSpec, RawCondition, SummarySpec, WhereCondition
from sqlgrid.schema.introspector import SchemaIntrospector
from sqlgrid.schema.quoting import IdentifierQuoter, is_raw_expression
from sqlgrid.schema.types import ColumnSchema

from .visibility import (
    normalize_column_name,
    resolve_searchable_columns,
    resolve_sortable,
    resolve_visible_columns,
    split_join_column,
)

_SEP = Constants.JOIN_COLUMN_SEPARATOR


@dataclass(frozen=True)
class CompiledQuery:
    """SQL text plus the parameters bound to its placeholders."""

    sql: str
    params: dict[str, Any] = field(default_factory=dict)


class QueryCompiler:
    """Build statements for grids over the database seen by ``introspector``.

    Attributes:
        introspector: Schema source used for join column listing and types
        quoter: Identifier quoter of the same dialect
    """

    def __init__(
        self, introspector: SchemaIntrospector, quoter: IdentifierQuoter | None = None
    ) -> None:
        self.introspector = introspector
        self.quoter = quoter or introspector.quoter

    # ---- column discovery --------------------------------------------------
    def base_schema(self, config: GridConfig) -> dict[str, ColumnSchema]:
        if config.base_query:
            return self.introspector.describe_query(config.base_query)
        return self.introspector.get_schema(config.table)

    def join_columns(self, config: GridConfig) -> list[tuple[JoinSpec, ColumnSchema]]:
        out: list[tuple[JoinSpec, ColumnSchema]] = []
        for join in config.joins:
            for column in self.introspector.get_schema(join.target_table).values():
                out.append((join, column))
        return out

    def display_columns(self, config: GridConfig) -> list[str]:
        """Every display column in select order: base, joined, subselects."""
        names = list(self.base_schema(config))
        names.extend(f"{join.alias}{_SEP}{col.name}" for join, col in self.join_columns(config))
        names.extend(sub.alias for sub in config.subselects)
        return list(dict.fromkeys(names))

    def column_types(self, config: GridConfig) -> dict[str, str]:
        types = {name: col.normalized_type for name, col in self.base_schema(config).items()}
        for join, col in self.join_columns(config):
            types[f"{join.alias}{_SEP}{col.name}"] = col.normalized_type
        return types

    def visible_columns(self, config: GridConfig) -> list[str]:
        return resolve_visible_columns(
            self.display_columns(config), config.columns, reverse=config.reverse_columns
        )

    def searchable_columns(self, config: GridConfig) -> dict[str, str]:
        """``{display: sql_expression}`` for columns the search term may match."""
        if config.search_columns:
            candidates = list(config.search_columns)
        else:
            candidates = self.visible_columns(config)
        return resolve_searchable_columns(
            candidates,
            self.column_types(config),
            join_aliases=config.join_aliases,
            subselect_aliases=config.subselect_aliases,
            quoter=self.quoter,
        )

    # ---- statements --------------------------------------------------------
    def compile_select(
        self,
        config: GridConfig,
        limit: int | None = None,
        offset: int | None = None,
        search_term: str | None = None,
        search_column: str | None = None,
    ) -> CompiledQuery:
        q = self.quoter
        select_parts = [f"{q.quote(Constants.MAIN_ALIAS)}.*"]
        select_parts.extend(f"({sub.sql}) AS {q.quote(sub.alias)}" for sub in config.subselects)
        for join, col in self.join_columns(config):
            source = q.quote_qualified(f"{join.alias}.{col.name}")
            select_parts.append(f"{source} AS {q.quote(f'{join.alias}{_SEP}{col.name}')}")

        where_sql, params = self._where_clause(config, search_term, search_column)
        sql = (
            f"SELECT {', '.join(select_parts)} FROM {self._from_clause(config)}"
            f"{self._join_clauses(config)}{where_sql}{self._order_clause(config)}"
        )
        if limit is not None and limit > 0:
            sql += f" LIMIT {int(limit)}"
            if offset:
                sql += f" OFFSET {max(0, int(offset))}"
        return CompiledQuery(sql, params)

    def compile_count(
        self,
        config: GridConfig,
        search_term: str | None = None,
        search_column: str | None = None,
    ) -> CompiledQuery:
        """Row count for pagination; DISTINCT primary key when joins may fan out."""
        if config.joins:
            counted = f"COUNT(DISTINCT {self._column_sql(config.primary_key, config)})"
        else:
            counted = "COUNT(*)"
        where_sql, params = self._where_clause(config, search_term, search_column)
        sql = (
            f"SELECT {counted} AS {self.quoter.quote(Constants.COUNT_ALIAS)} "
            f"FROM {self._from_clause(config)}{self._join_clauses(config)}{where_sql}"
        )
        return CompiledQuery(sql, params)

    def compile_aggregate(
        self,
        config: GridConfig,
        spec: SummarySpec,
        search_term: str | None = None,
        search_column: str | None = None,
    ) -> CompiledQuery:
        expr = "*" if spec.column == "*" else self._column_sql(spec.column, config)
        where_sql, params = self._where_clause(config, search_term, search_column)
        sql = (
            f"SELECT {spec.kind.value.upper()}({expr}) AS "
            f"{self.quoter.quote(Constants.AGGREGATE_ALIAS)} "
            f"FROM {self._from_clause(config)}{self._join_clauses(config)}{where_sql}"
        )
        return CompiledQuery(sql, params)

    # ---- clauses -----------------------------------------------------------
    def _column_sql(self, column: str, config: GridConfig) -> str:
        """Qualified SQL for a column reference, defaulting to the main table."""
        if "." in column:
            return self.quoter.quote_qualified(column)
        joined = split_join_column(column, config.join_aliases)
        if joined is not None:
            return self.quoter.quote_qualified(f"{joined[0]}.{joined[1]}")
        return self.quoter.quote_qualified(f"{Constants.MAIN_ALIAS}.{column}")

    def _from_clause(self, config: GridConfig) -> str:
        main = self.quoter.quote(Constants.MAIN_ALIAS)
        if config.base_query:
            return f"({config.base_query}) AS {main}"
        return f"{self.quoter.quote(config.table)} AS {main}"

    def _join_clauses(self, config: GridConfig) -> str:
        q = self.quoter
        parts: list[str] = []
        for join in config.joins:
            source = (
                q.quote_qualified(join.source_field)
                if "." in join.source_field
                else q.quote_qualified(f"{Constants.MAIN_ALIAS}.{join.source_field}")
            )
            target = q.quote_qualified(f"{join.alias}.{join.target_field}")
            parts.append(
                f" LEFT JOIN {q.quote(join.target_table)} AS {q.quote(join.alias)}"
                f" ON {source} = {target}"
            )
        return "".join(parts)

    def _condition_sql(
        self,
        cond: WhereCondition,
        index: int,
        params: dict[str, Any],
        config: GridConfig,
    ) -> str:
        if isinstance(cond, RawCondition):
            return f"({cond.sql})"

        expr = self._column_sql(cond.column, config)
        op = cond.operator
        if op in NULL_OPERATORS:
            return f"{expr} {op}"

        verbatim = (
            cond.column in config.no_quotes
            or normalize_column_name(cond.column) in config.no_quotes
        )
        if op in LIST_OPERATORS:
            if verbatim:
                items = ", ".join(str(v) for v in cond.value)
            else:
                names: list[str] = []
                for i, value in enumerate(cond.value):
                    name = f"w_{index}_{i}"
                    params[name] = value
                    names.append(f":{name}")
                items = ", ".join(names)
            return f"{expr} {op} ({items})"

        if verbatim:
            return f"{expr} {op} {cond.value}"
        name = f"w_{index}"
        params[name] = cond.value
        return f"{expr} {op} :{name}"

    def _search_clause(
        self,
        config: GridConfig,
        search_term: str | None,
        search_column: str | None,
        params: dict[str, Any],
    ) -> str | None:
        term = (search_term or "").strip()
        if not term:
            return None
        searchable = self.searchable_columns(config)
        if not searchable:
            return None

        params["s_0"] = f"%{term}%"
        wrap = self.introspector.family == "postgres"

        def like(expr: str) -> str:
            target = f"CAST({expr} AS TEXT)" if wrap else expr
            return f"{target} LIKE :s_0"

        column = normalize_column_name(search_column) if search_column else None
        if column and column in searchable:
            return like(searchable[column])
        return "(" + " OR ".join(like(expr) for expr in searchable.values()) + ")"

    def _where_clause(
        self,
        config: GridConfig,
        search_term: str | None,
        search_column: str | None,
    ) -> tuple[str, dict[str, Any]]:
        params: dict[str, Any] = {}
        parts: list[str] = []
        for index, cond in enumerate(config.where):
            fragment = self._condition_sql(cond, index, params, config)
            parts.append(f"{cond.glue} {fragment}" if parts else fragment)

        clauses: list[str] = []
        if parts:
            clauses.append(" ".join(parts))
        search = self._search_clause(config, search_term, search_column, params)
        if search:
            if clauses and any(c.glue == "OR" for c in config.where[1:]):
                clauses[0] = f"({clauses[0]})"
            clauses.append(search)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def _order_clause(self, config: GridConfig) -> str:
        parts: list[str] = []
        subselects = config.subselect_aliases
        for spec in config.order_by:
            if not resolve_sortable(spec.column, config.sort_disabled):
                continue
            if is_raw_expression(spec.column):
                expr = spec.column
            elif spec.column in subselects:
                expr = self.quoter.quote(spec.column)
            else:
                expr = self._column_sql(spec.column, config)
            parts.append(f"{expr} {spec.direction}")
        return f" ORDER BY {', '.join(parts)}" if parts else ""
