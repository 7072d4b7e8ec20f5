from __future__ import annotations

from typing import Any

import sqlalchemy as sa

from sqlgrid.constants import SummaryKind
from sqlgrid.grid import GridBuilder, SummarySpec
from sqlgrid.query import QueryCompiler, fetch_rows, fetch_scalar
from sqlgrid.schema import ColumnSchema, IdentifierQuoter, SchemaIntrospector


def _plain(sql: str) -> str:
    return sql.replace('"', "").replace("`", "")


def _compiler(engine: sa.Engine) -> QueryCompiler:
    return QueryCompiler(SchemaIntrospector(engine))


class _StaticSchema:
    """Schema source with fixed columns for dialects not available in tests."""

    def __init__(self, dialect: str, family: str, tables: dict[str, list[tuple[str, str]]]):
        self.quoter = IdentifierQuoter(dialect)
        self.family = family
        self._tables = tables

    def get_schema(self, table: str) -> dict[str, ColumnSchema]:
        return {n: ColumnSchema.from_raw(n, t) for n, t in self._tables.get(table, [])}

    def describe_query(self, sql: str) -> dict[str, ColumnSchema]:
        return {}


def test_users_scenario(engine: sa.Engine) -> None:
    config = GridBuilder("users").order_by("email", "asc").where("active", True).build()
    query = _compiler(engine).compile_select(config, limit=10, offset=0)

    assert "WHERE main.active = :w_0" in _plain(query.sql)
    assert _plain(query.sql).endswith("ORDER BY main.email ASC LIMIT 10")
    assert query.params == {"w_0": True}
    assert '"main"."email"' in query.sql

    with engine.connect() as conn:
        rows = fetch_rows(conn, query, "test")
    assert [r["email"] for r in rows] == [
        "alice@example.com",
        "bob@example.com",
        "dave@example.org",
    ]


def test_mysql_quoting_uses_backticks() -> None:
    schema = _StaticSchema(
        "mysql", "mysql", {"users": [("id", "int(11)"), ("email", "varchar(255)")]}
    )
    config = GridBuilder("users").where("id", 3).order_by("email").build()
    sql = QueryCompiler(schema).compile_select(config, limit=5).sql  # type: ignore[arg-type]
    assert sql == (
        "SELECT `main`.* FROM `users` AS `main` WHERE `main`.`id` = :w_0 "
        "ORDER BY `main`.`email` ASC LIMIT 5"
    )


def test_join_scenario(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users").join("role_id", "roles", "id").columns(["email", "j0__name"]).build()
    )
    compiler = _compiler(engine)

    assert compiler.visible_columns(config) == ["email", "j0__name"]
    assert compiler.display_columns(config)[-3:] == ["j0__id", "j0__name", "j0__code"]

    query = compiler.compile_select(config)
    assert 'LEFT JOIN "roles" AS "j0" ON "main"."role_id" = "j0"."id"' in query.sql
    assert '"j0"."name" AS "j0__name"' in query.sql
    with engine.connect() as conn:
        rows = {r["email"]: r["j0__name"] for r in fetch_rows(conn, query, "test")}
    assert rows["bob@example.com"] == "Editor"
    assert rows["dave@example.org"] is None


def test_count_is_distinct_only_with_joins(engine: sa.Engine) -> None:
    compiler = _compiler(engine)
    plain = GridBuilder("users").build()
    joined = GridBuilder("users").join("role_id", "roles", "id").build()

    assert compiler.compile_count(plain).sql == 'SELECT COUNT(*) AS "total" FROM "users" AS "main"'
    assert 'COUNT(DISTINCT "main"."id") AS "total"' in compiler.compile_count(joined).sql
    with engine.connect() as conn:
        assert fetch_scalar(conn, compiler.compile_count(joined), "test") == 4


def test_bound_values_never_interpolated(engine: sa.Engine) -> None:
    sentinel = "zz' OR 1=1 --"
    config = (
        GridBuilder("users")
        .where("email", sentinel)
        .or_where("email", f"%{sentinel}%", "LIKE")
        .where("tag_ids", [sentinel, "x"], "NOT IN")
        .build()
    )
    compiler = _compiler(engine)
    for query in (
        compiler.compile_select(config, 10, 0, sentinel),
        compiler.compile_count(config, sentinel),
        compiler.compile_aggregate(config, SummarySpec("score", SummaryKind.SUM), sentinel),
    ):
        assert sentinel not in query.sql
        assert sentinel in query.params.values()
    select = compiler.compile_select(config)
    assert '"main"."tag_ids" NOT IN (:w_2_0, :w_2_1)' in select.sql
    assert select.params["w_2_0"] == sentinel


def test_no_quotes_columns_are_interpolated(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users")
        .no_quotes(["role_id", "id"])
        .where("role_id", "1")
        .where("id", [1, 3], "IN")
        .build()
    )
    query = _compiler(engine).compile_select(config)
    assert 'WHERE "main"."role_id" = 1 AND "main"."id" IN (1, 3)' in query.sql
    assert query.params == {}


def test_raw_and_null_conditions(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users")
        .where("role_id", operator="IS NOT NULL")
        .where_raw("score > 6", glue="AND")
        .build()
    )
    query = _compiler(engine).compile_select(config)
    assert 'WHERE "main"."role_id" IS NOT NULL AND (score > 6)' in query.sql
    with engine.connect() as conn:
        assert len(fetch_rows(conn, query, "test")) == 2


def test_search_across_searchable_columns(engine: sa.Engine) -> None:
    compiler = _compiler(engine)
    config = GridBuilder("users").build()

    query = compiler.compile_select(config, search_term="  bob ")
    assert query.params == {"s_0": "%bob%"}
    assert '"main"."email" LIKE :s_0' in query.sql
    assert '"main"."payload" LIKE' not in query.sql
    assert " OR " in query.sql

    single = compiler.compile_select(config, search_term="bob", search_column="email")
    assert 'WHERE "main"."email" LIKE :s_0' in single.sql
    assert " OR " not in single.sql

    fallback = compiler.compile_select(config, search_term="bob", search_column="payload")
    assert " OR " in fallback.sql

    with engine.connect() as conn:
        rows = fetch_rows(conn, query, "test")
    assert [r["id"] for r in rows] == [2]


def test_search_restricted_to_configured_columns(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users")
        .join("role_id", "roles", "id")
        .search_columns(["j0.name"])
        .where("active", True)
        .or_where("score", 5, "<=")
        .build()
    )
    compiler = _compiler(engine)
    assert compiler.searchable_columns(config) == {"j0__name": '"j0"."name"'}

    query = compiler.compile_select(config, search_term="Admin")
    assert (
        'WHERE ("main"."active" = :w_0 OR "main"."score" <= :w_1) AND ("j0"."name" LIKE :s_0)'
        in query.sql
    )
    with engine.connect() as conn:
        assert sorted(r["id"] for r in fetch_rows(conn, query, "test")) == [1, 3]


def test_postgres_search_casts_to_text() -> None:
    schema = _StaticSchema(
        "postgresql", "postgres", {"users": [("id", "integer"), ("email", "character varying")]}
    )
    query = QueryCompiler(schema).compile_select(  # type: ignore[arg-type]
        GridBuilder("users").build(), search_term="4"
    )
    assert '(CAST("main"."id" AS TEXT) LIKE :s_0 OR CAST("main"."email" AS TEXT) LIKE :s_0)' in (
        query.sql
    )


def test_limit_and_offset(engine: sa.Engine) -> None:
    compiler = _compiler(engine)
    config = GridBuilder("users").order_by("id").build()
    assert compiler.compile_select(config, limit=2, offset=2).sql.endswith("LIMIT 2 OFFSET 2")
    assert compiler.compile_select(config, limit=2, offset=0).sql.endswith("LIMIT 2")
    assert "LIMIT" not in compiler.compile_select(config, limit=0, offset=10).sql


def test_sort_disabled_and_raw_order(engine: sa.Engine) -> None:
    compiler = _compiler(engine)
    disabled = GridBuilder("users").order_by("email").disable_sort("email").build()
    assert "ORDER BY" not in compiler.compile_select(disabled).sql

    raw = GridBuilder("users").order_by("LENGTH(email)", "desc").order_by("id").build()
    assert compiler.compile_select(raw).sql.endswith('ORDER BY LENGTH(email) DESC, "main"."id" ASC')


def test_subselect_columns(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users")
        .subselect("role_total", "SELECT COUNT(*) FROM roles")
        .order_by("role_total", "desc")
        .build()
    )
    compiler = _compiler(engine)
    query = compiler.compile_select(config, search_term="x")

    assert '(SELECT COUNT(*) FROM roles) AS "role_total"' in query.sql
    assert query.sql.endswith('ORDER BY "role_total" DESC')
    assert "role_total" in compiler.display_columns(config)
    assert "role_total" not in compiler.searchable_columns(config)
    with engine.connect() as conn:
        rows = fetch_rows(conn, compiler.compile_select(config), "test")
    assert rows[0]["role_total"] == 2


def test_custom_base_query(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users")
        .query("SELECT id, email FROM users WHERE active = 1")
        .order_by("id", "desc")
        .build()
    )
    compiler = _compiler(engine)
    query = compiler.compile_select(config, limit=2)

    assert 'FROM (SELECT id, email FROM users WHERE active = 1) AS "main"' in query.sql
    assert compiler.display_columns(config) == ["id", "email"]
    with engine.connect() as conn:
        assert [r["id"] for r in fetch_rows(conn, query, "test")] == [4, 2]
        assert fetch_scalar(conn, compiler.compile_count(config), "test") == 3


def test_aggregate_statement(engine: sa.Engine) -> None:
    compiler = _compiler(engine)
    config = GridBuilder("users").where("active", True).build()

    total = compiler.compile_aggregate(config, SummarySpec("score", SummaryKind.MAX))
    assert total.sql == (
        'SELECT MAX("main"."score") AS "aggregate" FROM "users" AS "main" '
        'WHERE "main"."active" = :w_0'
    )
    count = compiler.compile_aggregate(config, SummarySpec("*", SummaryKind.COUNT))
    with engine.connect() as conn:
        assert fetch_scalar(conn, total, "test") == 20.25
        assert fetch_scalar(conn, count, "test") == 3


def test_compilation_is_deterministic(engine: sa.Engine) -> None:
    config = GridBuilder("users").join("role_id", "roles", "id").where("id", [1, 2], "IN").build()
    params: dict[str, Any] = {"limit": 10, "offset": 10, "search_term": "a"}
    first = _compiler(engine).compile_select(config, **params)
    second = _compiler(engine).compile_select(config, **params)
    assert first == second
