from __future__ import annotations

from contextlib import nullcontext
from types import SimpleNamespace
from typing import Any

import pytest
import sqlalchemy as sa

from sqlgrid.constants import FieldKind
from sqlgrid.schema import IdentifierQuoter, SchemaIntrospector
from sqlgrid.schema.dialects import dialect_family, map_sqlalchemy_to_sqlglot
from sqlgrid.schema.quoting import is_raw_expression
from sqlgrid.schema.types import is_unsearchable_type, map_type_to_field_kind, normalize_type


@pytest.mark.parametrize(
    ("raw_type", "expected"),
    [
        ("tinyint(1)", FieldKind.BOOLEAN),
        ("TINYINT(1) UNSIGNED", FieldKind.BOOLEAN),
        ("bit(1)", FieldKind.BOOLEAN),
        ("boolean", FieldKind.BOOLEAN),
        ("json", FieldKind.JSON),
        ("jsonb", FieldKind.JSON),
        ("longtext", FieldKind.TEXTAREA),
        ("TEXT", FieldKind.TEXTAREA),
        ("timestamp without time zone", FieldKind.DATETIME),
        ("datetime", FieldKind.DATETIME),
        ("date", FieldKind.DATE),
        ("time", FieldKind.TIME),
        ("int(11)", FieldKind.NUMBER),
        ("decimal(10,2)", FieldKind.NUMBER),
    ],
)
def test_map_type_to_field_kind(raw_type: str, expected: FieldKind) -> None:
    hint = map_type_to_field_kind(raw_type)
    assert hint is not None
    assert hint.kind is expected


@pytest.mark.parametrize("raw_type", ["character varying", "varchar(255)", "uuid", "", None])
def test_unmapped_types_default_to_text(raw_type: str | None) -> None:
    assert map_type_to_field_kind(raw_type) is None


def test_number_step_hint() -> None:
    assert map_type_to_field_kind("decimal(10,2)").step == "any"  # type: ignore[union-attr]
    assert map_type_to_field_kind("bigint unsigned").step == "1"  # type: ignore[union-attr]


def test_normalize_type() -> None:
    assert normalize_type("DECIMAL(10, 2) UNSIGNED ZEROFILL") == "decimal"
    assert normalize_type("character  varying(255)") == "character varying"


def test_unsearchable_types() -> None:
    assert is_unsearchable_type("longblob")
    assert is_unsearchable_type("jsonb")
    assert is_unsearchable_type("geometry")
    assert is_unsearchable_type("varbinary")
    assert not is_unsearchable_type("varchar")
    assert not is_unsearchable_type("")


def test_quoting_per_dialect() -> None:
    assert IdentifierQuoter("mysql").quote("users") == "`users`"
    assert IdentifierQuoter("mariadb").quote("users") == "`users`"
    assert IdentifierQuoter("postgresql").quote("users") == '"users"'
    assert IdentifierQuoter("sqlite").quote("users") == '"users"'
    assert IdentifierQuoter("mssql").quote("users") == "`users`"


def test_quoting_passthrough_and_escaping() -> None:
    q = IdentifierQuoter("postgresql")
    assert q.quote("*") == "*"
    assert q.quote("") == ""
    assert q.quote('"already"') == '"already"'
    assert q.quote("COUNT(id)") == "COUNT(id)"
    assert q.quote('we"ird') == '"we""ird"'
    assert q.quote_qualified("main.email") == '"main"."email"'
    assert q.quote_qualified("main.*") == '"main".*'


def test_is_raw_expression() -> None:
    assert is_raw_expression("FIELD(status, 'a')")
    assert is_raw_expression("a + b")
    assert not is_raw_expression("alias.column")


def test_dialect_mapping() -> None:
    assert dialect_family("postgresql") == "postgres"
    assert dialect_family("mariadb") == "mysql"
    assert dialect_family("oracle") == "generic"
    assert dialect_family(None) == "generic"
    assert map_sqlalchemy_to_sqlglot("postgresql") == "postgres"
    assert map_sqlalchemy_to_sqlglot("unknown") is None


def test_introspector_reads_sqlite_columns(engine: sa.Engine) -> None:
    intro = SchemaIntrospector(engine)
    schema = intro.get_schema("users")
    assert list(schema) == ["id", "email", "active", "role_id", "score", "tag_ids", "payload"]
    assert schema["score"].normalized_type == "decimal"
    assert intro.field_kind("users", "active").kind is FieldKind.BOOLEAN  # type: ignore[union-attr]
    assert intro.field_kind("users", "email") is None
    assert intro.field_kind("users", "missing") is None
    assert intro.has_column("users", "email")
    assert not intro.has_column("users", "nope")


def test_introspector_caches_per_instance(engine: sa.Engine) -> None:
    intro = SchemaIntrospector(engine)
    first = intro.get_schema("roles")
    with engine.begin() as conn:
        conn.execute(sa.text("ALTER TABLE roles ADD COLUMN extra TEXT"))
    assert intro.get_schema("roles") is first
    assert "extra" in SchemaIntrospector(engine).column_names("roles")


def test_introspector_degrades_to_empty_schema(engine: sa.Engine) -> None:
    intro = SchemaIntrospector(engine)
    assert intro.get_schema("no_such_table") == {}
    assert intro.get_schema("bad name; DROP") == {}


def test_introspector_describes_custom_query(engine: sa.Engine) -> None:
    intro = SchemaIntrospector(engine)
    described = intro.describe_query("SELECT id, email AS mail FROM users")
    assert list(described) == ["id", "mail"]
    assert intro.describe_query("SELECT broken FROM nowhere") == {}


def test_introspector_unique_columns(engine: sa.Engine) -> None:
    intro = SchemaIntrospector(engine)
    assert intro.unique_columns("posts") == ["slug"]
    assert intro.unique_columns("users") == []


class _FakeResult:
    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows

    def mappings(self) -> list[dict[str, Any]]:
        return self._rows


class _FakeConnection:
    """Answers metadata queries by statement prefix and records what ran."""

    def __init__(self, answers: dict[str, list[dict[str, Any]]]) -> None:
        self.answers = answers
        self.executed: list[tuple[str, Any]] = []

    def execute(self, statement: Any, params: Any = None) -> _FakeResult:
        sql = str(statement)
        self.executed.append((sql, params))
        for prefix, rows in self.answers.items():
            if sql.startswith(prefix):
                return _FakeResult(rows)
        msg = f"unexpected statement: {sql}"
        raise AssertionError(msg)


def _fake_introspector(
    dialect: str, answers: dict[str, list[dict[str, Any]]]
) -> tuple[SchemaIntrospector, _FakeConnection]:
    conn = _FakeConnection(answers)
    engine = SimpleNamespace(
        dialect=SimpleNamespace(name=dialect), connect=lambda: nullcontext(conn)
    )
    return SchemaIntrospector(engine), conn  # type: ignore[arg-type]


def test_mysql_columns_from_show_full_columns() -> None:
    intro, conn = _fake_introspector(
        "mysql",
        {
            "SHOW FULL COLUMNS": [
                {"Field": "id", "Type": "int(10) unsigned"},
                {"Field": "active", "Type": "tinyint(1)"},
                {"Field": "title", "Type": "varchar(200)"},
            ]
        },
    )
    schema = intro.get_schema("posts")

    assert conn.executed[0][0] == "SHOW FULL COLUMNS FROM `posts`"
    assert list(schema) == ["id", "active", "title"]
    assert schema["id"].raw_type == "int(10) unsigned"
    assert schema["id"].normalized_type == "int"
    assert intro.field_kind("posts", "active").kind is FieldKind.BOOLEAN  # type: ignore[union-attr]


def test_postgres_columns_use_udt_name_for_custom_types() -> None:
    intro, conn = _fake_introspector(
        "postgresql",
        {
            "SELECT column_name": [
                {"column_name": "id", "data_type": "integer", "udt_name": "int4"},
                {"column_name": "mood", "data_type": "USER-DEFINED", "udt_name": "mood_enum"},
                {"column_name": "tags", "data_type": "ARRAY", "udt_name": "_text"},
                {"column_name": "title", "data_type": "character varying", "udt_name": "varchar"},
            ]
        },
    )
    schema = intro.get_schema("posts")

    sql, params = conn.executed[0]
    assert "information_schema.columns" in sql
    assert "current_schema()" in sql
    assert params == {"table": "posts"}
    assert [(c.name, c.raw_type) for c in schema.values()] == [
        ("id", "integer"),
        ("mood", "mood_enum"),
        ("tags", "_text"),
        ("title", "character varying"),
    ]
    assert intro.field_kind("posts", "title") is None


def test_mysql_unique_columns_from_show_index() -> None:
    intro, conn = _fake_introspector(
        "mysql",
        {
            "SHOW INDEX": [
                {"Key_name": "PRIMARY", "Non_unique": 0, "Column_name": "id"},
                {"Key_name": "ux_slug", "Non_unique": 0, "Column_name": "slug"},
                {"Key_name": "ux_pair", "Non_unique": 0, "Column_name": "a"},
                {"Key_name": "ux_pair", "Non_unique": 0, "Column_name": "b"},
                {"Key_name": "ix_x", "Non_unique": 1, "Column_name": "x"},
            ]
        },
    )

    assert intro.unique_columns("posts") == ["slug"]
    assert conn.executed[0][0] == "SHOW INDEX FROM `posts`"
    assert intro.unique_columns("posts") == ["slug"]
    assert len(conn.executed) == 1
