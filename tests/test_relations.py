from __future__ import annotations

from typing import Any

import sqlalchemy as sa
from sqlalchemy import text

from sqlgrid.grid import GridBuilder
from sqlgrid.relations import RelationResolver, split_multi_value


def _users(engine: sa.Engine) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        result = conn.execute(text("SELECT * FROM users ORDER BY id"))
        return [dict(row) for row in result.mappings()]


def test_single_valued_relation(engine: sa.Engine) -> None:
    config = GridBuilder("users").relation("role_id", "roles", "id", "name, code").build()
    rows = RelationResolver(engine).resolve(_users(engine), config.relations)

    assert [r["role_id"] for r in rows] == ["Admin adm", "Editor edt", "Admin adm", None]
    assert rows[0]["__raw__"]["role_id"] == 1
    assert rows[3]["__raw__"]["role_id"] is None


def test_multi_valued_relation_keeps_segment_count(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users").relation("tag_ids", "tags", "id", "label", multi_valued=True).build()
    )
    original = _users(engine)
    rows = RelationResolver(engine).resolve(_users(engine), config.relations)

    assert [r["tag_ids"] for r in rows] == ["red, green", "blue", None, "green, 9"]
    for before, after in zip(original, rows, strict=True):
        if before["tag_ids"]:
            assert len(after["tag_ids"].split(",")) == len(split_multi_value(before["tag_ids"]))
    assert rows[0]["__raw__"]["tag_ids"] == "1,2"


def test_comma_in_label_does_not_add_segments(engine: sa.Engine) -> None:
    with engine.begin() as conn:
        conn.execute(text("UPDATE tags SET label = 'red, dark' WHERE id = 1"))
    config = (
        GridBuilder("users").relation("tag_ids", "tags", "id", "label", multi_valued=True).build()
    )
    rows = RelationResolver(engine).resolve(_users(engine), config.relations)

    assert rows[0]["tag_ids"] == "red; dark, green"
    assert len(rows[0]["tag_ids"].split(",")) == 2


def test_extra_where_limits_labels(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users")
        .relation("role_id", "roles", "id", "name", extra_where="code = 'adm'")
        .build()
    )
    rows = RelationResolver(engine).resolve(_users(engine), config.relations)
    assert [r["role_id"] for r in rows[:2]] == ["Admin", 2]


def test_failed_lookup_is_skipped(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users")
        .relation("tag_ids", "ghosts", "id", "label")
        .relation("role_id", "roles", "id", "name")
        .build()
    )
    rows = RelationResolver(engine).resolve(_users(engine), config.relations)

    assert rows[0]["tag_ids"] == "1,2"
    assert "tag_ids" not in rows[0]["__raw__"]
    assert rows[0]["role_id"] == "Admin"


def test_no_rows_issue_no_queries(engine: sa.Engine) -> None:
    config = GridBuilder("users").relation("role_id", "ghosts", "id", "label").build()
    assert RelationResolver(engine).resolve([], config.relations) == []


def test_options_are_ordered_and_cached(engine: sa.Engine) -> None:
    config = (
        GridBuilder("users")
        .relation("role_id", "roles", "id", "name", order_by="name DESC")
        .build()
    )
    resolver = RelationResolver(engine)
    options = resolver.options(config.relations[0])
    assert list(options.items()) == [("2", "Editor"), ("1", "Admin")]

    with engine.begin() as conn:
        conn.execute(text("INSERT INTO roles(id, name, code) VALUES (3, 'Viewer', 'vwr')"))
    assert resolver.options(config.relations[0]) is options


def test_options_failure_returns_empty(engine: sa.Engine) -> None:
    config = GridBuilder("users").relation("role_id", "ghosts", "id", "label").build()
    assert RelationResolver(engine).options(config.relations[0]) == {}
