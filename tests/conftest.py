from __future__ import annotations

import pytest
import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.pool import StaticPool


def _mk_engine() -> sa.Engine:
    return sa.create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def engine() -> sa.Engine:
    eng = _mk_engine()
    with eng.begin() as conn:
        conn.execute(text("CREATE TABLE roles(id INTEGER PRIMARY KEY, name TEXT, code TEXT)"))
        conn.execute(
            text(
                "CREATE TABLE users("
                "id INTEGER PRIMARY KEY, email VARCHAR(255), active BOOLEAN, "
                "role_id INTEGER, score DECIMAL(10,2), tag_ids VARCHAR(100), payload JSON)"
            )
        )
        conn.execute(text("CREATE TABLE tags(id INTEGER PRIMARY KEY, label VARCHAR(50))"))
        conn.execute(
            text(
                "CREATE TABLE posts("
                "id INTEGER PRIMARY KEY, title VARCHAR(200), slug VARCHAR(200), "
                "status VARCHAR(20), author VARCHAR(50))"
            )
        )
        conn.execute(text("CREATE UNIQUE INDEX ux_posts_slug ON posts(slug)"))

        conn.execute(
            text("INSERT INTO roles(id, name, code) VALUES (1,'Admin','adm'),(2,'Editor','edt')")
        )
        conn.execute(text("INSERT INTO tags(id, label) VALUES (1,'red'),(2,'green'),(3,'blue')"))
        conn.execute(
            text(
                "INSERT INTO users(id, email, active, role_id, score, tag_ids) VALUES "
                "(1,'alice@example.com',1,1,10.5,'1,2'),"
                "(2,'bob@example.com',1,2,20.25,'3'),"
                "(3,'carol@example.com',0,1,5,NULL),"
                "(4,'dave@example.org',1,NULL,7.125,'2,9')"
            )
        )
        conn.execute(
            text(
                "INSERT INTO posts(id, title, slug, status, author) VALUES "
                "(1,'Hello','hello','draft','ann'),"
                "(5,'Post','post','published','bob')"
            )
        )
    return eng
