from __future__ import annotations

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import OperationalError, ProgrammingError

from sqlgrid.exceptions import ExecuteFailedError, PrepareFailedError, QueryExecutionError
from sqlgrid.query import CompiledQuery, classify_error, fetch_rows, fetch_scalar


def test_fetch_rows_returns_plain_dicts(engine: sa.Engine) -> None:
    query = CompiledQuery("SELECT id, name FROM roles WHERE id = :id", {"id": 2})
    with engine.connect() as conn:
        assert fetch_rows(conn, query, "load role") == [{"id": 2, "name": "Editor"}]
        assert fetch_scalar(conn, CompiledQuery("SELECT COUNT(*) FROM roles", {}), "n") == 2


def test_missing_bind_parameter_is_a_prepare_failure(engine: sa.Engine) -> None:
    query = CompiledQuery("SELECT * FROM roles WHERE id = :id", {})
    with engine.connect() as conn, pytest.raises(PrepareFailedError) as exc_info:
        fetch_rows(conn, query, "load role")
    assert exc_info.value.operation == "load role"


def test_runtime_failure_carries_driver_message(engine: sa.Engine) -> None:
    with engine.connect() as conn, pytest.raises(ExecuteFailedError) as exc_info:
        fetch_scalar(conn, CompiledQuery("SELECT COUNT(*) FROM ghosts", {}), "count rows")
    assert "no such table" in (exc_info.value.driver_message or "")
    assert isinstance(exc_info.value, QueryExecutionError)


def test_classify_error_by_sqlalchemy_type() -> None:
    prepared = classify_error(ProgrammingError("SELECT", {}, Exception("syntax")), "op")
    assert isinstance(prepared, PrepareFailedError)
    assert prepared.driver_message == "syntax"

    executed = classify_error(OperationalError("SELECT", {}, Exception("locked")), "op")
    assert isinstance(executed, ExecuteFailedError)
    assert not isinstance(executed, PrepareFailedError)
