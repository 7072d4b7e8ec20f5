"""Record writes for one grid's base table.

This module provides the RecordMutator class that loads, creates, updates,
deletes and duplicates rows of ``GridConfig.table``. Incoming fields are
filtered to known columns, per-mode behaviors inject server-side values, and
validation runs before any statement is issued. Each write runs in its own
transaction (``engine.begin()``).

Classes:
- RecordMutator: Validated writes against a base table
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sqlgrid.constants import EditMode
from sqlgrid.exceptions import (
    ConflictError,
    GridError,
    RecordNotFoundError,
    SchemaError,
    ValidationError,
)
from sqlgrid.grid.builder import parse_mode
from sqlgrid.grid.config import GridConfig
from sqlgrid.models import BatchFailure, BatchResult
from sqlgrid.query.compiler import CompiledQuery
from sqlgrid.query.execution import classify_error, driver_message, fetch_rows, translate_errors
from sqlgrid.schema.introspector import SchemaIntrospector
from sqlgrid.schema.quoting import IdentifierQuoter
from sqlgrid.schema.types import ColumnSchema

from .conflicts import is_duplicate_key_error, next_copy_value
from .templates import is_empty_value, render_template
from .validation import FieldValidator

_logger = get_logger(__name__)


class RecordMutator:
    """Create, update, delete and duplicate rows of a grid's base table.

    Attributes:
        engine: Engine the base table lives in
        config: Grid whose behaviors and joins govern the writes
        introspector: Schema source for the base table
        quoter: Identifier quoter for the engine's dialect
    """

    def __init__(
        self,
        engine: Engine,
        config: GridConfig,
        introspector: SchemaIntrospector | None = None,
        quoter: IdentifierQuoter | None = None,
    ) -> None:
        self.engine = engine
        self.config = config
        self.introspector = introspector or SchemaIntrospector(engine, quoter)
        self.quoter = quoter or self.introspector.quoter
        self.validator = FieldValidator(config.table, self.quoter)

    # ---- reads -------------------------------------------------------------
    def get_record(self, pk_column: str, pk_value: Any) -> dict[str, Any]:
        column = self._require_column(pk_column)
        with self.engine.connect() as conn:
            return self._load(conn, column, pk_value)

    # ---- writes ------------------------------------------------------------
    def update(
        self,
        pk_column: str,
        pk_value: Any,
        fields: Mapping[str, Any],
        mode: str | EditMode = EditMode.EDIT,
    ) -> dict[str, Any]:
        """Update one row and return its fresh state.

        When no submitted field survives filtering the current row is
        returned without issuing an UPDATE.

        Raises:
            SchemaError: Unknown primary key column
            RecordNotFoundError: No row with ``pk_value``
            ValidationError: One or more field rules failed
            QueryExecutionError: The UPDATE failed
        """
        column = self._require_column(pk_column)
        edit_mode = parse_mode(mode)
        with self.engine.begin() as conn:
            current = self._load(conn, column, pk_value)
            values = self._prepare(fields, edit_mode, pk_column=column, current=current)
            if not values:
                return current

            errors = self.validator.validate(
                conn,
                values,
                self.config.behaviors_for_mode(edit_mode),
                primary_key=column,
                record_pk=pk_value,
                partial=True,
            )
            if errors:
                raise ValidationError(errors)

            q = self.quoter
            params = {f"v_{i}": value for i, value in enumerate(values.values())}
            assignments = ", ".join(f"{q.quote(name)} = :v_{i}" for i, name in enumerate(values))
            params["pk"] = pk_value
            sql = (
                f"UPDATE {q.quote(self.config.table)} SET {assignments} "
                f"WHERE {q.quote(column)} = :pk"
            )
            _logger.debug("update SQL: %s", sql)
            with translate_errors("update record"):
                conn.execute(sa.text(sql), params)
            _logger.info("Updated %s row %s=%r", self.config.table, column, pk_value)
            return self._load(conn, column, pk_value)

    def create(
        self, fields: Mapping[str, Any], mode: str | EditMode = EditMode.CREATE
    ) -> dict[str, Any]:
        """Insert one row and return it as stored.

        Raises:
            ValidationError: One or more field rules failed
            QueryExecutionError: The INSERT failed
        """
        pk = self.config.primary_key
        edit_mode = parse_mode(mode)
        with self.engine.begin() as conn:
            values = self._prepare(fields, edit_mode, pk_column=pk, current=None)
            errors = self.validator.validate(
                conn, values, self.config.behaviors_for_mode(edit_mode), primary_key=pk
            )
            if errors:
                raise ValidationError(errors)
            with translate_errors("create record"):
                row = self._insert(conn, values)
        _logger.info("Created %s row %s=%r", self.config.table, pk, row.get(pk))
        return row

    def delete(self, pk_column: str, pk_value: Any) -> bool:
        """Delete one row; ``False`` when no row matched."""
        column = self._require_column(pk_column)
        q = self.quoter
        sql = f"DELETE FROM {q.quote(self.config.table)} WHERE {q.quote(column)} = :pk"
        with self.engine.begin() as conn, translate_errors("delete record"):
            deleted = conn.execute(sa.text(sql), {"pk": pk_value}).rowcount > 0
        if deleted:
            _logger.info("Deleted %s row %s=%r", self.config.table, column, pk_value)
        return deleted

    def delete_many(self, pk_column: str, pk_values: Iterable[Any]) -> BatchResult:
        """Delete each row separately; failures are collected, not raised."""
        self._require_column(pk_column)
        count = 0
        failures: list[BatchFailure] = []
        for value in pk_values:
            try:
                if self.delete(pk_column, value):
                    count += 1
                else:
                    failures.append(BatchFailure(value=value, error="Record not found"))
            except GridError as e:
                failures.append(BatchFailure(value=value, error=str(e)))
        return BatchResult(count=count, failures=failures)

    def update_many(
        self,
        pk_column: str,
        pk_values: Iterable[Any],
        fields: Mapping[str, Any],
        mode: str | EditMode = EditMode.EDIT,
    ) -> BatchResult:
        """Apply the same fields to each row, validating every row on its own."""
        self._require_column(pk_column)
        count = 0
        failures: list[BatchFailure] = []
        for value in pk_values:
            try:
                self.update(pk_column, value, fields, mode)
                count += 1
            except ValidationError as e:
                failures.append(
                    BatchFailure(value=value, error=str(e), field_errors=e.field_errors)
                )
            except GridError as e:
                failures.append(BatchFailure(value=value, error=str(e)))
        return BatchResult(count=count, failures=failures)

    def duplicate(self, pk_column: str, pk_value: Any) -> dict[str, Any]:
        """Copy a row under a new primary key and return the copy.

        A unique violation is retried once with `` (copy)`` variants of the
        row's single-column unique values.

        Raises:
            RecordNotFoundError: No row with ``pk_value``
            ConflictError: The copy still violates a unique constraint
            QueryExecutionError: The INSERT failed for another reason
        """
        column = self._require_column(pk_column)
        with self.engine.connect() as conn:
            source = self._load(conn, column, pk_value)
        values = {
            name: source[name] for name in self._schema() if name != column and name in source
        }

        try:
            with self.engine.begin() as conn:
                return self._insert(conn, values, pk_column=column)
        except IntegrityError as exc:
            if not is_duplicate_key_error(exc):
                raise classify_error(exc, "duplicate record") from exc
            original = exc
        except SQLAlchemyError as exc:
            raise classify_error(exc, "duplicate record") from exc

        adjusted = self._copy_values(values, column)
        if not adjusted:
            raise ConflictError(
                "duplicate record",
                "no unique column could be adjusted",
                driver_message=driver_message(original),
            ) from original

        _logger.info("Retrying duplicate of %s=%r with %s", column, pk_value, adjusted)
        try:
            with self.engine.begin() as conn:
                return self._insert(conn, {**values, **adjusted}, pk_column=column)
        except IntegrityError as exc:
            raise ConflictError(
                "duplicate record",
                "copy still violates a unique constraint",
                driver_message=driver_message(original),
            ) from exc
        except SQLAlchemyError as exc:
            raise classify_error(exc, "duplicate record") from exc

    # ---- internals ---------------------------------------------------------
    def _schema(self) -> dict[str, ColumnSchema]:
        schema = self.introspector.get_schema(self.config.table)
        if not schema:
            msg = f"No columns available for table {self.config.table!r}"
            raise SchemaError(msg)
        return schema

    def _require_column(self, column: str) -> str:
        if column not in self._schema():
            msg = f"Unknown column {column!r} in table {self.config.table!r}"
            raise SchemaError(msg)
        return column

    def _load(self, conn: Connection, column: str, pk_value: Any) -> dict[str, Any]:
        q = self.quoter
        sql = f"SELECT * FROM {q.quote(self.config.table)} WHERE {q.quote(column)} = :pk LIMIT 1"
        rows = fetch_rows(conn, CompiledQuery(sql, {"pk": pk_value}), "load record")
        if not rows:
            msg = f"No {self.config.table} row with {column}={pk_value!r}"
            raise RecordNotFoundError(msg)
        return rows[0]

    def _prepare(
        self,
        fields: Mapping[str, Any],
        mode: EditMode,
        *,
        pk_column: str,
        current: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        """Filter submitted fields and apply ``pass_default``/``pass_var``."""
        schema = self._schema()
        blocked = {pk_column}
        if current is None:
            blocked |= {j.source_field for j in self.config.joins if j.exclude_from_insert}

        values: dict[str, Any] = {}
        for name, value in fields.items():
            if name not in schema or name in blocked:
                continue
            if self.config.behavior_for(name, mode).blocks_input:
                continue
            values[name] = value

        behaviors = {
            name: behavior
            for name, behavior in self.config.behaviors_for_mode(mode).items()
            if name in schema and name not in blocked
        }
        context: dict[str, Any] = {**(current or {}), **values}
        # Defaults first so server-side values can reference them.
        for name, behavior in behaviors.items():
            if behavior.pass_default is None:
                continue
            effective = values[name] if name in values else (current or {}).get(name)
            if is_empty_value(effective):
                values[name] = context[name] = render_template(behavior.pass_default, context)
        for name, behavior in behaviors.items():
            if behavior.pass_var is not None:
                values[name] = render_template(behavior.pass_var, context)
        return values

    def _insert(
        self, conn: Connection, values: Mapping[str, Any], pk_column: str | None = None
    ) -> dict[str, Any]:
        """INSERT ``values`` and load the new row; errors propagate untranslated."""
        q = self.quoter
        table = q.quote(self.config.table)
        pk = pk_column or self.config.primary_key
        if values:
            columns = ", ".join(q.quote(name) for name in values)
            placeholders = ", ".join(f":v_{i}" for i in range(len(values)))
            sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"
        elif self.introspector.family == "mysql":
            sql = f"INSERT INTO {table} () VALUES ()"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES"
        params = {f"v_{i}": value for i, value in enumerate(values.values())}
        _logger.debug("insert SQL: %s", sql)
        result = conn.execute(sa.text(sql), params)

        new_id = values.get(pk)
        if new_id is None:
            new_id = result.lastrowid or None
        if new_id is None:
            latest = f"SELECT {q.quote(pk)} FROM {table} ORDER BY {q.quote(pk)} DESC LIMIT 1"
            new_id = conn.execute(sa.text(latest)).scalar()
        return self._load(conn, pk, new_id)

    def _copy_values(self, values: Mapping[str, Any], pk_column: str) -> dict[str, str]:
        q = self.quoter
        table = q.quote(self.config.table)
        adjusted: dict[str, str] = {}
        with self.engine.connect() as conn:
            for name in self.introspector.unique_columns(self.config.table):
                value = values.get(name)
                if name == pk_column or not isinstance(value, str):
                    continue
                sql = sa.text(f"SELECT COUNT(*) FROM {table} WHERE {q.quote(name)} = :value")

                def exists(candidate: str, stmt: Any = sql) -> bool:
                    return bool(conn.execute(stmt, {"value": candidate}).scalar())

                replacement = next_copy_value(value, exists)
                if replacement is not None:
                    adjusted[name] = replacement
        return adjusted
