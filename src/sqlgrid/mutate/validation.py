"""Field validation for writes.

Three rules are supported per field: a minimum trimmed length
(``validation_required``), a regular expression (``validation_pattern``) and
uniqueness across the base table (``unique``). Every rule is checked and all
failures are reported together, keyed by field name.
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
import re
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Connection

from sqlgrid.constants import Constants
from sqlgrid.grid.config import FieldBehavior
from sqlgrid.query.execution import translate_errors
from sqlgrid.schema.quoting import IdentifierQuoter

from .templates import is_empty_value

_logger = get_logger(__name__)

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": 0,
}


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a validation pattern.

    ``/body/flags`` patterns are used as written; any other pattern must
    match the whole value. An invalid expression yields ``None`` and is
    treated as no constraint.
    """
    match = Constants.DELIMITED_REGEX_PATTERN.match(pattern)
    if match:
        body, flag_chars = match.group(1), match.group(2)
        flags = 0
        for char in flag_chars:
            flags |= _FLAG_MAP.get(char, 0)
    else:
        body, flags = f"^(?:{pattern})$", 0
    try:
        return re.compile(body, flags)
    except re.error as e:
        _logger.warning("Ignoring invalid validation pattern %r: %s", pattern, e)
        return None


def check_required(value: Any, min_length: int) -> str | None:
    text = "" if value is None else str(value).strip()
    if len(text) >= min_length:
        return None
    if min_length <= 1:
        return "This field is required."
    return f"Enter at least {min_length} characters."


def check_pattern(value: Any, pattern: str) -> str | None:
    if is_empty_value(value):
        return None
    compiled = compile_pattern(pattern)
    if compiled is None or compiled.search(str(value)):
        return None
    return "Value has an invalid format."


class FieldValidator:
    """Run field rules for one base table."""

    def __init__(self, table: str, quoter: IdentifierQuoter) -> None:
        self.table = table
        self.quoter = quoter

    def validate(
        self,
        conn: Connection,
        values: Mapping[str, Any],
        behaviors: Mapping[str, FieldBehavior],
        *,
        primary_key: str,
        record_pk: Any = None,
        partial: bool = False,
    ) -> dict[str, str]:
        """Return ``{field: message}`` for every failed rule.

        With ``partial`` only fields present in ``values`` are checked, as
        for an update. ``record_pk`` excludes the edited row from unique
        checks.
        """
        errors: dict[str, str] = {}
        for name, behavior in behaviors.items():
            if partial and name not in values:
                continue
            if behavior.blocks_input and name not in values:
                continue
            value = values.get(name)

            if behavior.validation_required is not None:
                message = check_required(value, behavior.validation_required)
                if message:
                    errors[name] = message
                    continue
            if behavior.validation_pattern:
                message = check_pattern(value, behavior.validation_pattern)
                if message:
                    errors[name] = message
                    continue
            if behavior.unique and not is_empty_value(value):
                if self._exists(conn, name, value, primary_key, record_pk):
                    errors[name] = "This value is already in use."
        return errors

    def _exists(
        self, conn: Connection, column: str, value: Any, primary_key: str, record_pk: Any
    ) -> bool:
        q = self.quoter
        sql = f"SELECT COUNT(*) FROM {q.quote(self.table)} WHERE {q.quote(column)} = :value"
        params: dict[str, Any] = {"value": value}
        if record_pk is not None:
            sql += f" AND {q.quote(primary_key)} <> :pk"
            params["pk"] = record_pk
        with translate_errors("unique check"):
            count = conn.execute(sa.text(sql), params).scalar()
        return bool(count)
