"""Batched lookup resolution for relation fields.

A relation replaces a stored key (for example ``category_id``) with a human
readable label read from another table. Keys are collected across the whole
page first and resolved with a single ``IN`` query per relation, so the
cost does not grow with the number of rows.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from sqlgrid.constants import Constants
from sqlgrid.grid.config import RelationSpec
from sqlgrid.schema.quoting import IdentifierQuoter

_logger = get_logger(__name__)

_KEY_ALIAS = "__key"
_MULTI_SEPARATOR = ","
_LABEL_SEPARATOR = ", "


def split_multi_value(value: Any) -> list[str]:
    """Split a comma separated key list, dropping blank segments."""
    return [part.strip() for part in str(value).split(_MULTI_SEPARATOR) if part.strip()]


def _label_of(row: Any, fields: Sequence[str]) -> str:
    parts = [str(row[f]) for f in fields if row[f] is not None and str(row[f]).strip()]
    return " ".join(parts)


def _segment(label: Any) -> str:
    # one segment per key: a comma inside a label would split it in two
    return str(label).replace(_MULTI_SEPARATOR, ";")


class RelationResolver:
    """Resolve relation keys to labels for fetched rows.

    Attributes:
        engine: Engine the lookup tables live in
        quoter: Identifier quoter for the engine's dialect
    """

    def __init__(self, engine: Engine, quoter: IdentifierQuoter | None = None) -> None:
        self.engine = engine
        self.quoter = quoter or IdentifierQuoter.for_engine(engine)
        self._options_cache: dict[RelationSpec, dict[str, str]] = {}

    def resolve(
        self, rows: list[dict[str, Any]], relations: Iterable[RelationSpec]
    ) -> list[dict[str, Any]]:
        """Rewrite relation fields of ``rows`` in place and return them.

        The stored value of every rewritten field is kept under
        ``row["__raw__"][field]``. A lookup that fails leaves its field
        untouched and the remaining relations are still processed.
        """
        if not rows:
            return rows
        for relation in relations:
            keys = self._distinct_keys(rows, relation)
            if not keys:
                continue
            try:
                labels = self._lookup(relation, keys)
            except SQLAlchemyError as e:
                _logger.warning(
                    "Relation lookup %s -> %s.%s failed: %s",
                    relation.local_field,
                    relation.target_table,
                    relation.target_key,
                    e,
                )
                continue
            for row in rows:
                self._apply(row, relation, labels)
        return rows

    def options(self, relation: RelationSpec) -> dict[str, str]:
        """All ``key -> label`` pairs of a relation target, for form pickers.

        Results are cached per resolver. Failures are logged and yield an
        empty, uncached mapping.
        """
        cached = self._options_cache.get(relation)
        if cached is not None:
            return cached

        sql = self._select_sql(relation)
        if relation.extra_where:
            sql += f" WHERE ({relation.extra_where})"
        sql += self._order_sql(relation)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(sa.text(sql)).mappings()
                found = {
                    str(row[_KEY_ALIAS]): _label_of(row, relation.label_fields) for row in result
                }
        except SQLAlchemyError as e:
            _logger.warning("Cannot load options for %s: %s", relation.target_table, e)
            return {}

        self._options_cache[relation] = found
        return found

    # ---- internals ---------------------------------------------------------
    def _distinct_keys(self, rows: Sequence[dict[str, Any]], relation: RelationSpec) -> list[Any]:
        seen: dict[str, Any] = {}
        for row in rows:
            raw = row.get(Constants.RAW_VALUES_KEY, {}).get(relation.local_field)
            value = raw if raw is not None else row.get(relation.local_field)
            if value is None or value == "":
                continue
            values = split_multi_value(value) if relation.multi_valued else [value]
            for item in values:
                seen.setdefault(str(item), item)
        return list(seen.values())

    def _select_sql(self, relation: RelationSpec) -> str:
        q = self.quoter
        labels = ", ".join(q.quote(f) for f in relation.label_fields)
        return (
            f"SELECT {q.quote(relation.target_key)} AS {q.quote(_KEY_ALIAS)}, {labels} "
            f"FROM {q.quote(relation.target_table)}"
        )

    def _order_sql(self, relation: RelationSpec) -> str:
        return f" ORDER BY {relation.order_by}" if relation.order_by else ""

    def _lookup(self, relation: RelationSpec, keys: list[Any]) -> dict[str, str]:
        key = self.quoter.quote(relation.target_key)
        sql = f"{self._select_sql(relation)} WHERE {key} IN :keys"
        if relation.extra_where:
            sql += f" AND ({relation.extra_where})"
        sql += self._order_sql(relation)

        stmt = sa.text(sql).bindparams(sa.bindparam("keys", expanding=True))
        _logger.debug("Relation SQL: %s", sql)
        with self.engine.connect() as conn:
            result = conn.execute(stmt, {"keys": keys}).mappings()
            return {str(row[_KEY_ALIAS]): _label_of(row, relation.label_fields) for row in result}

    def _apply(self, row: dict[str, Any], relation: RelationSpec, labels: dict[str, str]) -> None:
        field = relation.local_field
        if field not in row:
            return
        raw_values = row.setdefault(Constants.RAW_VALUES_KEY, {})
        value = raw_values.setdefault(field, row[field])
        if value is None or value == "":
            return
        if relation.multi_valued:
            row[field] = _LABEL_SEPARATOR.join(
                _segment(labels.get(key, key)) for key in split_multi_value(value)
            )
        else:
            row[field] = labels.get(str(value), value)
