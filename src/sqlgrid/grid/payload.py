"""Transport payload encoding for ``GridConfig``.

A grid is held by the client between requests as a plain nested dict. The
encoder writes every setting; the decoder validates each entry with a small
Pydantic model and replays it through ``GridBuilder`` so the same checks
apply. Unknown keys are ignored and malformed entries are skipped (logged)
instead of rejecting the whole payload.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from sqlgrid.exceptions import ConfigurationError

from .builder import GridBuilder
from .config import FieldBehavior, GridConfig, RawCondition

_logger = get_logger(__name__)


class _Entry(BaseModel):
    model_config = ConfigDict(extra="ignore")


class WherePayload(_Entry):
    glue: str = "AND"
    column: str | None = None
    raw: str | None = None
    operator: str = "="
    value: Any = None


class JoinPayload(_Entry):
    source_field: str
    target_table: str
    target_field: str
    alias: str | None = None
    exclude_from_insert: bool = False


class RelationPayload(_Entry):
    local_field: str
    target_table: str
    target_key: str
    label_fields: list[str]
    extra_where: str | None = None
    order_by: str | None = None
    multi_valued: bool = False


class SubselectPayload(_Entry):
    alias: str
    sql: str


class OrderPayload(_Entry):
    column: str
    direction: str = "ASC"


class SummaryPayload(_Entry):
    column: str
    kind: str
    label: str | None = None
    precision: int | None = None


class ChangeTypePayload(_Entry):
    kind: str
    default: Any = None
    params: dict[str, Any] = Field(default_factory=dict)


class BehaviorPayload(_Entry):
    change_type: ChangeTypePayload | None = None
    readonly: bool = False
    disabled: bool = False
    pass_var: str | None = None
    pass_default: str | None = None
    validation_required: int | None = None
    validation_pattern: str | None = None
    unique: bool = False


class HighlightPayload(_Entry):
    column: str
    operator: str
    value: Any = None
    css_class: str
    whole_row: bool = False


# ---- encoding -----------------------------------------------------------------
def _encode_value(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_encode_value(v) for v in value]
    return value


def _encode_behavior(behavior: FieldBehavior) -> dict[str, Any]:
    change = behavior.change_type
    return {
        "change_type": (
            {"kind": change.kind.value, "default": change.default, "params": dict(change.params)}
            if change
            else None
        ),
        "readonly": behavior.readonly,
        "disabled": behavior.disabled,
        "pass_var": behavior.pass_var,
        "pass_default": behavior.pass_default,
        "validation_required": behavior.validation_required,
        "validation_pattern": behavior.validation_pattern,
        "unique": behavior.unique,
    }


def to_payload(config: GridConfig) -> dict[str, Any]:
    """Encode ``config`` as a JSON-compatible nested dict."""
    where: list[dict[str, Any]] = []
    for cond in config.where:
        if isinstance(cond, RawCondition):
            where.append({"glue": cond.glue, "raw": cond.sql})
        else:
            where.append(
                {
                    "glue": cond.glue,
                    "column": cond.column,
                    "operator": cond.operator,
                    "value": _encode_value(cond.value),
                }
            )

    return {
        "table": config.table,
        "primary_key": config.primary_key,
        "where": where,
        "no_quotes": sorted(config.no_quotes),
        "joins": [
            {
                "source_field": j.source_field,
                "target_table": j.target_table,
                "target_field": j.target_field,
                "alias": j.alias,
                "exclude_from_insert": j.exclude_from_insert,
            }
            for j in config.joins
        ],
        "relations": [
            {
                "local_field": r.local_field,
                "target_table": r.target_table,
                "target_key": r.target_key,
                "label_fields": list(r.label_fields),
                "extra_where": r.extra_where,
                "order_by": r.order_by,
                "multi_valued": r.multi_valued,
            }
            for r in config.relations
        ],
        "query": config.base_query,
        "subselects": [{"alias": s.alias, "sql": s.sql} for s in config.subselects],
        "columns": {"names": list(config.columns), "reverse": config.reverse_columns},
        "order_by": [{"column": o.column, "direction": o.direction} for o in config.order_by],
        "sort_disabled": sorted(config.sort_disabled),
        "search": {
            "columns": list(config.search_columns),
            "default": config.default_search_column,
        },
        "summaries": [
            {
                "column": s.column,
                "kind": s.kind.value,
                "label": s.label,
                "precision": s.precision,
            }
            for s in config.summaries
        ],
        "behaviors": {
            mode: {name: _encode_behavior(b) for name, b in fields.items()}
            for mode, fields in config.behaviors.items()
        },
        "labels": dict(config.labels),
        "highlights": [
            {
                "column": h.column,
                "operator": h.operator,
                "value": _encode_value(h.value),
                "css_class": h.css_class,
                "whole_row": h.whole_row,
            }
            for h in config.highlights
        ],
        "column_patterns": dict(config.column_patterns),
        "column_transforms": dict(config.column_transforms),
        "per_page": config.per_page,
        "per_page_options": list(config.per_page_options),
    }


# ---- decoding -----------------------------------------------------------------
def _apply(section: str, action: Callable[[], object]) -> None:
    """Run one builder step, skipping it when the entry is malformed."""
    try:
        action()
    except (
        ConfigurationError,
        PydanticValidationError,
        TypeError,
        ValueError,
        AttributeError,
    ) as e:
        _logger.warning("Ignoring malformed %s entry in grid payload: %s", section, e)


def _entries(payload: Mapping[str, Any], key: str) -> list[Any]:
    value = payload.get(key)
    return list(value) if isinstance(value, list) else []


def _mapping(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, Mapping) else {}


def _add_where(builder: GridBuilder, entry: Any) -> None:
    item = WherePayload.model_validate(entry)
    if item.raw is not None:
        builder.where_raw(item.raw, glue=item.glue)
    elif item.column is not None:
        builder.where(item.column, item.value, item.operator, glue=item.glue)
    else:
        msg = "condition has neither column nor raw SQL"
        raise ConfigurationError(msg)


def _add_behavior(builder: GridBuilder, mode: str, name: str, entry: Any) -> None:
    item = BehaviorPayload.model_validate(entry)
    if item.change_type is not None:
        change = item.change_type
        builder.change_type(name, change.kind, change.default, change.params, mode=mode)
    if item.readonly:
        builder.readonly(name, mode=mode)
    if item.disabled:
        builder.disabled(name, mode=mode)
    if item.pass_var is not None:
        builder.pass_var(name, item.pass_var, mode=mode)
    if item.pass_default is not None:
        builder.pass_default(name, item.pass_default, mode=mode)
    if item.validation_required is not None:
        builder.validation_required(name, item.validation_required, mode=mode)
    if item.validation_pattern:
        builder.validation_pattern(name, item.validation_pattern, mode=mode)
    if item.unique:
        builder.unique(name, mode=mode)


def from_payload(payload: Mapping[str, Any], *, dialect: str | None = None) -> GridConfig:
    """Decode a payload produced by ``to_payload``.

    Raises:
        ConfigurationError: Only when the table name itself is missing or invalid
    """
    table = payload.get("table") if isinstance(payload, Mapping) else None
    if not isinstance(table, str):
        msg = "Grid payload requires a table name"
        raise ConfigurationError(msg)
    builder = GridBuilder(table, dialect=dialect)

    pk = payload.get("primary_key")
    if isinstance(pk, str):
        _apply("primary_key", lambda: builder.primary_key(pk))

    query = payload.get("query")
    if isinstance(query, str) and query.strip():
        _apply("query", lambda: builder.query(query))

    for entry in _entries(payload, "where"):
        _apply("where", lambda e=entry: _add_where(builder, e))
    no_quotes = [c for c in _entries(payload, "no_quotes") if isinstance(c, str)]
    if no_quotes:
        _apply("no_quotes", lambda: builder.no_quotes(no_quotes))

    for entry in _entries(payload, "joins"):
        def add_join(e: Any = entry) -> None:
            item = JoinPayload.model_validate(e)
            builder.join(
                item.source_field,
                item.target_table,
                item.target_field,
                item.alias,
                exclude_from_insert=item.exclude_from_insert,
            )

        _apply("joins", add_join)

    for entry in _entries(payload, "relations"):
        def add_relation(e: Any = entry) -> None:
            item = RelationPayload.model_validate(e)
            builder.relation(
                item.local_field,
                item.target_table,
                item.target_key,
                item.label_fields,
                extra_where=item.extra_where,
                order_by=item.order_by,
                multi_valued=item.multi_valued,
            )

        _apply("relations", add_relation)

    for entry in _entries(payload, "subselects"):
        def add_subselect(e: Any = entry) -> None:
            item = SubselectPayload.model_validate(e)
            builder.subselect(item.alias, item.sql)

        _apply("subselects", add_subselect)

    columns = _mapping(payload, "columns")
    names = columns.get("names")
    if isinstance(names, list) and names:
        _apply("columns", lambda: builder.columns(names, reverse=bool(columns.get("reverse"))))

    for entry in _entries(payload, "order_by"):
        def add_order(e: Any = entry) -> None:
            item = OrderPayload.model_validate(e)
            builder.order_by(item.column, item.direction)

        _apply("order_by", add_order)

    disabled = [c for c in _entries(payload, "sort_disabled") if isinstance(c, str)]
    if disabled:
        _apply("sort_disabled", lambda: builder.disable_sort(disabled))

    search = _mapping(payload, "search")
    search_cols = search.get("columns")
    if isinstance(search_cols, list) and search_cols:
        default = search.get("default")
        _apply(
            "search",
            lambda: builder.search_columns(
                search_cols, default if isinstance(default, str) else None
            ),
        )

    for entry in _entries(payload, "summaries"):
        def add_summary(e: Any = entry) -> None:
            item = SummaryPayload.model_validate(e)
            builder.column_summary(item.column, item.kind, item.label, item.precision)

        _apply("summaries", add_summary)

    for mode, fields in _mapping(payload, "behaviors").items():
        if not isinstance(fields, Mapping):
            continue
        for name, entry in fields.items():
            _apply("behaviors", lambda m=mode, n=name, e=entry: _add_behavior(builder, m, n, e))

    labels = {k: v for k, v in _mapping(payload, "labels").items() if isinstance(v, str)}
    if labels:
        _apply("labels", lambda: builder.set_column_labels(labels))

    for entry in _entries(payload, "highlights"):
        def add_highlight(e: Any = entry) -> None:
            item = HighlightPayload.model_validate(e)
            value = tuple(item.value) if isinstance(item.value, list) else item.value
            builder.highlight(
                item.column, item.operator, value, item.css_class, whole_row=item.whole_row
            )

        _apply("highlights", add_highlight)

    for column, template in _mapping(payload, "column_patterns").items():
        if isinstance(template, str):
            _apply("column_patterns", lambda c=column, t=template: builder.column_pattern(c, t))
    for column, name in _mapping(payload, "column_transforms").items():
        if isinstance(name, str):
            _apply("column_transforms", lambda c=column, n=name: builder.column_callback(c, n))

    options = payload.get("per_page_options")
    if isinstance(options, list) and options:
        _apply("per_page_options", lambda: builder.limit_list(options))
    per_page = payload.get("per_page")
    if isinstance(per_page, int):
        _apply("per_page", lambda: builder.per_page(per_page))

    return builder.build()
