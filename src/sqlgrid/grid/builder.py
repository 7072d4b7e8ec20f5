"""Fluent builder producing immutable ``GridConfig`` values.

Every call validates its input and raises ``ConfigurationError``
immediately, so an invalid grid never reaches the compiler.

Example:
    >>> config = (
    ...     GridBuilder("users")
    ...     .where("active", True)
    ...     .order_by("email", "asc")
    ...     .build()
    ... )
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import dataclasses
from decimal import Decimal
from typing import Any

from sqlgrid.constants import (
    HIGHLIGHT_OPERATORS,
    LIST_OPERATORS,
    NULL_OPERATORS,
    NUMERIC_OPERATORS,
    WHERE_OPERATORS,
    Constants,
    EditMode,
    FieldKind,
    Glue,
    SummaryKind,
)
from sqlgrid.exceptions import ConfigurationError
from sqlgrid.schema.quoting import is_raw_expression

from .config import (
    ChangeType,
    ColumnCondition,
    FieldBehavior,
    GridConfig,
    HighlightSpec,
    JoinSpec,
    OrderSpec,
    RawCondition,
    RelationSpec,
    Subselect,
    SummarySpec,
    WhereCondition,
)
from .sqlcheck import ensure_select_statement


def validate_identifier(name: str, what: str = "identifier") -> str:
    """Return ``name`` stripped, or raise when it is not ``[A-Za-z0-9_]+``."""
    candidate = name.strip() if isinstance(name, str) else ""
    if not Constants.IDENTIFIER_PATTERN.match(candidate):
        msg = f"Invalid {what}: {name!r}"
        raise ConfigurationError(msg)
    return candidate


def validate_column_reference(name: str) -> str:
    """Accept ``column``, ``alias.column`` or ``alias__column``."""
    candidate = name.strip() if isinstance(name, str) else ""
    if not Constants.QUALIFIED_PATTERN.match(candidate):
        msg = f"Invalid column name: {name!r}"
        raise ConfigurationError(msg)
    return candidate


def split_names(names: str | Iterable[Any]) -> list[str]:
    """Accept ``"a,b"`` or ``["a", "b"]`` and return trimmed, non-empty names."""
    items = names.split(",") if isinstance(names, str) else list(names)
    return [str(item).strip() for item in items if str(item).strip()]


def _coerce_numeric(value: Any) -> int | float | Decimal:
    if isinstance(value, int | float | Decimal) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            pass
    msg = f"Comparison value must be numeric, got {value!r}"
    raise ConfigurationError(msg)


def parse_mode(mode: str | EditMode) -> EditMode:
    if isinstance(mode, EditMode):
        return mode
    try:
        return EditMode(str(mode).strip().lower())
    except ValueError as exc:
        msg = f"Unsupported edit mode: {mode!r}"
        raise ConfigurationError(msg) from exc


def _parse_glue(glue: str) -> str:
    try:
        return Glue(str(glue).strip().upper()).value
    except ValueError as exc:
        msg = f"Unsupported condition glue: {glue!r}"
        raise ConfigurationError(msg) from exc


class GridBuilder:
    """Accumulate grid settings through chained calls, then ``build()``.

    Args:
        table: Base table name
        dialect: Optional SQLAlchemy dialect name, used to parse custom SQL
    """

    def __init__(self, table: str, *, dialect: str | None = None) -> None:
        self._table = validate_identifier(table, "table name")
        self._dialect = dialect
        self._primary_key = Constants.DEFAULT_PRIMARY_KEY
        self._where: list[WhereCondition] = []
        self._joins: list[JoinSpec] = []
        self._relations: list[RelationSpec] = []
        self._base_query: str | None = None
        self._subselects: list[Subselect] = []
        self._columns: list[str] = []
        self._reverse_columns = False
        self._order_by: list[OrderSpec] = []
        self._sort_disabled: set[str] = set()
        self._search_columns: list[str] = []
        self._default_search_column: str | None = None
        self._summaries: list[SummarySpec] = []
        self._behaviors: dict[str, dict[str, FieldBehavior]] = {}
        self._no_quotes: set[str] = set()
        self._labels: dict[str, str] = {}
        self._highlights: list[HighlightSpec] = []
        self._column_patterns: dict[str, str] = {}
        self._column_transforms: dict[str, str] = {}
        self._per_page: int | None = None
        self._per_page_options: tuple[int, ...] = ()

    # ---- table and key -----------------------------------------------------
    def primary_key(self, column: str) -> GridBuilder:
        self._primary_key = validate_identifier(column, "primary key column")
        return self

    def query(self, sql: str) -> GridBuilder:
        """Replace the FROM clause with ``(<sql>) AS main``."""
        self._base_query = ensure_select_statement(sql, self._dialect)
        return self

    # ---- conditions --------------------------------------------------------
    def where(
        self, column: str, value: Any = None, operator: str = "=", *, glue: str = "AND"
    ) -> GridBuilder:
        """Add ``column <operator> value``; the value is always bound."""
        col = validate_column_reference(column)
        op = " ".join(str(operator).upper().split())
        if op not in WHERE_OPERATORS:
            msg = f"Unsupported operator: {operator!r}"
            raise ConfigurationError(msg)

        if op in NULL_OPERATORS:
            value = None
        elif op in LIST_OPERATORS:
            if isinstance(value, str | bytes) or not isinstance(value, Iterable):
                msg = f"{op} requires a collection of values"
                raise ConfigurationError(msg)
            value = tuple(value)
            if not value:
                msg = f"{op} requires at least one value"
                raise ConfigurationError(msg)
        elif op in NUMERIC_OPERATORS:
            value = _coerce_numeric(value)

        self._where.append(ColumnCondition(col, op, value, _parse_glue(glue)))
        return self

    def or_where(self, column: str, value: Any = None, operator: str = "=") -> GridBuilder:
        return self.where(column, value, operator, glue="OR")

    def where_raw(self, sql: str, *, glue: str = "AND") -> GridBuilder:
        """Add a caller-trusted SQL condition used verbatim."""
        text = sql.strip() if isinstance(sql, str) else ""
        if not text:
            msg = "Raw condition must not be empty"
            raise ConfigurationError(msg)
        self._where.append(RawCondition(text, _parse_glue(glue)))
        return self

    def no_quotes(self, columns: str | Iterable[str]) -> GridBuilder:
        """Interpolate condition values for these columns instead of binding them."""
        self._no_quotes.update(validate_column_reference(c) for c in split_names(columns))
        return self

    # ---- joins, relations, subselects --------------------------------------
    def join(
        self,
        source_field: str,
        target_table: str,
        target_field: str,
        alias: str | None = None,
        *,
        exclude_from_insert: bool = False,
    ) -> GridBuilder:
        alias_name = validate_identifier(alias or f"j{len(self._joins)}", "join alias")
        if alias_name == Constants.MAIN_ALIAS or alias_name in {j.alias for j in self._joins}:
            msg = f"Join alias already in use: {alias_name!r}"
            raise ConfigurationError(msg)
        self._joins.append(
            JoinSpec(
                source_field=validate_column_reference(source_field),
                target_table=validate_identifier(target_table, "table name"),
                target_field=validate_identifier(target_field, "column name"),
                alias=alias_name,
                exclude_from_insert=exclude_from_insert,
            )
        )
        return self

    def relation(
        self,
        local_field: str,
        target_table: str,
        target_key: str,
        label_fields: str | Sequence[str],
        *,
        extra_where: str | None = None,
        order_by: str | None = None,
        multi_valued: bool = False,
    ) -> GridBuilder:
        labels = tuple(validate_identifier(f, "label field") for f in split_names(label_fields))
        if not labels:
            msg = "Relation requires at least one label field"
            raise ConfigurationError(msg)
        self._relations.append(
            RelationSpec(
                local_field=validate_identifier(local_field, "column name"),
                target_table=validate_identifier(target_table, "table name"),
                target_key=validate_identifier(target_key, "column name"),
                label_fields=labels,
                extra_where=(extra_where or "").strip() or None,
                order_by=(order_by or "").strip() or None,
                multi_valued=multi_valued,
            )
        )
        return self

    def subselect(self, alias: str, sql: str) -> GridBuilder:
        name = validate_identifier(alias, "subselect alias")
        if name in {s.alias for s in self._subselects}:
            msg = f"Subselect alias already in use: {name!r}"
            raise ConfigurationError(msg)
        self._subselects.append(Subselect(name, ensure_select_statement(sql, self._dialect)))
        return self

    # ---- visibility, sorting, searching ------------------------------------
    def columns(self, names: str | Iterable[str], *, reverse: bool = False) -> GridBuilder:
        """Allow-list (or deny-list when ``reverse``) of display columns; ``*`` expands."""
        resolved: list[str] = []
        for name in split_names(names):
            if name == "*":
                resolved.append(name)
                continue
            ref = validate_column_reference(name)
            resolved.append(ref.replace(".", Constants.JOIN_COLUMN_SEPARATOR))
        if not resolved:
            msg = "Column list must not be empty"
            raise ConfigurationError(msg)
        self._columns = resolved
        self._reverse_columns = reverse
        return self

    def order_by(self, column: str, direction: str = "asc") -> GridBuilder:
        text = column.strip() if isinstance(column, str) else ""
        if not text:
            msg = "Order column must not be empty"
            raise ConfigurationError(msg)
        if not is_raw_expression(text):
            text = validate_column_reference(text)
        dir_ = str(direction).strip().upper()
        if dir_ not in {"ASC", "DESC"}:
            msg = f"Unsupported sort direction: {direction!r}"
            raise ConfigurationError(msg)
        self._order_by.append(OrderSpec(text, dir_))
        return self

    def disable_sort(self, columns: str | Iterable[str]) -> GridBuilder:
        for name in split_names(columns):
            ref = validate_column_reference(name)
            self._sort_disabled.add(ref.replace(".", Constants.JOIN_COLUMN_SEPARATOR))
        return self

    def search_columns(
        self, columns: str | Iterable[str], default: str | None = None
    ) -> GridBuilder:
        names = [
            validate_column_reference(c).replace(".", Constants.JOIN_COLUMN_SEPARATOR)
            for c in split_names(columns)
        ]
        if not names:
            msg = "Search column list must not be empty"
            raise ConfigurationError(msg)
        self._search_columns = names
        if default is not None:
            ref = validate_column_reference(default).replace(".", Constants.JOIN_COLUMN_SEPARATOR)
            if ref not in names:
                msg = f"Default search column {default!r} is not searchable"
                raise ConfigurationError(msg)
            self._default_search_column = ref
        return self

    # ---- summaries and paging ----------------------------------------------
    def column_summary(
        self,
        column: str,
        kind: str | SummaryKind = "sum",
        label: str | None = None,
        precision: int | None = None,
    ) -> GridBuilder:
        try:
            summary_kind = kind if isinstance(kind, SummaryKind) else SummaryKind(kind.lower())
        except ValueError as exc:
            msg = f"Unsupported summary kind: {kind!r}"
            raise ConfigurationError(msg) from exc
        if precision is not None and (isinstance(precision, bool) or precision < 0):
            msg = f"Summary precision must be a non-negative integer, got {precision!r}"
            raise ConfigurationError(msg)
        col = column.strip() if column.strip() == "*" else validate_column_reference(column)
        if col == "*" and summary_kind is not SummaryKind.COUNT:
            msg = "Only count summaries accept '*'"
            raise ConfigurationError(msg)
        self._summaries.append(SummarySpec(col, summary_kind, label, precision))
        return self

    def per_page(self, count: int) -> GridBuilder:
        if isinstance(count, bool) or count < 0:
            msg = f"Page size must be a non-negative integer, got {count!r}"
            raise ConfigurationError(msg)
        self._per_page = count
        return self

    def limit_list(self, options: str | Iterable[int | str]) -> GridBuilder:
        """Page size choices, e.g. ``"5,10,25,all"``; ``all`` (or 0) is stored as 0."""
        parsed: list[int] = []
        for item in split_names(options):
            if item.lower() == "all":
                parsed.append(0)
                continue
            try:
                value = int(item)
            except ValueError as exc:
                msg = f"Invalid page size option: {item!r}"
                raise ConfigurationError(msg) from exc
            if value < 0:
                msg = f"Invalid page size option: {item!r}"
                raise ConfigurationError(msg)
            parsed.append(value)
        if not parsed:
            msg = "Page size option list must not be empty"
            raise ConfigurationError(msg)
        self._per_page_options = tuple(dict.fromkeys(parsed))
        if self._per_page is None:
            self._per_page = parsed[0]
        return self

    # ---- presentation metadata ---------------------------------------------
    def set_column_labels(self, labels: Mapping[str, str]) -> GridBuilder:
        for column, label in labels.items():
            self._labels[validate_column_reference(column)] = str(label)
        return self

    def highlight(
        self,
        column: str,
        operator: str,
        value: Any,
        css_class: str,
        *,
        whole_row: bool = False,
    ) -> GridBuilder:
        op = str(operator).strip().lower()
        if op not in HIGHLIGHT_OPERATORS:
            msg = f"Unsupported highlight operator: {operator!r}"
            raise ConfigurationError(msg)
        if not css_class.strip():
            msg = "Highlight class must not be empty"
            raise ConfigurationError(msg)
        if isinstance(value, list | set | frozenset):
            value = tuple(value)
        self._highlights.append(
            HighlightSpec(
                validate_column_reference(column), op, value, css_class.strip(), whole_row
            )
        )
        return self

    def highlight_row(self, column: str, operator: str, value: Any, css_class: str) -> GridBuilder:
        return self.highlight(column, operator, value, css_class, whole_row=True)

    def column_pattern(self, column: str, template: str) -> GridBuilder:
        """Render the display value through ``template`` (``{value}`` plus row fields)."""
        self._column_patterns[validate_column_reference(column)] = template
        return self

    def column_callback(self, column: str, transform_name: str) -> GridBuilder:
        """Apply the host-registered ``ColumnTransform`` named ``transform_name``."""
        name = transform_name.strip()
        if not name:
            msg = "Transform name must not be empty"
            raise ConfigurationError(msg)
        self._column_transforms[validate_column_reference(column)] = name
        return self

    # ---- field behaviors ---------------------------------------------------
    def _update_behavior(
        self, fields: str | Iterable[str], mode: str | EditMode, **changes: Any
    ) -> GridBuilder:
        scope = parse_mode(mode).value
        for name in split_names(fields):
            field_name = validate_identifier(name, "field name")
            per_mode = self._behaviors.setdefault(scope, {})
            current = per_mode.get(field_name, FieldBehavior())
            per_mode[field_name] = dataclasses.replace(current, **changes)
        return self

    def readonly(self, fields: str | Iterable[str], mode: str | EditMode = "all") -> GridBuilder:
        return self._update_behavior(fields, mode, readonly=True)

    def disabled(self, fields: str | Iterable[str], mode: str | EditMode = "all") -> GridBuilder:
        return self._update_behavior(fields, mode, disabled=True)

    def pass_var(self, field: str, template: str, mode: str | EditMode = "all") -> GridBuilder:
        return self._update_behavior(field, mode, pass_var=str(template))

    def pass_default(self, field: str, template: str, mode: str | EditMode = "all") -> GridBuilder:
        return self._update_behavior(field, mode, pass_default=str(template))

    def validation_required(
        self, fields: str | Iterable[str], min_length: int = 1, mode: str | EditMode = "all"
    ) -> GridBuilder:
        if isinstance(min_length, bool) or min_length < 0:
            msg = f"Minimum length must be a non-negative integer, got {min_length!r}"
            raise ConfigurationError(msg)
        return self._update_behavior(fields, mode, validation_required=min_length)

    def validation_pattern(
        self, field: str, pattern: str, mode: str | EditMode = "all"
    ) -> GridBuilder:
        if not pattern:
            msg = "Validation pattern must not be empty"
            raise ConfigurationError(msg)
        return self._update_behavior(field, mode, validation_pattern=pattern)

    def unique(self, fields: str | Iterable[str], mode: str | EditMode = "all") -> GridBuilder:
        return self._update_behavior(fields, mode, unique=True)

    def change_type(
        self,
        field: str,
        kind: str | FieldKind,
        default: Any = None,
        params: Mapping[str, Any] | None = None,
        mode: str | EditMode = "all",
    ) -> GridBuilder:
        try:
            field_kind = kind if isinstance(kind, FieldKind) else FieldKind(str(kind).lower())
        except ValueError as exc:
            msg = f"Unsupported field type: {kind!r}"
            raise ConfigurationError(msg) from exc
        change = ChangeType(field_kind, default, dict(params or {}))
        return self._update_behavior(field, mode, change_type=change)

    # ---- build -------------------------------------------------------------
    def build(self) -> GridConfig:
        return GridConfig(
            table=self._table,
            primary_key=self._primary_key,
            where=tuple(self._where),
            joins=tuple(self._joins),
            relations=tuple(self._relations),
            base_query=self._base_query,
            subselects=tuple(self._subselects),
            columns=tuple(self._columns),
            reverse_columns=self._reverse_columns,
            order_by=tuple(self._order_by),
            sort_disabled=frozenset(self._sort_disabled),
            search_columns=tuple(self._search_columns),
            default_search_column=self._default_search_column,
            summaries=tuple(self._summaries),
            behaviors={mode: dict(fields) for mode, fields in self._behaviors.items()},
            no_quotes=frozenset(self._no_quotes),
            labels=dict(self._labels),
            highlights=tuple(self._highlights),
            column_patterns=dict(self._column_patterns),
            column_transforms=dict(self._column_transforms),
            per_page=self._per_page,
            per_page_options=self._per_page_options,
        )
