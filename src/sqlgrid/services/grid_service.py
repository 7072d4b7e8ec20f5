"""Grid service: the facade consumed by presentation layers.

This module ties the compiler, the relation resolver and the record mutator
together for one ``GridConfig``. Reads degrade gracefully (failed lookups,
aggregates and highlight checks are logged and skipped); writes are
delegated to the mutator and either succeed completely or raise.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import csv
from decimal import Decimal
import io
import json
import math
import re
from typing import Any

from fastmcp.utilities.logging import get_logger
from sqlalchemy.engine import Engine

from sqlgrid.constants import Constants, EditMode, FieldKind
from sqlgrid.exceptions import QueryExecutionError
from sqlgrid.grid.conditions import evaluate
from sqlgrid.grid.config import ColumnTransform, GridConfig, RelationSpec, SummarySpec
from sqlgrid.models import BatchResult, PageResult, Pagination, SummaryResult
from sqlgrid.mutate.mutator import RecordMutator
from sqlgrid.mutate.templates import render_template
from sqlgrid.query.compiler import QueryCompiler
from sqlgrid.query.execution import fetch_rows, fetch_scalar
from sqlgrid.query.visibility import normalize_column_name
from sqlgrid.relations.resolver import RelationResolver
from sqlgrid.schema.introspector import SchemaIntrospector
from sqlgrid.schema.types import map_type_to_field_kind

from .config_service import GridSettings

_logger = get_logger(__name__)

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_-]+")


class GridService:
    """Serve pages, exports and writes for one grid.

    Instances own their schema and relation-option caches and are meant to
    live for one request.
    """

    def __init__(
        self,
        engine: Engine,
        config: GridConfig,
        *,
        settings: GridSettings | None = None,
        transforms: Mapping[str, ColumnTransform] | None = None,
        introspector: SchemaIntrospector | None = None,
    ) -> None:
        self.engine = engine
        self.config = config
        self.settings = settings or GridSettings()
        self.transforms = dict(transforms or {})
        self.introspector = introspector or SchemaIntrospector(engine)
        self.quoter = self.introspector.quoter
        self.compiler = QueryCompiler(self.introspector, self.quoter)
        self.relations = RelationResolver(engine, self.quoter)
        self.mutator = RecordMutator(engine, config, self.introspector, self.quoter)

    # ---- reads -------------------------------------------------------------
    def column_names(self) -> list[str]:
        """Visible display columns in order."""
        return self.compiler.visible_columns(self.config)

    def field_kinds(self) -> dict[str, str]:
        """``{display column: field kind}``; explicit ``change_type`` wins."""
        kinds: dict[str, str] = {}
        for name, col in self.compiler.base_schema(self.config).items():
            hint = map_type_to_field_kind(col.raw_type)
            kinds[name] = hint.kind.value if hint else "text"
        for join, col in self.compiler.join_columns(self.config):
            hint = map_type_to_field_kind(col.raw_type)
            kinds[f"{join.alias}{Constants.JOIN_COLUMN_SEPARATOR}{col.name}"] = (
                hint.kind.value if hint else "text"
            )
        for name, behavior in self.config.behaviors_for_mode(EditMode.VIEW).items():
            if behavior.change_type is not None:
                kinds[name] = behavior.change_type.kind.value
        return kinds

    def resolve_per_page(self, per_page: int | None = None) -> int:
        if per_page is None:
            per_page = self.config.per_page
        if per_page is None:
            per_page = self.settings.per_page
        return max(0, int(per_page))

    def fetch_page(
        self,
        page: int = 1,
        per_page: int | None = None,
        search_term: str | None = None,
        search_column: str | None = None,
    ) -> PageResult:
        """Fetch one page of rows with labels, summaries and metadata.

        ``per_page=0`` returns every matching row on a single page. A page
        number past the end is clamped to the last page.
        """
        size = self.resolve_per_page(per_page)
        column = search_column or self.config.default_search_column
        term = (search_term or "").strip() or None

        with self.engine.connect() as conn:
            count_query = self.compiler.compile_count(self.config, term, column)
            total = int(fetch_scalar(conn, count_query, "count rows") or 0)
            total_pages = max(1, math.ceil(total / size)) if size > 0 else 1
            current = min(max(1, int(page)), total_pages)
            offset = (current - 1) * size if size > 0 else 0
            select = self.compiler.compile_select(
                self.config, limit=size, offset=offset, search_term=term, search_column=column
            )
            rows = fetch_rows(conn, select, "fetch page")

        rows = self.relations.resolve(rows, self.config.relations)
        kinds = self.field_kinds()
        row_classes, cell_classes = self._highlight(rows, kinds)
        rows = [self._present(row) for row in rows]
        summaries = self._summaries(term, column)

        _logger.info(
            "Fetched %s page %d/%d (%d of %d rows)",
            self.config.table,
            current,
            total_pages,
            len(rows),
            total,
        )
        return PageResult(
            rows=rows,
            columns=self.column_names(),
            pagination=Pagination(
                current_page=current, total_pages=total_pages, total_rows=total, per_page=size
            ),
            summaries=summaries,
            meta={
                "table": self.config.table,
                "primary_key": self.config.primary_key,
                "labels": {c: self.config.label_for(c) for c in self.column_names()},
                "field_types": kinds,
                "sortable": [
                    c for c in self.column_names() if c not in self.config.sort_disabled
                ],
                "search": {
                    "term": term,
                    "column": column,
                    "columns": list(self.compiler.searchable_columns(self.config)),
                },
                "per_page_options": list(
                    self.config.per_page_options or self.settings.per_page_options
                ),
                "row_classes": row_classes,
                "cell_classes": cell_classes,
            },
        )

    def get_record(self, pk_column: str, pk_value: Any) -> dict[str, Any]:
        return self.mutator.get_record(pk_column, pk_value)

    def relation_options(self, field: str) -> dict[str, str]:
        """Picker options for the relation configured on ``field``."""
        relation = self._relation_for(field)
        return self.relations.options(relation) if relation is not None else {}

    def export_csv(
        self,
        search_term: str | None = None,
        search_column: str | None = None,
        *,
        delimiter: str | None = None,
        preamble: str | None = None,
    ) -> str:
        """Every matching row as CSV text with a UTF-8 BOM and a label header."""
        page = self.fetch_page(1, 0, search_term, search_column)
        buffer = io.StringIO()
        buffer.write("\ufeff")
        if preamble:
            buffer.write(preamble + "\r\n")
        writer = csv.writer(
            buffer, delimiter=delimiter or self.settings.export_delimiter, lineterminator="\r\n"
        )
        if page.columns:
            writer.writerow([self.config.label_for(c) for c in page.columns])
        for row in page.rows:
            writer.writerow([_export_cell(row.get(c)) for c in page.columns])
        return buffer.getvalue()

    def export_filename(self, extension: str = "csv") -> str:
        safe = _UNSAFE_FILENAME.sub("_", self.config.table) or "export"
        return f"{safe}.{extension}"

    # ---- writes ------------------------------------------------------------
    def create(
        self, fields: Mapping[str, Any], mode: str | EditMode = EditMode.CREATE
    ) -> dict[str, Any]:
        return self.mutator.create(fields, mode)

    def update(
        self,
        pk_column: str,
        pk_value: Any,
        fields: Mapping[str, Any],
        mode: str | EditMode = EditMode.EDIT,
    ) -> dict[str, Any]:
        return self.mutator.update(pk_column, pk_value, fields, mode)

    def update_many(
        self,
        pk_column: str,
        pk_values: Iterable[Any],
        fields: Mapping[str, Any],
        mode: str | EditMode = EditMode.EDIT,
    ) -> BatchResult:
        return self.mutator.update_many(pk_column, pk_values, fields, mode)

    def delete(self, pk_column: str, pk_value: Any) -> bool:
        return self.mutator.delete(pk_column, pk_value)

    def delete_many(self, pk_column: str, pk_values: Iterable[Any]) -> BatchResult:
        return self.mutator.delete_many(pk_column, pk_values)

    def duplicate(self, pk_column: str, pk_value: Any) -> dict[str, Any]:
        return self.mutator.duplicate(pk_column, pk_value)

    # ---- internals ---------------------------------------------------------
    def _relation_for(self, field: str) -> RelationSpec | None:
        for relation in self.config.relations:
            if relation.local_field == field:
                return relation
        return None

    def _summaries(self, term: str | None, column: str | None) -> list[SummaryResult]:
        results: list[SummaryResult] = []
        for spec in self.config.summaries:
            query = self.compiler.compile_aggregate(self.config, spec, term, column)
            try:
                with self.engine.connect() as conn:
                    value = fetch_scalar(conn, query, "aggregate")
            except QueryExecutionError as e:
                _logger.warning("Skipping %s(%s) summary: %s", spec.kind.value, spec.column, e)
                continue
            results.append(
                SummaryResult(
                    column=spec.column,
                    kind=spec.kind.value,
                    label=spec.label,
                    value=_format_aggregate(value, spec),
                )
            )
        return results

    def _highlight(
        self, rows: list[dict[str, Any]], kinds: Mapping[str, str]
    ) -> tuple[list[list[str]], list[dict[str, list[str]]]]:
        row_classes: list[list[str]] = []
        cell_classes: list[dict[str, list[str]]] = []
        for row in rows:
            raw = row.get(Constants.RAW_VALUES_KEY, {})
            on_row: list[str] = []
            on_cells: dict[str, list[str]] = {}
            for spec in self.config.highlights:
                name = normalize_column_name(spec.column)
                value = raw.get(name, row.get(name))
                try:
                    hit = evaluate(spec, value, _kind_of(kinds.get(name)))
                except (TypeError, ValueError) as e:
                    _logger.warning("Highlight on %s skipped: %s", name, e)
                    continue
                if not hit:
                    continue
                target = on_row if spec.whole_row else on_cells.setdefault(name, [])
                if spec.css_class not in target:
                    target.append(spec.css_class)
            row_classes.append(on_row)
            cell_classes.append(on_cells)
        return row_classes, cell_classes

    def _present(self, row: dict[str, Any]) -> dict[str, Any]:
        """Apply registered transforms, then display patterns, to one row."""
        context = {k: v for k, v in row.items() if k != Constants.RAW_VALUES_KEY}
        for ref, name in self.config.column_transforms.items():
            column = normalize_column_name(ref)
            if column not in row:
                continue
            transform = self.transforms.get(name)
            if transform is None:
                _logger.warning("No column transform registered as %r", name)
                continue
            row[column] = transform(row[column], context, column)
        for ref, pattern in self.config.column_patterns.items():
            column = normalize_column_name(ref)
            if column in row:
                row[column] = render_template(pattern, {**context, "value": row[column]})
        return row


def _kind_of(value: str | None) -> FieldKind | None:
    if value is None:
        return None
    try:
        return FieldKind(value)
    except ValueError:
        return None


def _format_aggregate(value: Any, spec: SummarySpec) -> str | int | float | None:
    if value is None:
        return None
    if spec.precision is not None:
        try:
            return f"{value:.{spec.precision}f}"
        except (TypeError, ValueError):
            return str(value)
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value if isinstance(value, int | float | str) else str(value)


def _export_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict | list):
        return json.dumps(value, ensure_ascii=False)
    return str(value)
