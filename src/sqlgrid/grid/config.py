"""Immutable grid configuration model.

A ``GridConfig`` describes one tabular view over one base table. It is
produced by ``GridBuilder`` (or decoded from a transport payload) and is
never mutated afterwards, so compiled statements are reproducible and a
config can be shared read-only.

Models:
- ColumnCondition / RawCondition: the two WHERE condition variants
- JoinSpec, RelationSpec, Subselect, OrderSpec, SummarySpec: query parts
- ChangeType, FieldBehavior: per-field editing rules
- HighlightSpec: conditional row/cell classes
- GridConfig: the complete view description
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol

from sqlgrid.constants import Constants, EditMode, FieldKind, SummaryKind


def freeze_mapping(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    """Read-only copy of ``mapping``."""
    return MappingProxyType(dict(mapping))


class ColumnTransform(Protocol):
    """Host-supplied display transform registered under a name.

    Called with the display value, the full row and the column name; the
    return value replaces the display value.
    """

    def __call__(self, value: Any, row: Mapping[str, Any], column: str) -> Any: ...


@dataclass(frozen=True)
class ColumnCondition:
    """``<column> <operator> <value>`` with the value bound as a parameter."""

    column: str
    operator: str
    value: Any = None
    glue: str = "AND"


@dataclass(frozen=True)
class RawCondition:
    """A caller-trusted SQL fragment used as a condition verbatim."""

    sql: str
    glue: str = "AND"


WhereCondition = ColumnCondition | RawCondition


@dataclass(frozen=True)
class JoinSpec:
    """LEFT JOIN ``target_table AS alias ON source_field = alias.target_field``."""

    source_field: str
    target_table: str
    target_field: str
    alias: str
    exclude_from_insert: bool = False


@dataclass(frozen=True)
class RelationSpec:
    """Lookup replacing a stored key with a label read from another table."""

    local_field: str
    target_table: str
    target_key: str
    label_fields: tuple[str, ...]
    extra_where: str | None = None
    order_by: str | None = None
    multi_valued: bool = False


@dataclass(frozen=True)
class Subselect:
    alias: str
    sql: str


@dataclass(frozen=True)
class OrderSpec:
    column: str
    direction: str = "ASC"


@dataclass(frozen=True)
class SummarySpec:
    column: str
    kind: SummaryKind
    label: str | None = None
    precision: int | None = None


@dataclass(frozen=True)
class ChangeType:
    """Explicit field kind for a form field, with a default and widget params."""

    kind: FieldKind
    default: Any = None
    params: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", freeze_mapping(self.params))


@dataclass(frozen=True)
class FieldBehavior:
    """Editing rules for one field in one mode.

    Attributes:
        change_type: Explicit field kind overriding the inferred one
        readonly: Incoming values for the field are ignored
        disabled: Incoming values for the field are ignored
        pass_var: Template always written to the field
        pass_default: Template written when the field is left empty
        validation_required: Minimum trimmed length
        validation_pattern: Regular expression the value must match
        unique: Value must not exist on another row
    """

    change_type: ChangeType | None = None
    readonly: bool = False
    disabled: bool = False
    pass_var: str | None = None
    pass_default: str | None = None
    validation_required: int | None = None
    validation_pattern: str | None = None
    unique: bool = False

    def merged(self, override: FieldBehavior) -> FieldBehavior:
        """Layer a mode-specific behavior over this (``all``) behavior."""
        return FieldBehavior(
            change_type=override.change_type or self.change_type,
            readonly=self.readonly or override.readonly,
            disabled=self.disabled or override.disabled,
            pass_var=override.pass_var if override.pass_var is not None else self.pass_var,
            pass_default=(
                override.pass_default if override.pass_default is not None else self.pass_default
            ),
            validation_required=(
                override.validation_required
                if override.validation_required is not None
                else self.validation_required
            ),
            validation_pattern=(
                override.validation_pattern
                if override.validation_pattern is not None
                else self.validation_pattern
            ),
            unique=self.unique or override.unique,
        )

    @property
    def blocks_input(self) -> bool:
        return self.readonly or self.disabled


@dataclass(frozen=True)
class HighlightSpec:
    """Attach ``css_class`` to a cell (or the whole row) when a condition holds."""

    column: str
    operator: str
    value: Any
    css_class: str
    whole_row: bool = False


@dataclass(frozen=True)
class GridConfig:
    """Complete description of one grid over one base table."""

    table: str
    primary_key: str = Constants.DEFAULT_PRIMARY_KEY
    where: tuple[WhereCondition, ...] = ()
    joins: tuple[JoinSpec, ...] = ()
    relations: tuple[RelationSpec, ...] = ()
    base_query: str | None = None
    subselects: tuple[Subselect, ...] = ()
    columns: tuple[str, ...] = ()
    reverse_columns: bool = False
    order_by: tuple[OrderSpec, ...] = ()
    sort_disabled: frozenset[str] = frozenset()
    search_columns: tuple[str, ...] = ()
    default_search_column: str | None = None
    summaries: tuple[SummarySpec, ...] = ()
    behaviors: Mapping[str, Mapping[str, FieldBehavior]] = field(default_factory=dict, hash=False)
    no_quotes: frozenset[str] = frozenset()
    labels: Mapping[str, str] = field(default_factory=dict, hash=False)
    highlights: tuple[HighlightSpec, ...] = ()
    column_patterns: Mapping[str, str] = field(default_factory=dict, hash=False)
    column_transforms: Mapping[str, str] = field(default_factory=dict, hash=False)
    per_page: int | None = None
    per_page_options: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        frozen_behaviors = {mode: freeze_mapping(f) for mode, f in self.behaviors.items()}
        object.__setattr__(self, "behaviors", freeze_mapping(frozen_behaviors))
        for name in ("labels", "column_patterns", "column_transforms"):
            object.__setattr__(self, name, freeze_mapping(getattr(self, name)))

    @property
    def join_aliases(self) -> frozenset[str]:
        return frozenset(join.alias for join in self.joins)

    @property
    def subselect_aliases(self) -> frozenset[str]:
        return frozenset(sub.alias for sub in self.subselects)

    def behavior_for(self, field_name: str, mode: EditMode) -> FieldBehavior:
        """Effective behavior of a field: ``all`` rules layered with ``mode`` rules."""
        base = self.behaviors.get(EditMode.ALL.value, {}).get(field_name, FieldBehavior())
        if mode is EditMode.ALL:
            return base
        specific = self.behaviors.get(mode.value, {}).get(field_name)
        return base.merged(specific) if specific is not None else base

    def behaviors_for_mode(self, mode: EditMode) -> dict[str, FieldBehavior]:
        names: list[str] = []
        for scope in (EditMode.ALL.value, mode.value):
            for name in self.behaviors.get(scope, {}):
                if name not in names:
                    names.append(name)
        return {name: self.behavior_for(name, mode) for name in names}

    def label_for(self, column: str) -> str:
        return self.labels.get(column, column)


__all__ = [
    "ChangeType",
    "ColumnCondition",
    "ColumnTransform",
    "FieldBehavior",
    "GridConfig",
    "HighlightSpec",
    "JoinSpec",
    "OrderSpec",
    "RawCondition",
    "RelationSpec",
    "Subselect",
    "SummarySpec",
    "WhereCondition",
]
