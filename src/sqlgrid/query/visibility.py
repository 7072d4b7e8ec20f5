"""Visibility, search and sort resolution for display columns.

Display columns are the names the presentation layer sees: base table
columns as-is, joined columns as ``<alias>__<column>`` and subselect
aliases. ``alias.column`` and ``alias__column`` are interchangeable on input.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from sqlgrid.constants import Constants
from sqlgrid.schema.quoting import IdentifierQuoter
from sqlgrid.schema.types import is_unsearchable_type

_SEP = Constants.JOIN_COLUMN_SEPARATOR


def normalize_column_name(name: str) -> str:
    """Map ``alias.column`` to ``alias__column``; other names are unchanged."""
    return name.strip().replace(".", _SEP)


def split_join_column(display: str, join_aliases: Iterable[str]) -> tuple[str, str] | None:
    """Return ``(alias, column)`` when ``display`` names a joined column."""
    name = normalize_column_name(display)
    if _SEP not in name:
        return None
    alias, column = name.split(_SEP, 1)
    if alias in set(join_aliases) and column:
        return alias, column
    return None


def resolve_visible_columns(
    available: Sequence[str], columns: Sequence[str], *, reverse: bool = False
) -> list[str]:
    """Apply an allow-list (or deny-list when ``reverse``) to ``available``.

    A ``*`` entry in an allow-list expands to every available column not
    already listed. The result is never empty when ``available`` is not:
    a filter that removes everything falls back to ``available``.
    """
    available_list = list(available)
    if not columns:
        return available_list

    wanted = [normalize_column_name(c) if c != "*" else c for c in columns]
    if reverse:
        denied = set(wanted)
        return [c for c in available_list if c not in denied] or available_list

    present = set(available_list)
    result: list[str] = []
    for name in wanted:
        if name == "*":
            result.extend([c for c in available_list if c not in result])
        elif name in present and name not in result:
            result.append(name)
    return result or available_list


def resolve_sortable(column: str, disabled: Iterable[str]) -> bool:
    """A column is sortable unless it is explicitly disabled."""
    return normalize_column_name(column) not in {normalize_column_name(d) for d in disabled}


def display_to_sql(display: str, join_aliases: Iterable[str], quoter: IdentifierQuoter) -> str:
    """Qualified, quoted SQL expression for a display column."""
    joined = split_join_column(display, join_aliases)
    if joined is not None:
        alias, column = joined
        return quoter.quote_qualified(f"{alias}.{column}")
    return quoter.quote_qualified(f"{Constants.MAIN_ALIAS}.{display}")


def resolve_searchable_columns(
    candidates: Sequence[str],
    column_types: Mapping[str, str],
    *,
    join_aliases: Iterable[str],
    subselect_aliases: Iterable[str],
    quoter: IdentifierQuoter,
) -> dict[str, str]:
    """Map searchable display columns to SQL expressions usable in WHERE.

    Subselect aliases cannot be referenced in WHERE and binary, JSON and
    geometry typed columns are never matched with LIKE.
    """
    skipped = set(subselect_aliases)
    aliases = set(join_aliases)
    out: dict[str, str] = {}
    for display in candidates:
        name = normalize_column_name(display)
        if name in skipped or name in out:
            continue
        if is_unsearchable_type(column_types.get(name, "")):
            continue
        out[name] = display_to_sql(name, aliases, quoter)
    return out
