"""Duplicate-key detection and `` (copy)`` value generation for duplication."""

from __future__ import annotations

from collections.abc import Callable, Iterator

from sqlgrid.constants import Constants

_DUPLICATE_SQLSTATE = "23505"
_MYSQL_DUPLICATE_CODES = frozenset({1062, 1586})
_SQLITE_DUPLICATE_NAMES = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


def is_duplicate_key_error(exc: BaseException) -> bool:
    """Whether ``exc`` (or the DBAPI error it wraps) is a unique violation."""
    orig = getattr(exc, "orig", None) or exc
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == _DUPLICATE_SQLSTATE:
        return True
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int) and args[0] in _MYSQL_DUPLICATE_CODES:
        return True
    if getattr(orig, "sqlite_errorname", None) in _SQLITE_DUPLICATE_NAMES:
        return True
    message = str(orig).lower()
    return "duplicate" in message or "unique constraint" in message


def strip_copy_suffix(value: str) -> str:
    return Constants.COPY_SUFFIX_PATTERN.sub("", value)


def copy_candidates(value: str) -> Iterator[str]:
    """``"x (copy)"``, ``"x (copy 2)"``, ... for ``value`` with any suffix removed."""
    base = strip_copy_suffix(value)
    yield f"{base}{Constants.COPY_SUFFIX}"
    for n in range(2, Constants.MAX_COPY_ATTEMPTS + 1):
        yield f"{base} (copy {n})"


def next_copy_value(value: str, exists: Callable[[str], bool]) -> str | None:
    """First copy candidate for which ``exists`` is false, if any."""
    for candidate in copy_candidates(value):
        if not exists(candidate):
            return candidate
    return None
