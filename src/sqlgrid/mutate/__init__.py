"""Validated record writes."""

from __future__ import annotations

from .conflicts import is_duplicate_key_error, next_copy_value, strip_copy_suffix
from .mutator import RecordMutator
from .templates import is_empty_value, render_template
from .validation import FieldValidator, compile_pattern

__all__ = [
    "FieldValidator",
    "RecordMutator",
    "compile_pattern",
    "is_duplicate_key_error",
    "is_empty_value",
    "next_copy_value",
    "render_template",
    "strip_copy_suffix",
]
