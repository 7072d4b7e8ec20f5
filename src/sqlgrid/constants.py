"""Constants and enums for sqlgrid.

This module contains the configuration defaults, identifier patterns, type
token sets and enumerations shared by the builder, the compiler and the
mutator.
"""

from __future__ import annotations

from enum import Enum
import re
from typing import Final


class Constants:
    """Configuration constants for sqlgrid."""

    # Defaults
    DEFAULT_PRIMARY_KEY: Final[str] = "id"
    DEFAULT_PER_PAGE: Final[int] = 10
    DEFAULT_PER_PAGE_OPTIONS: Final[tuple[int, ...]] = (5, 10, 25, 50, 0)
    DEFAULT_EXPORT_DELIMITER: Final[str] = ","

    # Aliasing
    MAIN_ALIAS: Final[str] = "main"
    JOIN_COLUMN_SEPARATOR: Final[str] = "__"
    RAW_VALUES_KEY: Final[str] = "__raw__"
    AGGREGATE_ALIAS: Final[str] = "aggregate"
    COUNT_ALIAS: Final[str] = "total"

    # Duplication
    COPY_SUFFIX: Final[str] = " (copy)"
    MAX_COPY_ATTEMPTS: Final[int] = 100

    # Regex patterns
    IDENTIFIER_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_]+$")
    QUALIFIED_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_]+(\.[A-Za-z0-9_]+)?$")
    COPY_SUFFIX_PATTERN: Final[re.Pattern[str]] = re.compile(r" \(copy(?: \d+)?\)$")
    DELIMITED_REGEX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^/(.*)/([imsxu]*)$", re.DOTALL)

    # Type token sets used by field-kind inference
    NUMERIC_TYPE_TOKENS: Final[frozenset[str]] = frozenset(
        {
            "int",
            "integer",
            "smallint",
            "tinyint",
            "mediumint",
            "bigint",
            "decimal",
            "numeric",
            "float",
            "double",
            "real",
            "serial",
            "bigserial",
            "smallserial",
            "money",
            "year",
        }
    )
    CONTINUOUS_TYPE_TOKENS: Final[frozenset[str]] = frozenset(
        {"decimal", "numeric", "float", "double", "real", "money"}
    )
    BOOLEAN_TYPE_TOKENS: Final[frozenset[str]] = frozenset({"bool", "boolean"})
    JSON_TYPE_TOKENS: Final[frozenset[str]] = frozenset({"json", "jsonb"})

    # Columns of these families are never searched with LIKE
    UNSEARCHABLE_TYPE_TOKENS: Final[frozenset[str]] = frozenset(
        {
            "blob",
            "tinyblob",
            "mediumblob",
            "longblob",
            "binary",
            "varbinary",
            "bytea",
            "image",
            "json",
            "jsonb",
            "geometry",
            "geography",
            "point",
            "linestring",
            "polygon",
            "multipoint",
            "multilinestring",
            "multipolygon",
            "geometrycollection",
        }
    )


class FieldKind(Enum):
    """Abstract field kinds inferred from raw database column types."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    BOOLEAN = "bool"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    JSON = "json"


class EditMode(Enum):
    """Form modes that field behaviors can be scoped to."""

    CREATE = "create"
    EDIT = "edit"
    VIEW = "view"
    ALL = "all"


class SummaryKind(Enum):
    """Aggregate functions available for column summaries."""

    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    COUNT = "count"


class Glue(Enum):
    """Logical connective joining a condition to the previous one."""

    AND = "AND"
    OR = "OR"


WHERE_OPERATORS: Final[frozenset[str]] = frozenset(
    {
        "=",
        "!=",
        "<>",
        ">",
        ">=",
        "<",
        "<=",
        "LIKE",
        "NOT LIKE",
        "IN",
        "NOT IN",
        "IS NULL",
        "IS NOT NULL",
    }
)
LIST_OPERATORS: Final[frozenset[str]] = frozenset({"IN", "NOT IN"})
NULL_OPERATORS: Final[frozenset[str]] = frozenset({"IS NULL", "IS NOT NULL"})
NUMERIC_OPERATORS: Final[frozenset[str]] = frozenset({">", ">=", "<", "<="})

HIGHLIGHT_OPERATORS: Final[frozenset[str]] = frozenset(
    {
        "equals",
        "not_equals",
        "contains",
        "not_contains",
        "starts_with",
        "ends_with",
        "gt",
        "gte",
        "lt",
        "lte",
        "in",
        "not_in",
        "empty",
        "not_empty",
    }
)

__all__ = [
    "HIGHLIGHT_OPERATORS",
    "LIST_OPERATORS",
    "NULL_OPERATORS",
    "NUMERIC_OPERATORS",
    "WHERE_OPERATORS",
    "Constants",
    "EditMode",
    "FieldKind",
    "Glue",
    "SummaryKind",
]
