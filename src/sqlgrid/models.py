"""Pydantic models for the structured outputs of a grid.

These are the shapes handed to the presentation and transport layers. They
never carry SQL; only rows, column names, pagination and summaries.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class Pagination(BaseModel):
    """Pagination window of a fetched page."""

    current_page: int = Field(ge=1, description="1-based page that was returned")
    total_pages: int = Field(ge=1, description="Number of pages for the current filter")
    total_rows: int = Field(ge=0, description="Rows matching the current filter")
    per_page: int = Field(ge=0, description="Page size; 0 means every row on one page")


class SummaryResult(BaseModel):
    """Aggregate value computed for one configured column summary."""

    column: str = Field(description="Column the aggregate was computed over")
    kind: str = Field(description="Aggregate function: sum, avg, min, max or count")
    label: str | None = Field(default=None, description="Optional display label")
    value: str | int | float | None = Field(
        default=None, description="Scalar result, fixed-point string when precision is set"
    )


class PageResult(BaseModel):
    """One page of grid data ready for rendering."""

    rows: list[dict[str, Any]] = Field(description="Rows with relation labels substituted")
    columns: list[str] = Field(description="Visibility-resolved display columns in order")
    pagination: Pagination
    summaries: list[SummaryResult] = Field(default_factory=list)
    meta: dict[str, Any] = Field(
        default_factory=dict,
        description="Primary key, labels, field kinds, highlight classes and search settings",
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="UTC ISO8601 timestamp of completion",
    )


class BatchFailure(BaseModel):
    """A single primary key that a batch operation could not process."""

    value: Any = Field(description="Primary key value that failed")
    error: str = Field(description="Reason reported for the failure")
    field_errors: dict[str, str] = Field(
        default_factory=dict, description="Per-field validation messages, when applicable"
    )


class BatchResult(BaseModel):
    """Outcome of a batch delete or batch update."""

    count: int = Field(ge=0, description="Rows that were deleted or updated")
    failures: list[BatchFailure] = Field(default_factory=list)


__all__ = [
    "BatchFailure",
    "BatchResult",
    "PageResult",
    "Pagination",
    "SummaryResult",
]
