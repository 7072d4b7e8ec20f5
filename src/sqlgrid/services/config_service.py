"""Configuration service for sqlgrid.

This module provides configuration management and database connection
utilities. It centralizes environment variable handling and engine creation
so the rest of the library receives plain values through ``GridSettings``.
"""

from __future__ import annotations

from dataclasses import dataclass
import os

import dotenv
import sqlalchemy as sa
from sqlalchemy.pool import StaticPool

from sqlgrid.constants import Constants
from sqlgrid.exceptions import ConfigurationError


@dataclass(frozen=True)
class GridSettings:
    """Ambient defaults applied to every grid served by one process."""

    per_page: int = Constants.DEFAULT_PER_PAGE
    per_page_options: tuple[int, ...] = Constants.DEFAULT_PER_PAGE_OPTIONS
    export_delimiter: str = Constants.DEFAULT_EXPORT_DELIMITER


class ConfigService:
    """Service for managing configuration and database connections."""

    @staticmethod
    def load_environment() -> None:
        """Load variables from a ``.env`` file without overriding the process."""
        dotenv.load_dotenv()

    @staticmethod
    def get_database_url() -> str:
        """Get database URL from environment variable.

        Returns:
            Database URL string

        Raises:
            ConfigurationError: If SQLGRID_DATABASE_URL environment variable is not set
        """
        database_url = os.getenv("SQLGRID_DATABASE_URL")
        if not database_url:
            error_msg = "SQLGRID_DATABASE_URL environment variable not set"
            raise ConfigurationError(error_msg)
        return database_url

    @staticmethod
    def create_database_engine(url: str) -> sa.Engine:
        """Create SQLAlchemy database engine.

        In-memory SQLite URLs share a single connection so every checkout
        sees the same database.

        Args:
            url: Database connection URL

        Returns:
            SQLAlchemy Engine instance
        """
        parsed = sa.engine.make_url(url)
        if parsed.get_backend_name() == "sqlite" and parsed.database in {None, "", ":memory:"}:
            return sa.create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return sa.create_engine(url, pool_pre_ping=True)

    # ---- Grid defaults ----------------------------------------------------
    @staticmethod
    def per_page() -> int:
        """Default number of rows per page; 0 shows every row."""
        val = os.getenv("SQLGRID_PER_PAGE", str(Constants.DEFAULT_PER_PAGE))
        try:
            n = int(val)
        except ValueError:
            n = Constants.DEFAULT_PER_PAGE
        return max(0, n)

    @staticmethod
    def per_page_options() -> tuple[int, ...]:
        """Page sizes offered to the user, e.g. ``"5,10,25,all"``."""
        val = os.getenv("SQLGRID_PER_PAGE_OPTIONS", "")
        options: list[int] = []
        for part in val.split(","):
            token = part.strip().lower()
            if not token:
                continue
            if token == "all":
                n = 0
            else:
                try:
                    n = int(token)
                except ValueError:
                    continue
            if n >= 0 and n not in options:
                options.append(n)
        return tuple(options) or Constants.DEFAULT_PER_PAGE_OPTIONS

    @staticmethod
    def export_delimiter() -> str:
        """Single-character CSV delimiter; ``tab`` or ``\\t`` select a tab."""
        val = os.getenv("SQLGRID_EXPORT_DELIMITER", Constants.DEFAULT_EXPORT_DELIMITER)
        if val.strip().lower() in {"tab", "\\t"} or val == "\t":
            return "\t"
        return val.strip()[:1] or Constants.DEFAULT_EXPORT_DELIMITER

    @staticmethod
    def grid_settings() -> GridSettings:
        """Read every grid default from the environment (after ``.env``)."""
        ConfigService.load_environment()
        return GridSettings(
            per_page=ConfigService.per_page(),
            per_page_options=ConfigService.per_page_options(),
            export_delimiter=ConfigService.export_delimiter(),
        )
