"""Services: environment configuration and the grid facade."""

from __future__ import annotations

from .config_service import ConfigService, GridSettings
from .grid_service import GridService

__all__ = ["ConfigService", "GridService", "GridSettings"]
