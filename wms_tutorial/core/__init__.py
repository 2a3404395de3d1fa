"""Core app configuration, database pool and token handling."""

from wms_tutorial.core.config import get_settings, settings
from wms_tutorial.core.database import ConnectionPool

__all__ = ["ConnectionPool", "get_settings", "settings"]
