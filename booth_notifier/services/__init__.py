"""
Service layer for the BOOTH notifier.

This module contains the configuration manager and the SQLite repository
that stores poll snapshots, item records, guilds, channels and filters.
"""

from .config_manager import ConfigurationManager
from .repository import SQLiteRepository

__all__ = [
    "ConfigurationManager",
    "SQLiteRepository",
]
