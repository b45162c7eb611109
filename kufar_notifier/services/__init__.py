"""
Service layer for the Kufar notifier.

Configuration loading and the persistent store shared by the sync
pipeline and the bot command surface.
"""

from .config_manager import ConfigurationManager
from .store import SQLiteStore

__all__ = [
    "ConfigurationManager",
    "SQLiteStore",
]
