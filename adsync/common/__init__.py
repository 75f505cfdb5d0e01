"""
Common utilities and shared modules.
"""

from adsync.common.config import get_settings, settings
from adsync.common.database import DatabaseManager, db
from adsync.common.exceptions import AdSyncError
from adsync.common.logger import get_logger, log_context, logger

__all__ = [
    "settings",
    "get_settings",
    "logger",
    "get_logger",
    "log_context",
    "db",
    "DatabaseManager",
    "AdSyncError",
]
