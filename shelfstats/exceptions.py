"""
Exception classes raised at the configuration and I/O boundaries
"""
from typing import Optional, Dict, Any


class ShelfStatsError(Exception):
    """Base exception for all custom exceptions"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(ShelfStatsError):
    """Raised when a time zone, day start or threshold setting is invalid"""
    pass


class StatisticsDatabaseError(ShelfStatsError):
    """Raised when the statistics database cannot be copied, opened or read"""
    pass


class LibraryScanError(ShelfStatsError):
    """Raised when the library directory cannot be walked"""
    pass
