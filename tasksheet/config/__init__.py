"""Configuration management for tasksheet."""

from tasksheet.config.settings import (
    TasksheetConfig,
    GoogleSheetsConfig,
    SyncConfig,
    StorageConfig,
    LoggingConfig,
)

__all__ = [
    "TasksheetConfig",
    "GoogleSheetsConfig",
    "SyncConfig",
    "StorageConfig",
    "LoggingConfig",
]
