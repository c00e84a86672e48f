"""Store SPI and implementations."""

from .base import BaseStore, PurgeResult, SyncResult
from .sqlite_store import SQLiteCircularStore

__all__ = ["BaseStore", "PurgeResult", "SQLiteCircularStore", "SyncResult"]
