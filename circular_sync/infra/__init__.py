"""Infra layer utilities (SQLite storage)."""

from .storage import SQLiteManager, StoreError

__all__ = ["SQLiteManager", "StoreError"]
