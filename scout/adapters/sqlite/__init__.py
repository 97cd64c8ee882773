"""
SQLite Adapter - Directory storage, full-text search and embedding records.
"""

from .repository import SQLiteRepository

__all__ = ["SQLiteRepository"]
