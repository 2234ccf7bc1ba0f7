"""SQLite storage provider implementations."""

from .draft_repo import SQLiteDraftRepo

__all__ = [
    "SQLiteDraftRepo",
]
