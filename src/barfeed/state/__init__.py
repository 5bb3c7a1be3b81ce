"""Bar store interfaces and implementations."""

from .sqlite_store import SqliteBarStore
from .store import BarHistoryStore, BarStore

__all__ = ["BarStore", "BarHistoryStore", "SqliteBarStore"]
