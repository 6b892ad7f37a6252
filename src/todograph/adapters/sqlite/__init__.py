"""SQLite adapter module - shared task store implementation."""

from todograph.adapters.sqlite.connection import Database, default_db_path
from todograph.adapters.sqlite.guard import ConcurrencyGuard
from todograph.adapters.sqlite.history_repository import SqliteHistoryRepository
from todograph.adapters.sqlite.list_repository import SqliteListRepository
from todograph.adapters.sqlite.task_repository import SqliteTaskRepository

__all__ = [
    "ConcurrencyGuard",
    "Database",
    "SqliteHistoryRepository",
    "SqliteListRepository",
    "SqliteTaskRepository",
    "default_db_path",
]
