"""Business logic on top of the SQLite store."""

from .history_service import HistoryService
from .list_service import ListService
from .store import Store
from .task_service import TaskService

__all__ = ["HistoryService", "ListService", "Store", "TaskService"]
