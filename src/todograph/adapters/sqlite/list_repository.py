"""SQLite repository for task lists."""

from __future__ import annotations

import sqlite3

from todograph.adapters.sqlite.connection import Database
from todograph.adapters.sqlite.utils import row_to_list
from todograph.exceptions import NotFoundError
from todograph.models.core import TaskList


class SqliteListRepository:
    """Row-level access to the ``lists`` table."""

    def __init__(self, database: Database):
        self.database = database

    @property
    def connection(self) -> sqlite3.Connection:
        return self.database.connection

    def get(self, name: str) -> TaskList | None:
        row = self.connection.execute(
            "SELECT * FROM lists WHERE name = ?", (name,)
        ).fetchone()
        return row_to_list(row) if row else None

    def require(self, name: str) -> TaskList:
        """Get a list or raise NotFoundError."""
        task_list = self.get(name)
        if task_list is None:
            raise NotFoundError(name, kind="list")
        return task_list

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    def list_all(self) -> list[TaskList]:
        rows = self.connection.execute(
            "SELECT * FROM lists ORDER BY sort_order, name"
        ).fetchall()
        return [row_to_list(row) for row in rows]

    def next_sort_order(self) -> int:
        row = self.connection.execute("SELECT MAX(sort_order) FROM lists").fetchone()
        return (row[0] if row[0] is not None else -1) + 1

    def insert(self, task_list: TaskList) -> None:
        self.connection.execute(
            "INSERT INTO lists (name, is_collapsed, sort_order) VALUES (?, ?, ?)",
            (task_list.name, int(task_list.is_collapsed), task_list.sort_order),
        )

    def ensure(self, name: str, sort_order: int = 0) -> bool:
        """Create the list if missing.

        Returns:
            True if the list was created
        """
        cursor = self.connection.execute(
            "INSERT OR IGNORE INTO lists (name, is_collapsed, sort_order) VALUES (?, 0, ?)",
            (name, sort_order),
        )
        return cursor.rowcount > 0

    def rename(self, old_name: str, new_name: str) -> None:
        """Rename a list; tasks follow via ON UPDATE CASCADE."""
        cursor = self.connection.execute(
            "UPDATE lists SET name = ? WHERE name = ?", (new_name, old_name)
        )
        if cursor.rowcount == 0:
            raise NotFoundError(old_name, kind="list")

    def delete(self, name: str) -> None:
        """Delete a list; its tasks and their edges follow via ON DELETE CASCADE."""
        self.connection.execute("DELETE FROM lists WHERE name = ?", (name,))

    def set_collapsed(self, name: str, collapsed: bool) -> None:
        cursor = self.connection.execute(
            "UPDATE lists SET is_collapsed = ? WHERE name = ?", (int(collapsed), name)
        )
        if cursor.rowcount == 0:
            raise NotFoundError(name, kind="list")

    def set_sort_orders(self, orders: dict[str, int]) -> None:
        self.connection.executemany(
            "UPDATE lists SET sort_order = ? WHERE name = ?",
            [(sort_order, name) for name, sort_order in orders.items()],
        )
