"""SQLite repository for tasks and their relationship edges."""

from __future__ import annotations

import json
import sqlite3
from collections import deque
from datetime import date, datetime, timedelta
from typing import Any

from todograph.adapters.sqlite.connection import Database
from todograph.adapters.sqlite.schema import TASK_COLUMNS
from todograph.adapters.sqlite.utils import (
    canonical_pair,
    format_date_value,
    format_datetime,
    generate_task_id,
    row_to_task,
    task_to_row,
)
from todograph.exceptions import NotFoundError, ValidationError
from todograph.models.core import Priority, Task, TaskStatus
from todograph.parsing.search_filters import SearchFilters

_MAX_ID_ATTEMPTS = 1000

# Pending and in-progress first, then by most recently bumped
_ORDER_BY = "ORDER BY CASE WHEN status = 2 THEN 1 ELSE 0 END, sort_order DESC, created_at DESC"


class SqliteTaskRepository:
    """Row-level access to tasks, blocking edges and related edges.

    The repository performs no validation beyond existence checks and never
    records undo commands; callers own both.
    """

    def __init__(self, database: Database):
        """Initialize task repository.

        Args:
            database: Store handle whose connection is used for every query
        """
        self.database = database

    @property
    def connection(self) -> sqlite3.Connection:
        return self.database.connection

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> Task | None:
        """Get a task by ID, trashed or not."""
        row = self.connection.execute(
            "SELECT * FROM tasks WHERE id = ?", (task_id,)
        ).fetchone()
        return row_to_task(row) if row else None

    def require(self, task_id: str, allow_trashed: bool = False) -> Task:
        """Get a task or raise.

        Raises:
            NotFoundError: If the task does not exist, or is trashed and
                ``allow_trashed`` is False
        """
        task = self.get(task_id)
        if task is None or (task.is_trashed and not allow_trashed):
            raise NotFoundError(task_id)
        return task

    def exists(self, task_id: str) -> bool:
        row = self.connection.execute(
            "SELECT 1 FROM tasks WHERE id = ?", (task_id,)
        ).fetchone()
        return row is not None

    def list_tasks(
        self,
        list_name: str | None = None,
        trashed: bool = False,
        include_done: bool = True,
    ) -> list[Task]:
        """List tasks, optionally filtered by list.

        Args:
            list_name: Only tasks in this list; all lists if None
            trashed: List trashed tasks instead of live ones
            include_done: Include tasks whose status is Done
        """
        conditions = ["is_trashed = ?"]
        params: list[Any] = [int(trashed)]
        if list_name is not None:
            conditions.append("list_name = ?")
            params.append(list_name)
        if not include_done:
            conditions.append("status != ?")
            params.append(int(TaskStatus.DONE))

        where_clause = " AND ".join(conditions)
        rows = self.connection.execute(
            f"SELECT * FROM tasks WHERE {where_clause} {_ORDER_BY}", params
        ).fetchall()
        return [row_to_task(row) for row in rows]

    def search(self, filters: SearchFilters, today: date) -> list[Task]:
        """Find live tasks matching every filter in ``filters``.

        Free text is a case-insensitive substring match on the description.
        Tags are compared after loading since they are stored as JSON.

        Args:
            filters: Parsed search query
            today: Reference day for ``due:`` filters
        """
        conditions = ["is_trashed = 0"]
        params: list[Any] = []
        if filters.text:
            escaped = filters.text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            conditions.append("description LIKE ? ESCAPE '\\'")
            params.append(f"%{escaped}%")
        if filters.status is not None:
            conditions.append("status = ?")
            params.append(int(filters.status))
        if filters.priority is not None:
            conditions.append("priority = ?")
            params.append(int(filters.priority))
        if filters.list_name is not None:
            conditions.append("list_name = ?")
            params.append(filters.list_name)

        today_text = format_date_value(today)
        if filters.due == "today":
            conditions.append("due_date = ?")
            params.append(today_text)
        elif filters.due == "overdue":
            conditions.append("due_date IS NOT NULL AND due_date < ?")
            params.append(today_text)
        elif filters.due in ("week", "month"):
            days = 7 if filters.due == "week" else 30
            conditions.append("due_date IS NOT NULL AND due_date >= ? AND due_date <= ?")
            params.extend([today_text, format_date_value(today + timedelta(days=days))])

        if "due" in filters.has:
            conditions.append("due_date IS NOT NULL")
        if "tags" in filters.has:
            conditions.append("tags IS NOT NULL")
        if "parent" in filters.has:
            conditions.append("parent_id IS NOT NULL")
        if "subtasks" in filters.has:
            conditions.append(
                "EXISTS (SELECT 1 FROM tasks c WHERE c.parent_id = tasks.id AND c.is_trashed = 0)"
            )

        where_clause = " AND ".join(conditions)
        rows = self.connection.execute(
            f"SELECT * FROM tasks WHERE {where_clause} {_ORDER_BY}", params
        ).fetchall()
        results = [row_to_task(row) for row in rows]
        if filters.tags:
            results = [
                task
                for task in results
                if all(tag in [t.lower() for t in task.tags] for tag in filters.tags)
            ]
        return results

    def get_children(self, parent_id: str, include_trashed: bool = False) -> list[Task]:
        sql = "SELECT * FROM tasks WHERE parent_id = ?"
        if not include_trashed:
            sql += " AND is_trashed = 0"
        rows = self.connection.execute(f"{sql} {_ORDER_BY}", (parent_id,)).fetchall()
        return [row_to_task(row) for row in rows]

    def get_descendant_ids(self, task_id: str, include_trashed: bool = False) -> list[str]:
        """Transitive closure of the hierarchy below ``task_id``.

        ``UNION`` (not ``UNION ALL``) keeps the walk finite even if corrupt
        data ever contains a parent cycle.
        """
        trashed_filter = "" if include_trashed else "WHERE t.is_trashed = 0"
        rows = self.connection.execute(
            f"""
            WITH RECURSIVE descendants(id) AS (
                SELECT id FROM tasks WHERE parent_id = ?
                UNION
                SELECT t.id FROM tasks t JOIN descendants d ON t.parent_id = d.id
            )
            SELECT d.id FROM descendants d JOIN tasks t ON t.id = d.id
            {trashed_filter}
            """,
            (task_id,),
        ).fetchall()
        return [row[0] for row in rows if row[0] != task_id]

    def get_trash_group(self, group: str) -> list[Task]:
        rows = self.connection.execute(
            "SELECT * FROM tasks WHERE trash_group = ? AND is_trashed = 1", (group,)
        ).fetchall()
        return [row_to_task(row) for row in rows]

    def subtree_snapshot(self, root_ids: list[str]) -> list[Task]:
        """Snapshot roots and all their descendants, parents before children."""
        ordered: list[Task] = []
        seen: set[str] = set()
        queue = deque(root_ids)
        while queue:
            task_id = queue.popleft()
            if task_id in seen:
                continue
            seen.add(task_id)
            task = self.get(task_id)
            if task is None:
                continue
            ordered.append(task)
            queue.extend(child.id for child in self.get_children(task_id, include_trashed=True))
        return ordered

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def new_id(self) -> str:
        """Generate an ID not used by any live or trashed task.

        Raises:
            ValidationError: If the ID space is exhausted
        """
        for _ in range(_MAX_ID_ATTEMPTS):
            task_id = generate_task_id()
            if not self.exists(task_id):
                return task_id
        raise ValidationError("Could not allocate a free task ID")

    def insert(self, task: Task) -> None:
        row = task_to_row(task)
        placeholders = ", ".join("?" for _ in TASK_COLUMNS)
        self.connection.execute(
            f"INSERT INTO tasks ({', '.join(TASK_COLUMNS)}) VALUES ({placeholders})",
            tuple(row[column] for column in TASK_COLUMNS),
        )

    def insert_many(self, tasks: list[Task]) -> None:
        """Insert snapshot rows; ``tasks`` must list parents before children."""
        for task in tasks:
            self.insert(task)

    def delete(self, task_id: str) -> None:
        """Hard delete; descendants and edges follow via ON DELETE CASCADE."""
        self.connection.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

    def _update(self, task_id: str, **values: Any) -> None:
        set_clause = ", ".join(f"{column} = ?" for column in values)
        cursor = self.connection.execute(
            f"UPDATE tasks SET {set_clause} WHERE id = ?",
            (*values.values(), task_id),
        )
        if cursor.rowcount == 0:
            raise NotFoundError(task_id)

    def set_description(self, task_id: str, description: str) -> None:
        self._update(task_id, description=description)

    def set_text_fields(
        self,
        task_id: str,
        description: str,
        priority: Priority | None,
        due_date: date | None,
        due_date_raw: str | None,
        tags: list[str],
    ) -> None:
        """Write a description together with the fields derived from it."""
        self._update(
            task_id,
            description=description,
            priority=int(priority) if priority is not None else None,
            due_date=format_date_value(due_date),
            due_date_raw=due_date_raw,
            tags=json.dumps(tags) if tags else None,
        )

    def set_status(
        self, task_id: str, status: TaskStatus, completed_at: datetime | None
    ) -> None:
        self._update(
            task_id, status=int(status), completed_at=format_datetime(completed_at)
        )

    def set_metadata(
        self,
        task_id: str,
        priority: Priority | None,
        due_date: date | None,
        due_date_raw: str | None,
        sort_order: int,
    ) -> None:
        self._update(
            task_id,
            priority=int(priority) if priority is not None else None,
            due_date=format_date_value(due_date),
            due_date_raw=due_date_raw,
            sort_order=sort_order,
        )

    def set_parent(self, task_id: str, parent_id: str | None) -> None:
        self._update(task_id, parent_id=parent_id)

    def set_list(self, task_id: str, list_name: str, sort_order: int) -> None:
        self._update(task_id, list_name=list_name, sort_order=sort_order)

    def set_sort_order(self, task_id: str, sort_order: int) -> None:
        self._update(task_id, sort_order=sort_order)

    def set_trashed(self, task_ids: list[str], trashed: bool, group: str | None) -> None:
        for task_id in task_ids:
            self._update(task_id, is_trashed=int(trashed), trash_group=group)

    def next_sort_order(self, list_name: str) -> int:
        """Sort order that places a task at the top of ``list_name``."""
        row = self.connection.execute(
            "SELECT MAX(sort_order) FROM tasks WHERE list_name = ?", (list_name,)
        ).fetchone()
        return (row[0] if row[0] is not None else -1) + 1

    # ------------------------------------------------------------------
    # Blocking edges
    # ------------------------------------------------------------------

    def add_dependency(self, blocker_id: str, blocked_id: str) -> None:
        self.connection.execute(
            "INSERT INTO task_dependencies (blocker_id, blocked_id) VALUES (?, ?)",
            (blocker_id, blocked_id),
        )

    def remove_dependency(self, blocker_id: str, blocked_id: str) -> None:
        self.connection.execute(
            "DELETE FROM task_dependencies WHERE blocker_id = ? AND blocked_id = ?",
            (blocker_id, blocked_id),
        )

    def has_dependency(self, blocker_id: str, blocked_id: str) -> bool:
        row = self.connection.execute(
            "SELECT 1 FROM task_dependencies WHERE blocker_id = ? AND blocked_id = ?",
            (blocker_id, blocked_id),
        ).fetchone()
        return row is not None

    def get_blocked_ids(self, blocker_id: str) -> list[str]:
        """IDs of tasks that ``blocker_id`` blocks."""
        rows = self.connection.execute(
            "SELECT blocked_id FROM task_dependencies WHERE blocker_id = ? ORDER BY blocked_id",
            (blocker_id,),
        ).fetchall()
        return [row[0] for row in rows]

    def get_blocker_ids(self, blocked_id: str) -> list[str]:
        """IDs of tasks blocking ``blocked_id``."""
        rows = self.connection.execute(
            "SELECT blocker_id FROM task_dependencies WHERE blocked_id = ? ORDER BY blocker_id",
            (blocked_id,),
        ).fetchall()
        return [row[0] for row in rows]

    def dependencies_touching(self, task_ids: list[str]) -> list[tuple[str, str]]:
        if not task_ids:
            return []
        placeholders = ", ".join("?" for _ in task_ids)
        rows = self.connection.execute(
            f"""
            SELECT blocker_id, blocked_id FROM task_dependencies
            WHERE blocker_id IN ({placeholders}) OR blocked_id IN ({placeholders})
            ORDER BY blocker_id, blocked_id
            """,
            (*task_ids, *task_ids),
        ).fetchall()
        return [(row[0], row[1]) for row in rows]

    # ------------------------------------------------------------------
    # Related edges
    # ------------------------------------------------------------------

    def add_relation(self, first_id: str, second_id: str) -> None:
        self.connection.execute(
            "INSERT INTO task_relations (id_1, id_2) VALUES (?, ?)",
            canonical_pair(first_id, second_id),
        )

    def remove_relation(self, first_id: str, second_id: str) -> None:
        self.connection.execute(
            "DELETE FROM task_relations WHERE id_1 = ? AND id_2 = ?",
            canonical_pair(first_id, second_id),
        )

    def has_relation(self, first_id: str, second_id: str) -> bool:
        row = self.connection.execute(
            "SELECT 1 FROM task_relations WHERE id_1 = ? AND id_2 = ?",
            canonical_pair(first_id, second_id),
        ).fetchone()
        return row is not None

    def get_related_ids(self, task_id: str) -> list[str]:
        rows = self.connection.execute(
            """
            SELECT id_2 FROM task_relations WHERE id_1 = ?
            UNION
            SELECT id_1 FROM task_relations WHERE id_2 = ?
            ORDER BY 1
            """,
            (task_id, task_id),
        ).fetchall()
        return [row[0] for row in rows]

    def relations_touching(self, task_ids: list[str]) -> list[tuple[str, str]]:
        if not task_ids:
            return []
        placeholders = ", ".join("?" for _ in task_ids)
        rows = self.connection.execute(
            f"""
            SELECT id_1, id_2 FROM task_relations
            WHERE id_1 IN ({placeholders}) OR id_2 IN ({placeholders})
            ORDER BY id_1, id_2
            """,
            (*task_ids, *task_ids),
        ).fetchall()
        return [(row[0], row[1]) for row in rows]
