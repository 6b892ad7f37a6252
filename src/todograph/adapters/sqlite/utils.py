"""Utility functions for SQLite adapter."""

from __future__ import annotations

import json
import secrets
import string
from datetime import date, datetime
from typing import Any

from todograph.models.core import Priority, Task, TaskList, TaskStatus

ID_ALPHABET = string.digits + string.ascii_lowercase
ID_LENGTH = 3


def generate_task_id() -> str:
    """Generate a random short task ID.

    Returns:
        Three characters from ``0-9a-z`` (e.g., "k3x"). Uniqueness is the
        caller's responsibility.
    """
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def canonical_pair(first: str, second: str) -> tuple[str, str]:
    """Order a symmetric edge so the smaller ID comes first."""
    return (first, second) if first < second else (second, first)


def row_to_dict(row: Any) -> dict[str, Any]:
    """Convert sqlite3.Row to dictionary.

    Args:
        row: sqlite3.Row object

    Returns:
        Dictionary with column names as keys
    """
    if row is None:
        return {}
    return dict(row)


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse datetime from various formats.

    Args:
        value: String, datetime object, or None

    Returns:
        datetime object or None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))

    return None


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def format_date_value(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def row_to_task(row: Any) -> Task:
    """Build a Task from a ``tasks`` row."""
    data = row_to_dict(row)
    return Task(
        id=data["id"],
        description=data["description"],
        status=TaskStatus(data["status"]),
        list_name=data["list_name"],
        priority=Priority(data["priority"]) if data["priority"] is not None else None,
        due_date=date.fromisoformat(data["due_date"]) if data["due_date"] else None,
        due_date_raw=data["due_date_raw"],
        tags=json.loads(data["tags"]) if data["tags"] else [],
        parent_id=data["parent_id"],
        created_at=parse_datetime(data["created_at"]),
        completed_at=parse_datetime(data["completed_at"]),
        is_trashed=bool(data["is_trashed"]),
        trash_group=data["trash_group"],
        sort_order=data["sort_order"],
    )


def task_to_row(task: Task) -> dict[str, Any]:
    """Flatten a Task into column values for INSERT."""
    return {
        "id": task.id,
        "description": task.description,
        "status": int(task.status),
        "created_at": format_datetime(task.created_at),
        "list_name": task.list_name,
        "due_date": format_date_value(task.due_date),
        "due_date_raw": task.due_date_raw,
        "priority": int(task.priority) if task.priority is not None else None,
        "tags": json.dumps(task.tags) if task.tags else None,
        "is_trashed": int(task.is_trashed),
        "trash_group": task.trash_group,
        "sort_order": task.sort_order,
        "completed_at": format_datetime(task.completed_at),
        "parent_id": task.parent_id,
    }


def row_to_list(row: Any) -> TaskList:
    data = row_to_dict(row)
    return TaskList(
        name=data["name"],
        is_collapsed=bool(data["is_collapsed"]),
        sort_order=data["sort_order"],
    )
