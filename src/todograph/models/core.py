"""Core data models."""

from __future__ import annotations

from datetime import date, datetime
from enum import IntEnum

from pydantic import BaseModel, Field


class TaskStatus(IntEnum):
    """Task status, stored as its integer value."""

    PENDING = 0
    IN_PROGRESS = 1
    DONE = 2

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").lower()


class Priority(IntEnum):
    """Task priority; lower value is more urgent."""

    HIGH = 1
    MEDIUM = 2
    LOW = 3


class Task(BaseModel):
    """Task model representing a complete task row.

    Attributes:
        id: Short fixed-width identifier
        description: Free text; the last line may hold metadata markers
        status: Current status
        list_name: Owning list
        priority: Optional priority derived from the description
        due_date: Optional resolved due date
        due_date_raw: Marker text the due date was resolved from
        tags: Lowercase tags derived from the description
        parent_id: Optional parent task in the same list
        created_at: Creation timestamp
        completed_at: Set while the task is Done
        is_trashed: Soft-delete flag
        trash_group: Identifier shared by tasks trashed together
        sort_order: Higher values sort first within a list
    """

    id: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    list_name: str
    priority: Priority | None = None
    due_date: date | None = None
    due_date_raw: str | None = None
    tags: list[str] = Field(default_factory=list)
    parent_id: str | None = None
    created_at: datetime
    completed_at: datetime | None = None
    is_trashed: bool = False
    trash_group: str | None = None
    sort_order: int = 0

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE


class TaskList(BaseModel):
    """Named list of tasks.

    Attributes:
        name: Unique list name
        is_collapsed: Display hint for list surfaces
        sort_order: Position among lists (ascending)
    """

    name: str
    is_collapsed: bool = False
    sort_order: int = 0
