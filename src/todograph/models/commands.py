"""Reversible command records.

Every mutation is captured as one of the variants below. Commands are plain
data: they store exactly what is needed to revert and re-apply the change,
and the executor in ``todograph.services.command_executor`` interprets them.
Scalar changes keep old and new values; destructive changes keep full
snapshots of every removed row.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from .core import Priority, Task, TaskList, TaskStatus

EdgePair = tuple[str, str]


class _BaseCommand(BaseModel):
    description: str = ""


class TaskText(BaseModel):
    """Description together with the fields derived from it."""

    description: str
    priority: Priority | None = None
    due_date: date | None = None
    due_date_raw: str | None = None
    tags: list[str] = Field(default_factory=list)


class TaskMetadata(BaseModel):
    """Structured metadata changed through a setter rather than by editing text."""

    priority: Priority | None = None
    due_date: date | None = None
    due_date_raw: str | None = None
    sort_order: int = 0


# ---------------------------------------------------------------------------
# Task lifecycle
# ---------------------------------------------------------------------------


class AddTaskCommand(_BaseCommand):
    kind: Literal["add_task"] = "add_task"
    task: Task


class TrashTasksCommand(_BaseCommand):
    kind: Literal["trash_tasks"] = "trash_tasks"
    task_ids: list[str]
    group: str


class RestoreTasksCommand(_BaseCommand):
    kind: Literal["restore_tasks"] = "restore_tasks"
    task_ids: list[str]
    group: str


class PurgeTasksCommand(_BaseCommand):
    """Hard delete; ``tasks`` is ordered parents first."""

    kind: Literal["purge_tasks"] = "purge_tasks"
    tasks: list[Task]
    dependencies: list[EdgePair] = Field(default_factory=list)
    relations: list[EdgePair] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Task fields
# ---------------------------------------------------------------------------


class SetStatusCommand(_BaseCommand):
    kind: Literal["set_status"] = "set_status"
    task_id: str
    old_status: TaskStatus
    new_status: TaskStatus
    old_completed_at: datetime | None = None
    new_completed_at: datetime | None = None


class RenameTaskCommand(_BaseCommand):
    kind: Literal["rename_task"] = "rename_task"
    task_id: str
    old: TaskText
    new: TaskText


class SyncDescriptionCommand(_BaseCommand):
    """Marker rewrite performed to keep text in step with edges."""

    kind: Literal["sync_description"] = "sync_description"
    task_id: str
    old_description: str
    new_description: str


class SetMetadataCommand(_BaseCommand):
    kind: Literal["set_metadata"] = "set_metadata"
    task_id: str
    old: TaskMetadata
    new: TaskMetadata


class MoveTaskCommand(_BaseCommand):
    kind: Literal["move_task"] = "move_task"
    task_id: str
    old_list: str
    new_list: str
    old_sort_order: int
    new_sort_order: int


class ReorderTasksCommand(_BaseCommand):
    kind: Literal["reorder_tasks"] = "reorder_tasks"
    list_name: str
    old_orders: dict[str, int]
    new_orders: dict[str, int]


# ---------------------------------------------------------------------------
# Relationship edges
# ---------------------------------------------------------------------------


class SetParentCommand(_BaseCommand):
    kind: Literal["set_parent"] = "set_parent"
    task_id: str
    old_parent_id: str | None = None
    new_parent_id: str | None = None


class AddBlockerCommand(_BaseCommand):
    kind: Literal["add_blocker"] = "add_blocker"
    blocker_id: str
    blocked_id: str


class RemoveBlockerCommand(_BaseCommand):
    kind: Literal["remove_blocker"] = "remove_blocker"
    blocker_id: str
    blocked_id: str


class AddRelatedCommand(_BaseCommand):
    kind: Literal["add_related"] = "add_related"
    id_1: str
    id_2: str


class RemoveRelatedCommand(_BaseCommand):
    kind: Literal["remove_related"] = "remove_related"
    id_1: str
    id_2: str


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


class CreateListCommand(_BaseCommand):
    kind: Literal["create_list"] = "create_list"
    task_list: TaskList


class RenameListCommand(_BaseCommand):
    kind: Literal["rename_list"] = "rename_list"
    old_name: str
    new_name: str


class DeleteListCommand(_BaseCommand):
    """List deletion with every task (trashed or not) and edge it took along."""

    kind: Literal["delete_list"] = "delete_list"
    task_list: TaskList
    tasks: list[Task] = Field(default_factory=list)
    dependencies: list[EdgePair] = Field(default_factory=list)
    relations: list[EdgePair] = Field(default_factory=list)


class ReorderListsCommand(_BaseCommand):
    kind: Literal["reorder_lists"] = "reorder_lists"
    old_orders: dict[str, int]
    new_orders: dict[str, int]


class CompositeCommand(_BaseCommand):
    """Ordered group of commands undone and redone as one unit."""

    kind: Literal["composite"] = "composite"
    commands: list[Command] = Field(default_factory=list)


Command = Annotated[
    Union[
        AddTaskCommand,
        TrashTasksCommand,
        RestoreTasksCommand,
        PurgeTasksCommand,
        SetStatusCommand,
        RenameTaskCommand,
        SyncDescriptionCommand,
        SetMetadataCommand,
        MoveTaskCommand,
        ReorderTasksCommand,
        SetParentCommand,
        AddBlockerCommand,
        RemoveBlockerCommand,
        AddRelatedCommand,
        RemoveRelatedCommand,
        CreateListCommand,
        RenameListCommand,
        DeleteListCommand,
        ReorderListsCommand,
        CompositeCommand,
    ],
    Field(discriminator="kind"),
]

CompositeCommand.model_rebuild()

COMMAND_TYPES: tuple[type[BaseModel], ...] = (
    AddTaskCommand,
    TrashTasksCommand,
    RestoreTasksCommand,
    PurgeTasksCommand,
    SetStatusCommand,
    RenameTaskCommand,
    SyncDescriptionCommand,
    SetMetadataCommand,
    MoveTaskCommand,
    ReorderTasksCommand,
    SetParentCommand,
    AddBlockerCommand,
    RemoveBlockerCommand,
    AddRelatedCommand,
    RemoveRelatedCommand,
    CreateListCommand,
    RenameListCommand,
    DeleteListCommand,
    ReorderListsCommand,
    CompositeCommand,
)

command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def dump_command(command: Command) -> str:
    """Serialize a command to JSON, tagged with its ``kind``."""
    return command_adapter.dump_json(command).decode("utf-8")


def load_command(payload: str | bytes) -> Command:
    """Deserialize a command.

    Raises:
        pydantic.ValidationError: If the payload is corrupt or from an
            incompatible schema.
    """
    return command_adapter.validate_json(payload)


def describe_command(command: Command) -> str:
    """Human-readable label for history listings."""
    if command.description:
        return command.description
    return command.kind.replace("_", " ").capitalize()
