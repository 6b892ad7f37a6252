"""Apply and revert command records against the store.

There is one ``apply`` and one ``revert`` function per command kind,
registered in two tables keyed by command class. They restore exact
low-level state from what the command stored and never recompute cascades
or rewrite markers: those effects were recorded as commands of their own and
are replayed in order.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from typing import Any

from todograph.adapters.sqlite.list_repository import SqliteListRepository
from todograph.adapters.sqlite.task_repository import SqliteTaskRepository
from todograph.exceptions import ConsistencyError, NotFoundError
from todograph.models.commands import (
    AddBlockerCommand,
    AddRelatedCommand,
    AddTaskCommand,
    Command,
    CompositeCommand,
    CreateListCommand,
    DeleteListCommand,
    MoveTaskCommand,
    PurgeTasksCommand,
    RemoveBlockerCommand,
    RemoveRelatedCommand,
    RenameListCommand,
    RenameTaskCommand,
    ReorderListsCommand,
    ReorderTasksCommand,
    RestoreTasksCommand,
    SetMetadataCommand,
    SetParentCommand,
    SetStatusCommand,
    SyncDescriptionCommand,
    TaskMetadata,
    TaskText,
    TrashTasksCommand,
    describe_command,
)
from todograph.models.core import Task

Handler = Callable[["CommandExecutor", Any], None]


class CommandExecutor:
    """Interprets command records using the task and list repositories."""

    def __init__(self, tasks: SqliteTaskRepository, lists: SqliteListRepository):
        self.tasks = tasks
        self.lists = lists

    def apply(self, command: Command) -> None:
        """Re-apply a command's forward effect (redo).

        Raises:
            ConsistencyError: If the store no longer matches the command
        """
        self._dispatch(_APPLY, command)

    def revert(self, command: Command) -> None:
        """Apply a command's reverse effect (undo).

        Raises:
            ConsistencyError: If the store no longer matches the command
        """
        self._dispatch(_REVERT, command)

    def _dispatch(self, table: dict[type, Handler], command: Command) -> None:
        handler = table[type(command)]
        try:
            handler(self, command)
        except (NotFoundError, sqlite3.IntegrityError) as e:
            raise ConsistencyError(
                f"Cannot replay '{describe_command(command)}': {e}"
            ) from e

    # Shared helpers

    def _write_text(self, task_id: str, text: TaskText) -> None:
        self.tasks.set_text_fields(
            task_id,
            text.description,
            text.priority,
            text.due_date,
            text.due_date_raw,
            text.tags,
        )

    def _write_metadata(self, task_id: str, metadata: TaskMetadata) -> None:
        self.tasks.set_metadata(
            task_id,
            metadata.priority,
            metadata.due_date,
            metadata.due_date_raw,
            metadata.sort_order,
        )

    def _restore_snapshot(
        self,
        tasks: list[Task],
        dependencies: list[tuple[str, str]],
        relations: list[tuple[str, str]],
    ) -> None:
        self.tasks.insert_many(tasks)
        for blocker_id, blocked_id in dependencies:
            if not self.tasks.has_dependency(blocker_id, blocked_id):
                self.tasks.add_dependency(blocker_id, blocked_id)
        for first_id, second_id in relations:
            if not self.tasks.has_relation(first_id, second_id):
                self.tasks.add_relation(first_id, second_id)

    def _require_task(self, task_id: str) -> Task:
        return self.tasks.require(task_id, allow_trashed=True)


# ---------------------------------------------------------------------------
# Task lifecycle
# ---------------------------------------------------------------------------


def _apply_add_task(ex: CommandExecutor, cmd: AddTaskCommand) -> None:
    ex.tasks.insert(cmd.task)


def _revert_add_task(ex: CommandExecutor, cmd: AddTaskCommand) -> None:
    ex._require_task(cmd.task.id)
    ex.tasks.delete(cmd.task.id)


def _apply_trash(ex: CommandExecutor, cmd: TrashTasksCommand) -> None:
    ex.tasks.set_trashed(cmd.task_ids, True, cmd.group)


def _revert_trash(ex: CommandExecutor, cmd: TrashTasksCommand) -> None:
    ex.tasks.set_trashed(cmd.task_ids, False, None)


def _apply_restore(ex: CommandExecutor, cmd: RestoreTasksCommand) -> None:
    ex.tasks.set_trashed(cmd.task_ids, False, None)


def _revert_restore(ex: CommandExecutor, cmd: RestoreTasksCommand) -> None:
    ex.tasks.set_trashed(cmd.task_ids, True, cmd.group)


def _apply_purge(ex: CommandExecutor, cmd: PurgeTasksCommand) -> None:
    for task in cmd.tasks:
        ex.tasks.delete(task.id)


def _revert_purge(ex: CommandExecutor, cmd: PurgeTasksCommand) -> None:
    ex._restore_snapshot(cmd.tasks, cmd.dependencies, cmd.relations)


# ---------------------------------------------------------------------------
# Task fields
# ---------------------------------------------------------------------------


def _apply_set_status(ex: CommandExecutor, cmd: SetStatusCommand) -> None:
    ex.tasks.set_status(cmd.task_id, cmd.new_status, cmd.new_completed_at)


def _revert_set_status(ex: CommandExecutor, cmd: SetStatusCommand) -> None:
    ex.tasks.set_status(cmd.task_id, cmd.old_status, cmd.old_completed_at)


def _apply_rename(ex: CommandExecutor, cmd: RenameTaskCommand) -> None:
    ex._write_text(cmd.task_id, cmd.new)


def _revert_rename(ex: CommandExecutor, cmd: RenameTaskCommand) -> None:
    ex._write_text(cmd.task_id, cmd.old)


def _apply_sync_description(ex: CommandExecutor, cmd: SyncDescriptionCommand) -> None:
    ex.tasks.set_description(cmd.task_id, cmd.new_description)


def _revert_sync_description(ex: CommandExecutor, cmd: SyncDescriptionCommand) -> None:
    ex.tasks.set_description(cmd.task_id, cmd.old_description)


def _apply_set_metadata(ex: CommandExecutor, cmd: SetMetadataCommand) -> None:
    ex._write_metadata(cmd.task_id, cmd.new)


def _revert_set_metadata(ex: CommandExecutor, cmd: SetMetadataCommand) -> None:
    ex._write_metadata(cmd.task_id, cmd.old)


def _apply_move(ex: CommandExecutor, cmd: MoveTaskCommand) -> None:
    ex.tasks.set_list(cmd.task_id, cmd.new_list, cmd.new_sort_order)


def _revert_move(ex: CommandExecutor, cmd: MoveTaskCommand) -> None:
    ex.tasks.set_list(cmd.task_id, cmd.old_list, cmd.old_sort_order)


def _apply_reorder_tasks(ex: CommandExecutor, cmd: ReorderTasksCommand) -> None:
    for task_id, sort_order in cmd.new_orders.items():
        ex.tasks.set_sort_order(task_id, sort_order)


def _revert_reorder_tasks(ex: CommandExecutor, cmd: ReorderTasksCommand) -> None:
    for task_id, sort_order in cmd.old_orders.items():
        ex.tasks.set_sort_order(task_id, sort_order)


# ---------------------------------------------------------------------------
# Relationship edges
# ---------------------------------------------------------------------------


def _apply_set_parent(ex: CommandExecutor, cmd: SetParentCommand) -> None:
    ex.tasks.set_parent(cmd.task_id, cmd.new_parent_id)


def _revert_set_parent(ex: CommandExecutor, cmd: SetParentCommand) -> None:
    ex.tasks.set_parent(cmd.task_id, cmd.old_parent_id)


def _apply_add_blocker(ex: CommandExecutor, cmd: AddBlockerCommand) -> None:
    ex.tasks.add_dependency(cmd.blocker_id, cmd.blocked_id)


def _revert_add_blocker(ex: CommandExecutor, cmd: AddBlockerCommand) -> None:
    ex.tasks.remove_dependency(cmd.blocker_id, cmd.blocked_id)


def _apply_remove_blocker(ex: CommandExecutor, cmd: RemoveBlockerCommand) -> None:
    ex.tasks.remove_dependency(cmd.blocker_id, cmd.blocked_id)


def _revert_remove_blocker(ex: CommandExecutor, cmd: RemoveBlockerCommand) -> None:
    ex.tasks.add_dependency(cmd.blocker_id, cmd.blocked_id)


def _apply_add_related(ex: CommandExecutor, cmd: AddRelatedCommand) -> None:
    ex.tasks.add_relation(cmd.id_1, cmd.id_2)


def _revert_add_related(ex: CommandExecutor, cmd: AddRelatedCommand) -> None:
    ex.tasks.remove_relation(cmd.id_1, cmd.id_2)


def _apply_remove_related(ex: CommandExecutor, cmd: RemoveRelatedCommand) -> None:
    ex.tasks.remove_relation(cmd.id_1, cmd.id_2)


def _revert_remove_related(ex: CommandExecutor, cmd: RemoveRelatedCommand) -> None:
    ex.tasks.add_relation(cmd.id_1, cmd.id_2)


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


def _apply_create_list(ex: CommandExecutor, cmd: CreateListCommand) -> None:
    ex.lists.insert(cmd.task_list)


def _revert_create_list(ex: CommandExecutor, cmd: CreateListCommand) -> None:
    ex.lists.require(cmd.task_list.name)
    ex.lists.delete(cmd.task_list.name)


def _apply_rename_list(ex: CommandExecutor, cmd: RenameListCommand) -> None:
    ex.lists.rename(cmd.old_name, cmd.new_name)


def _revert_rename_list(ex: CommandExecutor, cmd: RenameListCommand) -> None:
    ex.lists.rename(cmd.new_name, cmd.old_name)


def _apply_delete_list(ex: CommandExecutor, cmd: DeleteListCommand) -> None:
    ex.lists.require(cmd.task_list.name)
    ex.lists.delete(cmd.task_list.name)


def _revert_delete_list(ex: CommandExecutor, cmd: DeleteListCommand) -> None:
    ex.lists.insert(cmd.task_list)
    ex._restore_snapshot(cmd.tasks, cmd.dependencies, cmd.relations)


def _apply_reorder_lists(ex: CommandExecutor, cmd: ReorderListsCommand) -> None:
    ex.lists.set_sort_orders(cmd.new_orders)


def _revert_reorder_lists(ex: CommandExecutor, cmd: ReorderListsCommand) -> None:
    ex.lists.set_sort_orders(cmd.old_orders)


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------


def _apply_composite(ex: CommandExecutor, cmd: CompositeCommand) -> None:
    for child in cmd.commands:
        ex.apply(child)


def _revert_composite(ex: CommandExecutor, cmd: CompositeCommand) -> None:
    for child in reversed(cmd.commands):
        ex.revert(child)


_APPLY: dict[type, Handler] = {
    AddTaskCommand: _apply_add_task,
    TrashTasksCommand: _apply_trash,
    RestoreTasksCommand: _apply_restore,
    PurgeTasksCommand: _apply_purge,
    SetStatusCommand: _apply_set_status,
    RenameTaskCommand: _apply_rename,
    SyncDescriptionCommand: _apply_sync_description,
    SetMetadataCommand: _apply_set_metadata,
    MoveTaskCommand: _apply_move,
    ReorderTasksCommand: _apply_reorder_tasks,
    SetParentCommand: _apply_set_parent,
    AddBlockerCommand: _apply_add_blocker,
    RemoveBlockerCommand: _apply_remove_blocker,
    AddRelatedCommand: _apply_add_related,
    RemoveRelatedCommand: _apply_remove_related,
    CreateListCommand: _apply_create_list,
    RenameListCommand: _apply_rename_list,
    DeleteListCommand: _apply_delete_list,
    ReorderListsCommand: _apply_reorder_lists,
    CompositeCommand: _apply_composite,
}

_REVERT: dict[type, Handler] = {
    AddTaskCommand: _revert_add_task,
    TrashTasksCommand: _revert_trash,
    RestoreTasksCommand: _revert_restore,
    PurgeTasksCommand: _revert_purge,
    SetStatusCommand: _revert_set_status,
    RenameTaskCommand: _revert_rename,
    SyncDescriptionCommand: _revert_sync_description,
    SetMetadataCommand: _revert_set_metadata,
    MoveTaskCommand: _revert_move,
    ReorderTasksCommand: _revert_reorder_tasks,
    SetParentCommand: _revert_set_parent,
    AddBlockerCommand: _revert_add_blocker,
    RemoveBlockerCommand: _revert_remove_blocker,
    AddRelatedCommand: _revert_add_related,
    RemoveRelatedCommand: _revert_remove_related,
    CreateListCommand: _revert_create_list,
    RenameListCommand: _revert_rename_list,
    DeleteListCommand: _revert_delete_list,
    ReorderListsCommand: _revert_reorder_lists,
    CompositeCommand: _revert_composite,
}
