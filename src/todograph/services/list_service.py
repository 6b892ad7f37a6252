"""List service - Business logic for task lists."""

from __future__ import annotations

import logging

from todograph.exceptions import (
    ConcurrencyError,
    NoChangeError,
    NotFoundError,
    ValidationError,
)
from todograph.models.commands import (
    CreateListCommand,
    DeleteListCommand,
    RenameListCommand,
    ReorderListsCommand,
)
from todograph.models.core import TaskList
from todograph.models.results import Error, NoChange, NotFound, Success, TaskResult
from todograph.services.store import Store
from todograph.services.task_service import validate_list_name

logger = logging.getLogger(__name__)


class ListService:
    """Service for list business logic.

    The configured default list always exists; it cannot be renamed or
    deleted.
    """

    def __init__(self, store: Store):
        self.store = store
        self.lists = store.lists
        self.tasks = store.tasks
        self.command_log = store.command_log

    def _protect_default(self, name: str, action: str) -> None:
        if name == self.store.default_list:
            raise ValidationError(f"Cannot {action} the default list '{name}'")

    def create_list(self, name: str) -> TaskResult:
        def operation() -> Success:
            validate_list_name(name)
            if self.lists.exists(name):
                raise ValidationError(f"List '{name}' already exists")
            task_list = TaskList(name=name, sort_order=self.lists.next_sort_order())
            self.lists.insert(task_list)
            self.command_log.record(CreateListCommand(task_list=task_list))
            return Success(message=f"Created list '{name}'")

        return self.store.run(f"Create list '{name}'", operation)

    def rename_list(self, old_name: str, new_name: str) -> TaskResult:
        """Rename a list; its tasks follow."""

        def operation() -> Success:
            self._protect_default(old_name, "rename")
            self.lists.require(old_name)
            validate_list_name(new_name)
            if new_name == old_name:
                raise NoChangeError(f"List is already named '{new_name}'")
            if self.lists.exists(new_name):
                raise ValidationError(f"List '{new_name}' already exists")
            self.lists.rename(old_name, new_name)
            self.command_log.record(RenameListCommand(old_name=old_name, new_name=new_name))
            return Success(message=f"Renamed list '{old_name}' to '{new_name}'")

        return self.store.run(f"Rename list '{old_name}'", operation)

    def delete_list(self, name: str) -> TaskResult:
        """Delete a list with all of its tasks, trashed ones included.

        The list, every task and every edge touching those tasks is
        snapshotted first so the deletion can be undone.
        """

        def operation() -> Success:
            self._protect_default(name, "delete")
            task_list = self.lists.require(name)
            members = self.tasks.list_tasks(name) + self.tasks.list_tasks(name, trashed=True)
            member_ids = {task.id for task in members}
            roots = [task.id for task in members if task.parent_id not in member_ids]
            snapshot = self.tasks.subtree_snapshot(roots)
            snapshot_ids = [task.id for task in snapshot]
            command = DeleteListCommand(
                task_list=task_list,
                tasks=snapshot,
                dependencies=self.tasks.dependencies_touching(snapshot_ids),
                relations=self.tasks.relations_touching(snapshot_ids),
            )
            self.lists.delete(name)
            self.command_log.record(command)
            logger.info("deleted list '%s' with %d task(s)", name, len(snapshot))
            return Success(message=f"Deleted list '{name}' ({len(snapshot)} task(s))")

        return self.store.run(f"Delete list '{name}'", operation)

    def reorder_list(self, name: str, new_index: int) -> TaskResult:
        def operation() -> Success:
            self.lists.require(name)
            current = self.lists.list_all()
            ordered = [task_list.name for task_list in current]
            current_index = ordered.index(name)
            target_index = max(0, min(new_index, len(ordered) - 1))
            if target_index == current_index:
                raise NoChangeError(f"List '{name}' is already at position {target_index}")
            ordered.pop(current_index)
            ordered.insert(target_index, name)

            old_orders = {task_list.name: task_list.sort_order for task_list in current}
            new_orders = {
                list_name: position
                for position, list_name in enumerate(ordered)
                if old_orders[list_name] != position
            }
            old_orders = {list_name: old_orders[list_name] for list_name in new_orders}
            self.lists.set_sort_orders(new_orders)
            self.command_log.record(
                ReorderListsCommand(old_orders=old_orders, new_orders=new_orders)
            )
            return Success(message=f"Moved list '{name}' to position {target_index}")

        return self.store.run(f"Reorder list '{name}'", operation)

    def set_collapsed(self, name: str, collapsed: bool) -> TaskResult:
        """Set the display-only collapsed flag.

        Not recorded for undo and not part of the store fingerprint, so it
        runs outside the command log.
        """

        def unit() -> TaskResult:
            with self.store.database.transaction():
                task_list = self.lists.require(name)
                if task_list.is_collapsed == collapsed:
                    return NoChange(reason=f"List '{name}' is unchanged")
                self.lists.set_collapsed(name, collapsed)
            state = "collapsed" if collapsed else "expanded"
            return Success(message=f"List '{name}' {state}")

        try:
            return self.store.guard.run(unit)
        except NotFoundError as e:
            return NotFound(id=e.item_id, message=str(e))
        except ConcurrencyError as e:
            logger.error("set_collapsed failed for '%s': %s", name, e)
            return Error(message=str(e))

    def get_lists(self) -> list[TaskList]:
        return self.lists.list_all()
