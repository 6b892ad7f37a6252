"""Task relationship graph.

Three edge kinds are kept, all keyed by task ID:

- hierarchy: ``tasks.parent_id``; one parent, same list, acyclic
- blocking: directed ``(blocker_id, blocked_id)`` pairs, acyclic, cross-list
- related: symmetric pairs stored with the smaller ID first, cross-list

Mutations validate, write the edge, record a command into the open batch and
hand over to the SyncCoordinator to rewrite markers. Failures raise
``ValidationError``, ``NotFoundError`` or ``NoChangeError``; callers decide
whether that aborts the operation or only skips one reference.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from collections.abc import Callable
from datetime import datetime

from todograph.adapters.sqlite.connection import Database
from todograph.adapters.sqlite.task_repository import SqliteTaskRepository
from todograph.adapters.sqlite.utils import canonical_pair
from todograph.exceptions import NoChangeError, NotFoundError, ValidationError
from todograph.models.commands import (
    AddBlockerCommand,
    AddRelatedCommand,
    MoveTaskCommand,
    RemoveBlockerCommand,
    RemoveRelatedCommand,
    RestoreTasksCommand,
    SetParentCommand,
    SetStatusCommand,
    TrashTasksCommand,
)
from todograph.models.core import Task, TaskStatus
from todograph.services.command_log import CommandLog
from todograph.services.sync_service import SyncCoordinator

logger = logging.getLogger(__name__)


class RelationshipGraph:
    """Hierarchy, blocking and related edges with their cascades."""

    def __init__(
        self,
        database: Database,
        tasks: SqliteTaskRepository,
        command_log: CommandLog,
        sync: SyncCoordinator,
    ):
        self.database = database
        self.tasks = tasks
        self.command_log = command_log
        self.sync = sync

    def attempt(self, label: str, action: Callable[[], object]) -> str | None:
        """Run one reference change without risking the surrounding operation.

        The change runs under a savepoint. If it is rejected, its writes and
        any commands it recorded are discarded and a warning is returned.

        Returns:
            Warning text, or None if the change applied or was a no-op
        """
        batch = self.command_log.current_batch
        mark = batch.mark() if batch is not None else 0
        try:
            with self.database.savepoint():
                action()
        except NoChangeError:
            return None
        except (ValidationError, NotFoundError) as e:
            if batch is not None:
                batch.rollback_to(mark)
            logger.warning("skipped reference %s: %s", label, e)
            return f"Skipped {label}: {e}"
        return None

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def set_parent(self, child_id: str, parent_id: str) -> str:
        """Make ``child_id`` a subtask of ``parent_id``.

        Raises:
            NotFoundError: If either task is missing or trashed
            ValidationError: Self-parenting, different lists, or a cycle
            NoChangeError: If ``parent_id`` already is the parent
        """
        if child_id == parent_id:
            raise ValidationError("A task cannot be its own parent")
        child = self.tasks.require(child_id)
        parent = self.tasks.require(parent_id)
        if child.parent_id == parent_id:
            raise NoChangeError(f"'{child_id}' is already a subtask of '{parent_id}'")
        if child.list_name != parent.list_name:
            raise ValidationError(
                f"'{parent_id}' is in list '{parent.list_name}', "
                f"'{child_id}' is in '{child.list_name}'"
            )
        if parent_id in self.tasks.get_descendant_ids(child_id, include_trashed=True):
            raise ValidationError(
                f"'{parent_id}' is a descendant of '{child_id}'; that would create a cycle"
            )

        self.tasks.set_parent(child_id, parent_id)
        self.command_log.record(
            SetParentCommand(
                task_id=child_id, old_parent_id=child.parent_id, new_parent_id=parent_id
            )
        )
        self.sync.parent_changed(child_id, child.parent_id, parent_id)
        return f"'{child_id}' is now a subtask of '{parent_id}'"

    def unset_parent(self, child_id: str) -> str:
        """Make ``child_id`` a top-level task.

        Raises:
            NotFoundError: If the task is missing
            NoChangeError: If it has no parent
        """
        child = self.tasks.require(child_id, allow_trashed=True)
        if child.parent_id is None:
            raise NoChangeError(f"'{child_id}' has no parent")

        self.tasks.set_parent(child_id, None)
        self.command_log.record(
            SetParentCommand(task_id=child_id, old_parent_id=child.parent_id, new_parent_id=None)
        )
        self.sync.parent_changed(child_id, child.parent_id, None)
        return f"'{child_id}' is no longer a subtask of '{child.parent_id}'"

    def detach_child(self, parent_id: str, child_id: str) -> str:
        """Unset ``child_id``'s parent if, and only if, it is ``parent_id``."""
        child = self.tasks.require(child_id, allow_trashed=True)
        if child.parent_id != parent_id:
            raise NoChangeError(f"'{child_id}' is not a subtask of '{parent_id}'")
        return self.unset_parent(child_id)

    def get_descendants(self, task_id: str, include_trashed: bool = False) -> list[Task]:
        """Full transitive closure of the hierarchy below a task."""
        ids = self.tasks.get_descendant_ids(task_id, include_trashed=include_trashed)
        return [task for task in (self.tasks.get(i) for i in ids) if task is not None]

    # ------------------------------------------------------------------
    # Blocking
    # ------------------------------------------------------------------

    def would_create_cycle(self, blocker_id: str, blocked_id: str) -> bool:
        """Check whether ``blocked_id`` already reaches ``blocker_id``.

        Breadth-first walk along "blocks" edges with a visited set, so it
        terminates on any graph.
        """
        visited: set[str] = set()
        queue = deque([blocked_id])
        while queue:
            current = queue.popleft()
            if current == blocker_id:
                return True
            if current in visited:
                continue
            visited.add(current)
            queue.extend(i for i in self.tasks.get_blocked_ids(current) if i not in visited)
        return False

    def add_blocker(self, blocker_id: str, blocked_id: str) -> str:
        """Record that ``blocker_id`` blocks ``blocked_id``.

        Raises:
            NotFoundError: If either task is missing or trashed
            ValidationError: Self-reference or a cycle
            NoChangeError: If the edge already exists
        """
        if blocker_id == blocked_id:
            raise ValidationError("A task cannot block itself")
        self.tasks.require(blocker_id)
        self.tasks.require(blocked_id)
        if self.tasks.has_dependency(blocker_id, blocked_id):
            raise NoChangeError(f"'{blocker_id}' already blocks '{blocked_id}'")
        if self.would_create_cycle(blocker_id, blocked_id):
            raise ValidationError(
                f"'{blocked_id}' already blocks '{blocker_id}'; that would create a cycle"
            )

        self.tasks.add_dependency(blocker_id, blocked_id)
        self.command_log.record(AddBlockerCommand(blocker_id=blocker_id, blocked_id=blocked_id))
        self.sync.blocker_changed(blocker_id, blocked_id, True)
        return f"'{blocker_id}' now blocks '{blocked_id}'"

    def remove_blocker(self, blocker_id: str, blocked_id: str) -> str:
        self.tasks.require(blocker_id, allow_trashed=True)
        self.tasks.require(blocked_id, allow_trashed=True)
        if not self.tasks.has_dependency(blocker_id, blocked_id):
            raise NoChangeError(f"'{blocker_id}' does not block '{blocked_id}'")

        self.tasks.remove_dependency(blocker_id, blocked_id)
        self.command_log.record(
            RemoveBlockerCommand(blocker_id=blocker_id, blocked_id=blocked_id)
        )
        self.sync.blocker_changed(blocker_id, blocked_id, False)
        return f"'{blocker_id}' no longer blocks '{blocked_id}'"

    def get_blockers(self, task_id: str) -> list[Task]:
        """Tasks that block ``task_id``."""
        return self._live(self.tasks.get_blocker_ids(task_id))

    def get_blocking(self, task_id: str) -> list[Task]:
        """Tasks that ``task_id`` blocks."""
        return self._live(self.tasks.get_blocked_ids(task_id))

    # ------------------------------------------------------------------
    # Related
    # ------------------------------------------------------------------

    def add_related(self, first_id: str, second_id: str) -> str:
        """Relate two tasks symmetrically.

        Raises:
            NotFoundError: If either task is missing or trashed
            ValidationError: Self-reference
            NoChangeError: If they are already related
        """
        if first_id == second_id:
            raise ValidationError("A task cannot be related to itself")
        self.tasks.require(first_id)
        self.tasks.require(second_id)
        if self.tasks.has_relation(first_id, second_id):
            raise NoChangeError(f"'{first_id}' and '{second_id}' are already related")

        self.tasks.add_relation(first_id, second_id)
        id_1, id_2 = canonical_pair(first_id, second_id)
        self.command_log.record(AddRelatedCommand(id_1=id_1, id_2=id_2))
        self.sync.related_changed(first_id, second_id, True)
        return f"'{first_id}' and '{second_id}' are now related"

    def remove_related(self, first_id: str, second_id: str) -> str:
        self.tasks.require(first_id, allow_trashed=True)
        self.tasks.require(second_id, allow_trashed=True)
        if not self.tasks.has_relation(first_id, second_id):
            raise NoChangeError(f"'{first_id}' and '{second_id}' are not related")

        self.tasks.remove_relation(first_id, second_id)
        id_1, id_2 = canonical_pair(first_id, second_id)
        self.command_log.record(RemoveRelatedCommand(id_1=id_1, id_2=id_2))
        self.sync.related_changed(first_id, second_id, False)
        return f"'{first_id}' and '{second_id}' are no longer related"

    def get_related(self, task_id: str) -> list[Task]:
        return self._live(self.tasks.get_related_ids(task_id))

    def _live(self, task_ids: list[str]) -> list[Task]:
        tasks = (self.tasks.get(task_id) for task_id in task_ids)
        return [task for task in tasks if task is not None and not task.is_trashed]

    # ------------------------------------------------------------------
    # Cascades
    # ------------------------------------------------------------------

    def complete_descendants(self, task_id: str, completed_at: datetime) -> int:
        """Mark every non-Done live descendant Done.

        Returns:
            Number of descendants changed
        """
        changed = 0
        for task in self.get_descendants(task_id):
            if task.status == TaskStatus.DONE:
                continue
            self.tasks.set_status(task.id, TaskStatus.DONE, completed_at)
            self.command_log.record(
                SetStatusCommand(
                    task_id=task.id,
                    old_status=task.status,
                    new_status=TaskStatus.DONE,
                    old_completed_at=task.completed_at,
                    new_completed_at=completed_at,
                )
            )
            changed += 1
        return changed

    def trash(self, task_id: str) -> list[str]:
        """Trash a task and its live descendants as one group.

        Returns:
            IDs trashed, the task itself first
        """
        self.tasks.require(task_id)
        task_ids = [task_id, *self.tasks.get_descendant_ids(task_id)]
        group = uuid.uuid4().hex
        self.tasks.set_trashed(task_ids, True, group)
        self.command_log.record(TrashTasksCommand(task_ids=task_ids, group=group))
        return task_ids

    def restore(self, task_id: str) -> list[str]:
        """Restore a trashed task with the descendants trashed together with it.

        Descendants trashed separately, before or after, stay in the trash.

        Raises:
            NotFoundError: If the task does not exist
            NoChangeError: If it is not trashed
        """
        task = self.tasks.require(task_id, allow_trashed=True)
        if not task.is_trashed:
            raise NoChangeError(f"'{task_id}' is not in the trash")
        task_ids = [task_id]
        if task.trash_group:
            group_ids = {t.id for t in self.tasks.get_trash_group(task.trash_group)}
            task_ids += [
                i
                for i in self.tasks.get_descendant_ids(task_id, include_trashed=True)
                if i in group_ids
            ]
        self.tasks.set_trashed(task_ids, False, None)
        self.command_log.record(
            RestoreTasksCommand(task_ids=task_ids, group=task.trash_group or "")
        )
        return task_ids

    def move(self, task_id: str, list_name: str) -> list[str]:
        """Move a top-level task and all its descendants to another list.

        Raises:
            NotFoundError: If the task is missing or trashed
            ValidationError: If the task has a parent
            NoChangeError: If it is already in ``list_name``
        """
        task = self.tasks.require(task_id)
        if task.parent_id is not None:
            raise ValidationError(
                f"'{task_id}' is a subtask of '{task.parent_id}'. "
                "Remove its parent first, or move the parent"
            )
        if task.list_name == list_name:
            raise NoChangeError(f"'{task_id}' is already in '{list_name}'")

        moved = []
        for subtree_task in self.tasks.subtree_snapshot([task_id]):
            new_sort_order = self.tasks.next_sort_order(list_name)
            self.tasks.set_list(subtree_task.id, list_name, new_sort_order)
            self.command_log.record(
                MoveTaskCommand(
                    task_id=subtree_task.id,
                    old_list=subtree_task.list_name,
                    new_list=list_name,
                    old_sort_order=subtree_task.sort_order,
                    new_sort_order=new_sort_order,
                )
            )
            moved.append(subtree_task.id)
        return moved
