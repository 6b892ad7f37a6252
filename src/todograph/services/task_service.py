"""Task service - Business logic for task operations.

Every mutation is a closure handed to ``Store.run``, which gives it one
transaction and one undo entry. Closures raise ``TodographError``
subclasses; the store turns those into result values.
"""

from __future__ import annotations

import logging
from datetime import date

from todograph.exceptions import NoChangeError, ValidationError
from todograph.models.commands import (
    AddTaskCommand,
    CreateListCommand,
    PurgeTasksCommand,
    RenameTaskCommand,
    ReorderTasksCommand,
    SetMetadataCommand,
    SetStatusCommand,
    TaskMetadata,
    TaskText,
)
from todograph.models.config_models import LIST_NAME_PATTERN
from todograph.models.core import Priority, Task, TaskList, TaskStatus
from todograph.models.results import Success, TaskResult
from todograph.parsing.date_parser import format_date, parse_date
from todograph.parsing.metadata_codec import ParsedDescription, parse
from todograph.parsing.search_filters import parse_search_filters
from todograph.services.store import Store

logger = logging.getLogger(__name__)


def validate_list_name(name: str) -> None:
    """Raise ValidationError unless ``name`` is a usable list name."""
    if not name or not LIST_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid list name '{name}': use letters, digits, '_' and '-' only"
        )


def _validate_description(description: str) -> None:
    if not description or not description.strip():
        raise ValidationError("Task description cannot be empty")


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


class TaskService:
    """Service for task business logic.

    Operations on tasks and their relationships. All writes go through the
    owning ``Store`` so they are atomic and undoable.
    """

    def __init__(self, store: Store):
        """Initialize task service.

        Args:
            store: Open store providing repositories, graph and command log
        """
        self.store = store
        self.tasks = store.tasks
        self.lists = store.lists
        self.graph = store.graph
        self.sync = store.sync
        self.command_log = store.command_log

    def _ensure_list(self, name: str) -> bool:
        """Create ``name`` if it does not exist, recording the creation."""
        validate_list_name(name)
        if self.lists.exists(name):
            return False
        task_list = TaskList(name=name, sort_order=self.lists.next_sort_order())
        self.lists.insert(task_list)
        self.command_log.record(CreateListCommand(task_list=task_list))
        logger.info("created list '%s'", name)
        return True

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------

    def add_task(self, description: str, list_name: str | None = None) -> TaskResult:
        """Create a task and apply the relationship markers in its description.

        A parent marker naming a task in another list moves the new task to
        that list. References that cannot be applied are skipped; the task is
        still created and the result carries a warning per skipped marker.
        """
        list_name = list_name or self.store.default_list

        def operation() -> Success:
            _validate_description(description)
            parsed = parse(description, self.store.today())

            target_list = list_name
            if parsed.parent_id:
                parent = self.tasks.get(parsed.parent_id)
                if parent is not None and not parent.is_trashed:
                    target_list = parent.list_name
            self._ensure_list(target_list)

            task = Task(
                id=self.tasks.new_id(),
                description=description,
                list_name=target_list,
                priority=parsed.priority,
                due_date=parsed.due_date,
                due_date_raw=parsed.due_date_raw,
                tags=parsed.tags,
                created_at=self.store.now(),
                sort_order=self.tasks.next_sort_order(target_list),
            )
            self.tasks.insert(task)
            self.command_log.record(AddTaskCommand(task=task))

            warnings = self.sync.apply_rename(task.id, ParsedDescription(), parsed, self.graph)
            logger.info("added task %s to '%s'", task.id, target_list)
            return Success(
                message=f"Added task {task.id} to '{target_list}'",
                task_id=task.id,
                warnings=warnings,
            )

        return self.store.run(f"Add task to '{list_name}'", operation)

    def rename_task(self, task_id: str, description: str) -> TaskResult:
        """Replace a task's description and re-derive everything from it.

        Only references added or removed relative to the old description
        change edges. A due marker whose raw text is unchanged keeps the
        stored date, so ``@today`` does not drift on unrelated edits.
        Surrounding whitespace is trimmed before comparing.
        """
        description = description.strip()

        def operation() -> Success:
            _validate_description(description)
            task = self.tasks.require(task_id)
            if description == task.description:
                raise NoChangeError(f"Task '{task_id}' already has that description")

            today = self.store.today()
            old = parse(task.description, today)
            new = parse(description, today)
            due_date = new.due_date
            if new.due_date_raw is not None and new.due_date_raw == task.due_date_raw:
                due_date = task.due_date

            old_text = TaskText(
                description=task.description,
                priority=task.priority,
                due_date=task.due_date,
                due_date_raw=task.due_date_raw,
                tags=task.tags,
            )
            new_text = TaskText(
                description=description,
                priority=new.priority,
                due_date=due_date,
                due_date_raw=new.due_date_raw,
                tags=new.tags,
            )
            self.tasks.set_text_fields(
                task_id,
                new_text.description,
                new_text.priority,
                new_text.due_date,
                new_text.due_date_raw,
                new_text.tags,
            )
            self.command_log.record(
                RenameTaskCommand(task_id=task_id, old=old_text, new=new_text)
            )
            warnings = self.sync.apply_rename(task_id, old, new, self.graph)
            return Success(message=f"Renamed task {task_id}", task_id=task_id, warnings=warnings)

        return self.store.run(f"Rename task {task_id}", operation)

    def delete_task(self, task_id: str) -> TaskResult:
        """Move a task and its live descendants to the trash."""

        def operation() -> Success:
            trashed = self.graph.trash(task_id)
            if len(trashed) > 1:
                message = f"Trashed {task_id} and {_plural(len(trashed) - 1, 'subtask')}"
            else:
                message = f"Trashed task {task_id}"
            return Success(message=message, task_id=task_id)

        return self.store.run(f"Delete task {task_id}", operation)

    def delete_tasks(self, task_ids: list[str]) -> TaskResult:
        """Trash several tasks as one undoable operation.

        Missing or already trashed IDs are skipped with a warning; the rest
        are still trashed.
        """

        def operation() -> Success:
            warnings: list[str] = []
            trashed = 0
            for task_id in task_ids:
                before = len(self.command_log.current_batch.commands)
                warning = self.graph.attempt(
                    task_id, lambda task_id=task_id: self.graph.trash(task_id)
                )
                if warning:
                    warnings.append(warning)
                elif len(self.command_log.current_batch.commands) > before:
                    trashed += 1
            if not trashed:
                raise ValidationError("; ".join(warnings) or "No tasks to delete")
            return Success(message=f"Trashed {_plural(trashed, 'task')}", warnings=warnings)

        return self.store.run(f"Delete {_plural(len(task_ids), 'task')}", operation)

    def restore_task(self, task_id: str) -> TaskResult:
        """Restore a trashed task and the descendants trashed with it."""

        def operation() -> Success:
            restored = self.graph.restore(task_id)
            if len(restored) > 1:
                message = f"Restored {task_id} and {_plural(len(restored) - 1, 'subtask')}"
            else:
                message = f"Restored task {task_id}"
            return Success(message=message, task_id=task_id)

        return self.store.run(f"Restore task {task_id}", operation)

    def purge_trash(self, list_name: str | None = None) -> TaskResult:
        """Permanently delete trashed tasks, in one list or everywhere.

        Subtasks of a purged task go with it, even if they were restored on
        their own. The full snapshot is recorded so undo brings every row
        and edge back.
        """

        def operation() -> Success:
            trashed = self.tasks.list_tasks(list_name, trashed=True)
            if not trashed:
                raise NoChangeError("Trash is empty")
            trashed_ids = {task.id for task in trashed}
            roots = [task.id for task in trashed if task.parent_id not in trashed_ids]
            snapshot = self.tasks.subtree_snapshot(roots)
            snapshot_ids = [task.id for task in snapshot]
            dependencies = self.tasks.dependencies_touching(snapshot_ids)
            relations = self.tasks.relations_touching(snapshot_ids)

            for root_id in roots:
                self.tasks.delete(root_id)
            self.command_log.record(
                PurgeTasksCommand(tasks=snapshot, dependencies=dependencies, relations=relations)
            )
            logger.info("purged %d task(s) from the trash", len(snapshot))
            return Success(message=f"Permanently deleted {_plural(len(snapshot), 'task')}")

        scope = f"'{list_name}'" if list_name else "all lists"
        return self.store.run(f"Empty trash in {scope}", operation)

    def clear_list(self, list_name: str | None = None) -> TaskResult:
        """Trash every live task in a list."""
        list_name = list_name or self.store.default_list

        def operation() -> Success:
            self.lists.require(list_name)
            live = self.tasks.list_tasks(list_name)
            if not live:
                raise NoChangeError(f"List '{list_name}' has no tasks")
            live_ids = {task.id for task in live}
            count = 0
            for task in live:
                if task.parent_id in live_ids:
                    continue
                count += len(self.graph.trash(task.id))
            return Success(message=f"Trashed {_plural(count, 'task')} from '{list_name}'")

        return self.store.run(f"Clear list '{list_name}'", operation)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _change_status(self, task_id: str, status: TaskStatus) -> int:
        """Set one task's status; returns the number of descendants completed."""
        task = self.tasks.require(task_id)
        if task.status == status:
            raise NoChangeError(f"Task '{task_id}' is already {status.label}")
        completed_at = self.store.now() if status == TaskStatus.DONE else None
        self.tasks.set_status(task_id, status, completed_at)
        self.command_log.record(
            SetStatusCommand(
                task_id=task_id,
                old_status=task.status,
                new_status=status,
                old_completed_at=task.completed_at,
                new_completed_at=completed_at,
            )
        )
        if status == TaskStatus.DONE:
            return self.graph.complete_descendants(task_id, completed_at)
        return 0

    def set_status(self, task_id: str, status: TaskStatus) -> TaskResult:
        """Change a task's status.

        Marking a task Done also marks every live descendant Done. Moving a
        task out of Done does not touch its descendants.
        """

        def operation() -> Success:
            cascaded = self._change_status(task_id, status)
            message = f"Marked {task_id} as {status.label}"
            if cascaded:
                message += f" (and {_plural(cascaded, 'subtask')})"
            return Success(message=message, task_id=task_id)

        return self.store.run(f"Mark {task_id} as {status.label}", operation)

    def set_statuses(self, task_ids: list[str], status: TaskStatus) -> TaskResult:
        """Change the status of several tasks as one undoable operation."""

        def operation() -> Success:
            warnings: list[str] = []
            changed = 0
            for task_id in task_ids:
                before = len(self.command_log.current_batch.commands)
                warning = self.graph.attempt(
                    task_id, lambda task_id=task_id: self._change_status(task_id, status)
                )
                if warning:
                    warnings.append(warning)
                elif len(self.command_log.current_batch.commands) > before:
                    changed += 1
            if not changed:
                if warnings:
                    raise ValidationError("; ".join(warnings))
                raise NoChangeError(f"All tasks are already {status.label}")
            return Success(
                message=f"Marked {_plural(changed, 'task')} as {status.label}",
                warnings=warnings,
            )

        return self.store.run(
            f"Mark {_plural(len(task_ids), 'task')} as {status.label}", operation
        )

    # ------------------------------------------------------------------
    # Metadata and placement
    # ------------------------------------------------------------------

    def _set_metadata(self, task: Task, **changes) -> None:
        old = TaskMetadata(
            priority=task.priority,
            due_date=task.due_date,
            due_date_raw=task.due_date_raw,
            sort_order=task.sort_order,
        )
        new = old.model_copy(
            update={**changes, "sort_order": self.tasks.next_sort_order(task.list_name)}
        )
        self.tasks.set_metadata(
            task.id, new.priority, new.due_date, new.due_date_raw, new.sort_order
        )
        self.command_log.record(SetMetadataCommand(task_id=task.id, old=old, new=new))
        self.sync.metadata_changed(task.id)

    def set_due_date(self, task_id: str, due: date | str | None) -> TaskResult:
        """Set or clear a task's due date.

        Args:
            task_id: Task to change
            due: A date, a date expression such as ``tomorrow`` or ``+3d``,
                or None to clear
        """

        def operation() -> Success:
            task = self.tasks.require(task_id)
            if isinstance(due, str):
                due_date = parse_date(due, self.store.today())
                if due_date is None:
                    raise ValidationError(f"Unrecognized date '{due}'")
            else:
                due_date = due
            if due_date == task.due_date and (due_date is not None or task.due_date_raw is None):
                raise NoChangeError(f"Task '{task_id}' already has that due date")

            raw = format_date(due_date) if due_date else None
            self._set_metadata(task, due_date=due_date, due_date_raw=raw)
            message = (
                f"Set due date for {task_id}: {raw}" if raw else f"Cleared due date for {task_id}"
            )
            return Success(message=message, task_id=task_id)

        return self.store.run(f"Set due date of {task_id}", operation)

    def set_priority(self, task_id: str, priority: Priority | None) -> TaskResult:
        """Set or clear a task's priority."""

        def operation() -> Success:
            task = self.tasks.require(task_id)
            if priority == task.priority:
                raise NoChangeError(f"Task '{task_id}' already has that priority")
            self._set_metadata(task, priority=priority)
            message = (
                f"Set priority for {task_id}: p{int(priority)}"
                if priority is not None
                else f"Cleared priority for {task_id}"
            )
            return Success(message=message, task_id=task_id)

        return self.store.run(f"Set priority of {task_id}", operation)

    def move_task(self, task_id: str, list_name: str) -> TaskResult:
        """Move a top-level task and its subtree to another list.

        The target list is created if needed. Subtasks cannot be moved on
        their own.
        """

        def operation() -> Success:
            self.tasks.require(task_id)
            self._ensure_list(list_name)
            moved = self.graph.move(task_id, list_name)
            if len(moved) > 1:
                message = (
                    f"Moved {task_id} and {_plural(len(moved) - 1, 'subtask')} to '{list_name}'"
                )
            else:
                message = f"Moved task {task_id} to '{list_name}'"
            return Success(message=message, task_id=task_id)

        return self.store.run(f"Move {task_id} to '{list_name}'", operation)

    def reorder_task(self, task_id: str, new_index: int) -> TaskResult:
        """Move a task to ``new_index`` in its list's display order."""

        def operation() -> Success:
            task = self.tasks.require(task_id)
            ordered = [t.id for t in self.tasks.list_tasks(task.list_name)]
            current_index = ordered.index(task_id)
            target_index = max(0, min(new_index, len(ordered) - 1))
            if target_index == current_index:
                raise NoChangeError(f"Task '{task_id}' is already at position {target_index}")

            ordered.pop(current_index)
            ordered.insert(target_index, task_id)
            tasks_by_id = {t.id: t for t in self.tasks.list_tasks(task.list_name)}
            count = len(ordered)
            old_orders: dict[str, int] = {}
            new_orders: dict[str, int] = {}
            for position, ordered_id in enumerate(ordered):
                sort_order = count - 1 - position
                if tasks_by_id[ordered_id].sort_order != sort_order:
                    old_orders[ordered_id] = tasks_by_id[ordered_id].sort_order
                    new_orders[ordered_id] = sort_order
                    self.tasks.set_sort_order(ordered_id, sort_order)
            self.command_log.record(
                ReorderTasksCommand(
                    list_name=task.list_name, old_orders=old_orders, new_orders=new_orders
                )
            )
            return Success(message=f"Moved {task_id} to position {target_index}", task_id=task_id)

        return self.store.run(f"Reorder {task_id}", operation)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def set_parent(self, child_id: str, parent_id: str) -> TaskResult:
        return self.store.run(
            f"Set parent of {child_id}",
            lambda: Success(
                message=self.graph.set_parent(child_id, parent_id), task_id=child_id
            ),
        )

    def unset_parent(self, child_id: str) -> TaskResult:
        return self.store.run(
            f"Remove parent of {child_id}",
            lambda: Success(message=self.graph.unset_parent(child_id), task_id=child_id),
        )

    def add_blocker(self, blocker_id: str, blocked_id: str) -> TaskResult:
        return self.store.run(
            f"{blocker_id} blocks {blocked_id}",
            lambda: Success(message=self.graph.add_blocker(blocker_id, blocked_id)),
        )

    def remove_blocker(self, blocker_id: str, blocked_id: str) -> TaskResult:
        return self.store.run(
            f"{blocker_id} no longer blocks {blocked_id}",
            lambda: Success(message=self.graph.remove_blocker(blocker_id, blocked_id)),
        )

    def add_related(self, first_id: str, second_id: str) -> TaskResult:
        return self.store.run(
            f"Relate {first_id} and {second_id}",
            lambda: Success(message=self.graph.add_related(first_id, second_id)),
        )

    def remove_related(self, first_id: str, second_id: str) -> TaskResult:
        return self.store.run(
            f"Unrelate {first_id} and {second_id}",
            lambda: Success(message=self.graph.remove_related(first_id, second_id)),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def list_tasks(
        self,
        list_name: str | None = None,
        include_done: bool = True,
        status: TaskStatus | None = None,
        priority: Priority | None = None,
        overdue: bool = False,
    ) -> list[Task]:
        """Live tasks in display order: open first, most recently bumped first.

        Args:
            list_name: Only tasks in this list
            include_done: Include completed tasks
            status: Only tasks with this status
            priority: Only tasks with this priority
            overdue: Only tasks due before today
        """
        result = self.tasks.list_tasks(list_name, include_done=include_done)
        if status is not None:
            result = [t for t in result if t.status == status]
        if priority is not None:
            result = [t for t in result if t.priority == priority]
        if overdue:
            today = self.store.today()
            result = [t for t in result if t.due_date is not None and t.due_date < today]
        return result

    def get_trash(self, list_name: str | None = None) -> list[Task]:
        return self.tasks.list_tasks(list_name, trashed=True)

    def get_subtasks(self, task_id: str) -> list[Task]:
        """Direct live children of a task."""
        return self.tasks.get_children(task_id)

    def get_descendants(self, task_id: str) -> list[Task]:
        return self.graph.get_descendants(task_id)

    def get_blockers(self, task_id: str) -> list[Task]:
        return self.graph.get_blockers(task_id)

    def get_blocking(self, task_id: str) -> list[Task]:
        return self.graph.get_blocking(task_id)

    def get_related(self, task_id: str) -> list[Task]:
        return self.graph.get_related(task_id)

    def search(self, query: str) -> list[Task]:
        """Search live tasks; see ``parse_search_filters`` for the query syntax."""
        return self.tasks.search(parse_search_filters(query), self.store.today())

    def get_stats(self, list_name: str | None = None) -> dict[str, int]:
        """Counts of live tasks per status, plus the trash size."""
        live = self.tasks.list_tasks(list_name)
        return {
            "total": len(live),
            "pending": sum(1 for t in live if t.status == TaskStatus.PENDING),
            "in_progress": sum(1 for t in live if t.status == TaskStatus.IN_PROGRESS),
            "done": sum(1 for t in live if t.status == TaskStatus.DONE),
            "trash": len(self.tasks.list_tasks(list_name, trashed=True)),
        }
