"""Task management commands."""

from typing import Annotated

import typer
from rich.console import Console

from todograph.models.core import Priority, TaskStatus
from todograph.services.config_service import get_config_service
from todograph.services.task_service import TaskService
from todograph.utils.exit_codes import ERROR_INVALID_ARGS, ERROR_NOT_FOUND
from todograph.utils.typer_helpers import SuggestingGroup
from todograph.utils.ui.formatters import (
    format_task_detail,
    format_tasks_json,
    format_tasks_table,
)

from .decorators import AppError, command_wrapper, report_result

app = typer.Typer(cls=SuggestingGroup, help="Task management commands")
console = Console()

STATUS_NAMES = {
    "pending": TaskStatus.PENDING,
    "todo": TaskStatus.PENDING,
    "in-progress": TaskStatus.IN_PROGRESS,
    "started": TaskStatus.IN_PROGRESS,
    "done": TaskStatus.DONE,
}

PRIORITY_NAMES = {
    "1": Priority.HIGH,
    "p1": Priority.HIGH,
    "high": Priority.HIGH,
    "2": Priority.MEDIUM,
    "p2": Priority.MEDIUM,
    "medium": Priority.MEDIUM,
    "3": Priority.LOW,
    "p3": Priority.LOW,
    "low": Priority.LOW,
}

_CLEAR_VALUES = {"none", "clear", "-"}


def _parse_status(value: str) -> TaskStatus:
    try:
        return STATUS_NAMES[value.lower()]
    except KeyError:
        raise AppError(
            f"Unknown status '{value}'. Use one of: pending, in-progress, done",
            ERROR_INVALID_ARGS,
        ) from None


def _parse_priority(value: str) -> Priority:
    try:
        return PRIORITY_NAMES[value.lower()]
    except KeyError:
        raise AppError(f"Unknown priority '{value}'", ERROR_INVALID_ARGS) from None


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------


@app.command("add")
@command_wrapper
def add_task(
    description: Annotated[str, typer.Argument(help="Task text; the last line may hold markers")],
    list_name: Annotated[
        str | None, typer.Option("--list", "-l", help="Target list (default list if omitted)")
    ] = None,
) -> None:
    """
    Add a task.

    Markers on the last line set metadata and relationships:

      ^abc  parent      !abc  blocks      ~abc  related
      p1-p3 priority    @tomorrow  due    #tag  tag

    Examples:
      todograph tasks add "Write report\\np1 @friday #work"
      todograph tasks add "Draft outline ^k3x"
    """
    with get_config_service().open_store() as store:
        report_result(TaskService(store).add_task(description, list_name))


@app.command("rename")
@command_wrapper
def rename_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    description: Annotated[str, typer.Argument(help="New task text")],
) -> None:
    """Replace a task's text, re-applying its markers."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).rename_task(task_id, description))


@app.command("delete")
@command_wrapper
def delete_task(
    task_ids: Annotated[list[str], typer.Argument(help="Task ID(s)")],
) -> None:
    """Move tasks (and their subtasks) to the trash."""
    with get_config_service().open_store() as store:
        service = TaskService(store)
        if len(task_ids) == 1:
            report_result(service.delete_task(task_ids[0]))
        else:
            report_result(service.delete_tasks(task_ids))


@app.command("restore")
@command_wrapper
def restore_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
) -> None:
    """Restore a task from the trash, with the subtasks trashed alongside it."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).restore_task(task_id))


@app.command("trash")
@command_wrapper
def show_trash(
    list_name: Annotated[str | None, typer.Option("--list", "-l", help="Only this list")] = None,
) -> None:
    """Show trashed tasks."""
    with get_config_service().open_store() as store:
        format_tasks_table(TaskService(store).get_trash(list_name), title="Trash")


@app.command("purge")
@command_wrapper
def purge_trash(
    list_name: Annotated[str | None, typer.Option("--list", "-l", help="Only this list")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Permanently delete trashed tasks."""
    if not yes:
        scope = f"list '{list_name}'" if list_name else "all lists"
        if not typer.confirm(f"Permanently delete the trash in {scope}?", default=False):
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(0)
    with get_config_service().open_store() as store:
        report_result(TaskService(store).purge_trash(list_name))


@app.command("clear")
@command_wrapper
def clear_list(
    list_name: Annotated[str | None, typer.Option("--list", "-l", help="List to clear")] = None,
) -> None:
    """Move every task in a list to the trash."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).clear_list(list_name))


# ----------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------


@app.command("list")
@command_wrapper
def list_tasks(
    list_name: Annotated[str | None, typer.Option("--list", "-l", help="Only this list")] = None,
    hide_done: Annotated[bool, typer.Option("--hide-done", help="Hide completed tasks")] = False,
    status: Annotated[
        str | None, typer.Option("--status", "-s", help="Only this status")
    ] = None,
    priority: Annotated[
        str | None, typer.Option("--priority", "-p", help="Only this priority (1-3)")
    ] = None,
    overdue: Annotated[bool, typer.Option("--overdue", help="Only overdue tasks")] = False,
    json_opt: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """List tasks."""
    status_filter = _parse_status(status) if status else None
    priority_filter = _parse_priority(priority) if priority else None
    with get_config_service().open_store() as store:
        tasks = TaskService(store).list_tasks(
            list_name,
            include_done=not hide_done,
            status=status_filter,
            priority=priority_filter,
            overdue=overdue,
        )
    if json_opt:
        format_tasks_json(tasks)
    else:
        format_tasks_table(tasks, title=list_name)


@app.command("show")
@command_wrapper
def show_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
) -> None:
    """Show a task with its subtasks, blockers and related tasks."""
    with get_config_service().open_store() as store:
        service = TaskService(store)
        task = service.get_task(task_id)
        if task is None:
            raise AppError(f"Task '{task_id}' not found", ERROR_NOT_FOUND)
        format_task_detail(
            task,
            subtasks=service.get_subtasks(task_id),
            blockers=service.get_blockers(task_id),
            blocking=service.get_blocking(task_id),
            related=service.get_related(task_id),
        )


@app.command("search")
@command_wrapper
def search_tasks(
    query: Annotated[
        str, typer.Argument(help="Text plus filters such as tag:work status:done due:week")
    ],
    json_opt: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """
    Search live tasks.

    Filters: tag:, status:, priority:, due:today|overdue|week|month, list:,
    has:subtasks|parent|due|tags. Remaining text matches the description.
    """
    with get_config_service().open_store() as store:
        tasks = TaskService(store).search(query)
    if json_opt:
        format_tasks_json(tasks)
    else:
        format_tasks_table(tasks, title=f"Matching '{query}'")


# ----------------------------------------------------------------------
# Status and metadata
# ----------------------------------------------------------------------


@app.command("status")
@command_wrapper
def set_status(
    status: Annotated[str, typer.Argument(help="pending, in-progress or done")],
    task_ids: Annotated[list[str], typer.Argument(help="Task ID(s)")],
) -> None:
    """Set the status of one or more tasks."""
    new_status = _parse_status(status)
    with get_config_service().open_store() as store:
        service = TaskService(store)
        if len(task_ids) == 1:
            report_result(service.set_status(task_ids[0], new_status))
        else:
            report_result(service.set_statuses(task_ids, new_status))


@app.command("done")
@command_wrapper
def complete_tasks(
    task_ids: Annotated[list[str], typer.Argument(help="Task ID(s)")],
) -> None:
    """Mark tasks done; their subtasks are completed too."""
    with get_config_service().open_store() as store:
        service = TaskService(store)
        if len(task_ids) == 1:
            report_result(service.set_status(task_ids[0], TaskStatus.DONE))
        else:
            report_result(service.set_statuses(task_ids, TaskStatus.DONE))


@app.command("due")
@command_wrapper
def set_due_date(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    when: Annotated[
        str, typer.Argument(help="Date (today, tomorrow, friday, +3d, jan15, 2026-01-15) or 'none'")
    ],
) -> None:
    """Set or clear a task's due date."""
    due = None if when.lower() in _CLEAR_VALUES else when
    with get_config_service().open_store() as store:
        report_result(TaskService(store).set_due_date(task_id, due))


@app.command("priority")
@command_wrapper
def set_priority(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    level: Annotated[str, typer.Argument(help="1-3, high/medium/low, or 'none'")],
) -> None:
    """Set or clear a task's priority."""
    if level.lower() in _CLEAR_VALUES:
        priority = None
    else:
        priority = _parse_priority(level)
    with get_config_service().open_store() as store:
        report_result(TaskService(store).set_priority(task_id, priority))


@app.command("move")
@command_wrapper
def move_task(
    task_id: Annotated[str, typer.Argument(help="Top-level task ID")],
    list_name: Annotated[str, typer.Argument(help="Target list (created if missing)")],
) -> None:
    """Move a task and its subtasks to another list."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).move_task(task_id, list_name))


@app.command("reorder")
@command_wrapper
def reorder_task(
    task_id: Annotated[str, typer.Argument(help="Task ID")],
    position: Annotated[int, typer.Argument(help="New position (0 is the top)")],
) -> None:
    """Move a task to a position within its list."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).reorder_task(task_id, position))


# ----------------------------------------------------------------------
# Relationships
# ----------------------------------------------------------------------


@app.command("parent")
@command_wrapper
def set_parent(
    child_id: Annotated[str, typer.Argument(help="Subtask ID")],
    parent_id: Annotated[str, typer.Argument(help="Parent task ID")],
) -> None:
    """Make a task a subtask of another task in the same list."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).set_parent(child_id, parent_id))


@app.command("unparent")
@command_wrapper
def unset_parent(
    child_id: Annotated[str, typer.Argument(help="Subtask ID")],
) -> None:
    """Make a subtask a top-level task."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).unset_parent(child_id))


@app.command("block")
@command_wrapper
def add_blocker(
    blocker_id: Annotated[str, typer.Argument(help="Task that blocks")],
    blocked_id: Annotated[str, typer.Argument(help="Task that is blocked")],
) -> None:
    """Record that one task blocks another."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).add_blocker(blocker_id, blocked_id))


@app.command("unblock")
@command_wrapper
def remove_blocker(
    blocker_id: Annotated[str, typer.Argument(help="Task that blocks")],
    blocked_id: Annotated[str, typer.Argument(help="Task that is blocked")],
) -> None:
    """Remove a blocking relationship."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).remove_blocker(blocker_id, blocked_id))


@app.command("relate")
@command_wrapper
def add_related(
    first_id: Annotated[str, typer.Argument(help="Task ID")],
    second_id: Annotated[str, typer.Argument(help="Task ID")],
) -> None:
    """Mark two tasks as related."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).add_related(first_id, second_id))


@app.command("unrelate")
@command_wrapper
def remove_related(
    first_id: Annotated[str, typer.Argument(help="Task ID")],
    second_id: Annotated[str, typer.Argument(help="Task ID")],
) -> None:
    """Remove a related link between two tasks."""
    with get_config_service().open_store() as store:
        report_result(TaskService(store).remove_related(first_id, second_id))
