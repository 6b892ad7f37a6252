"""Output formatters for tasks, lists and results."""

from __future__ import annotations

import json
from datetime import date

from rich.console import Console
from rich.table import Table
from rich.text import Text

from todograph.models.core import Priority, Task, TaskList, TaskStatus
from todograph.parsing.metadata_codec import get_display_description

console = Console()


def format_error(message: str) -> None:
    """Format and display an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def format_success(message: str) -> None:
    """Format and display a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def format_warning(message: str) -> None:
    """Format and display a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def format_info(message: str) -> None:
    """Format and display an info message."""
    console.print(f"[bold blue]Info:[/bold blue] {message}")


# ============================================================================
# Tasks
# ============================================================================

STATUS_ICONS = {
    TaskStatus.PENDING: "⬜",
    TaskStatus.IN_PROGRESS: "▶️",
    TaskStatus.DONE: "☑️",
}

PRIORITY_ICONS = {
    Priority.HIGH: "🔴",
    Priority.MEDIUM: "🟡",
    Priority.LOW: "🟢",
}

PRIORITY_COLORS = {
    Priority.HIGH: "bold red",
    Priority.MEDIUM: "bold yellow",
    Priority.LOW: "green",
}


def is_overdue(task: Task, today: date | None = None) -> bool:
    """Check if an open task's due date has passed."""
    if task.due_date is None or task.is_done:
        return False
    return task.due_date < (today or date.today())


def format_due_date(value: date, today: date | None = None) -> str:
    """Format due date in compact format: DD/MM DayOfWeek, with year if not this year."""
    today = today or date.today()
    if value == today:
        return "today"
    day_str = value.strftime("%d/%m") if value.year == today.year else value.strftime("%d/%m/%Y")
    return f"{day_str} {value.strftime('%a')}"


def _depths(tasks: list[Task]) -> dict[str, int]:
    by_id = {task.id: task for task in tasks}
    depths: dict[str, int] = {}

    def depth(task: Task) -> int:
        if task.id in depths:
            return depths[task.id]
        seen = {task.id}
        level = 0
        current = task
        while current.parent_id in by_id and current.parent_id not in seen:
            seen.add(current.parent_id)
            current = by_id[current.parent_id]
            level += 1
        depths[task.id] = level
        return level

    for task in tasks:
        depth(task)
    return depths


def _tree_order(tasks: list[Task]) -> list[Task]:
    """Order tasks so each subtask follows its parent, keeping sibling order."""
    ids = {task.id for task in tasks}
    children: dict[str | None, list[Task]] = {}
    for task in tasks:
        key = task.parent_id if task.parent_id in ids else None
        children.setdefault(key, []).append(task)

    ordered: list[Task] = []
    visited: set[str] = set()

    def visit(parent_id: str | None) -> None:
        for task in children.get(parent_id, []):
            if task.id in visited:
                continue
            visited.add(task.id)
            ordered.append(task)
            visit(task.id)

    visit(None)
    # Anything unreachable (corrupt parent links) is appended as-is
    ordered.extend(task for task in tasks if task.id not in visited)
    return ordered


def format_tasks_table(tasks: list[Task], title: str | None = None) -> None:
    """Display tasks as a table, subtasks indented under their parents."""
    if not tasks:
        console.print("[yellow]No tasks found[/yellow]")
        return

    ordered = _tree_order(tasks)
    depths = _depths(tasks)
    table = Table(show_header=True, header_style="bold magenta", title=title)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("", no_wrap=True)
    table.add_column("Task")
    table.add_column("Due", no_wrap=True)
    table.add_column("List", style="blue", no_wrap=True)

    for task in ordered:
        text = Text("  " * depths[task.id] + get_display_description(task.description))
        if task.is_done:
            text.stylize("dim")
        elif task.priority is not None:
            text.stylize(PRIORITY_COLORS[task.priority])

        due = ""
        if task.due_date is not None:
            due = format_due_date(task.due_date)
            if is_overdue(task):
                due = f"[bold red]{due}[/bold red]"
            else:
                due = f"[cyan]{due}[/cyan]"

        table.add_row(task.id, STATUS_ICONS[task.status], text, due, task.list_name)

    console.print(table)


def format_task_detail(
    task: Task,
    subtasks: list[Task],
    blockers: list[Task],
    blocking: list[Task],
    related: list[Task],
) -> None:
    """Display one task with its relationships."""
    header = Text()
    header.append(f"{STATUS_ICONS[task.status]} ")
    header.append(get_display_description(task.description), style="bold")
    header.append(f"  ({task.id})", style="dim")
    console.print(header)

    rows: list[tuple[str, str]] = [
        ("Status", task.status.label),
        ("List", task.list_name),
    ]
    if task.priority is not None:
        rows.append(("Priority", f"{PRIORITY_ICONS[task.priority]} p{int(task.priority)}"))
    if task.due_date is not None:
        rows.append(("Due", format_due_date(task.due_date)))
    if task.tags:
        rows.append(("Tags", " ".join(f"#{tag}" for tag in task.tags)))
    if task.parent_id:
        rows.append(("Parent", task.parent_id))
    if task.is_trashed:
        rows.append(("Trashed", "yes"))

    for label, value in rows:
        console.print(f"  [dim]{label}:[/dim] {value}")

    for label, group in (
        ("Subtasks", subtasks),
        ("Blocked by", blockers),
        ("Blocks", blocking),
        ("Related", related),
    ):
        if group:
            console.print(f"  [dim]{label}:[/dim]")
            for other in group:
                console.print(
                    f"    {STATUS_ICONS[other.status]} {other.id} "
                    f"{get_display_description(other.description)}"
                )


def format_tasks_json(tasks: list[Task]) -> None:
    print(json.dumps([task.model_dump(mode="json") for task in tasks], indent=2))


# ============================================================================
# Lists and history
# ============================================================================


def format_lists_table(lists: list[TaskList], counts: dict[str, int]) -> None:
    if not lists:
        console.print("[yellow]No lists found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim")
    table.add_column("List")
    table.add_column("Tasks", justify="right")
    table.add_column("Collapsed")
    for position, task_list in enumerate(lists):
        table.add_row(
            str(position),
            task_list.name,
            str(counts.get(task_list.name, 0)),
            "✓" if task_list.is_collapsed else "",
        )
    console.print(table)


def format_history(undo: list[str], redo: list[str]) -> None:
    """Display both stacks, most recent first."""
    if not undo and not redo:
        console.print("[yellow]No undo history[/yellow]")
        return
    if redo:
        console.print("[bold]Redo[/bold]")
        for description in redo:
            console.print(f"  [dim]↷[/dim] {description}")
    if undo:
        console.print("[bold]Undo[/bold]")
        for description in undo:
            console.print(f"  [dim]↶[/dim] {description}")
