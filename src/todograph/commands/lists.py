"""List management commands."""

from typing import Annotated

import typer
from rich.console import Console

from todograph.services.config_service import get_config_service
from todograph.services.list_service import ListService
from todograph.services.task_service import TaskService
from todograph.utils.typer_helpers import SuggestingGroup
from todograph.utils.ui.formatters import format_lists_table

from .decorators import command_wrapper, report_result

app = typer.Typer(cls=SuggestingGroup, help="List management commands")
console = Console()


@app.command("list")
@command_wrapper
def list_lists() -> None:
    """Show all lists with their task counts."""
    with get_config_service().open_store() as store:
        lists = ListService(store).get_lists()
        task_service = TaskService(store)
        counts = {
            task_list.name: task_service.get_stats(task_list.name)["total"]
            for task_list in lists
        }
    format_lists_table(lists, counts)


@app.command("create")
@command_wrapper
def create_list(
    name: Annotated[str, typer.Argument(help="List name (letters, digits, '_' and '-')")],
) -> None:
    """Create a list."""
    with get_config_service().open_store() as store:
        report_result(ListService(store).create_list(name))


@app.command("rename")
@command_wrapper
def rename_list(
    old_name: Annotated[str, typer.Argument(help="Current list name")],
    new_name: Annotated[str, typer.Argument(help="New list name")],
) -> None:
    """Rename a list; its tasks move with it."""
    with get_config_service().open_store() as store:
        report_result(ListService(store).rename_list(old_name, new_name))


@app.command("delete")
@command_wrapper
def delete_list(
    name: Annotated[str, typer.Argument(help="List name")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete a list together with all of its tasks."""
    if not yes and not typer.confirm(f"Delete list '{name}' and all its tasks?", default=False):
        console.print("[yellow]Cancelled.[/yellow]")
        raise typer.Exit(0)
    with get_config_service().open_store() as store:
        report_result(ListService(store).delete_list(name))


@app.command("reorder")
@command_wrapper
def reorder_list(
    name: Annotated[str, typer.Argument(help="List name")],
    position: Annotated[int, typer.Argument(help="New position (0 is first)")],
) -> None:
    """Move a list to a new position."""
    with get_config_service().open_store() as store:
        report_result(ListService(store).reorder_list(name, position))


@app.command("collapse")
@command_wrapper
def collapse_list(
    name: Annotated[str, typer.Argument(help="List name")],
    expand: Annotated[bool, typer.Option("--expand", help="Expand instead")] = False,
) -> None:
    """Collapse (or expand) a list in list views."""
    with get_config_service().open_store() as store:
        report_result(ListService(store).set_collapsed(name, not expand))
