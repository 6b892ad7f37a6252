"""Main entry point for the todograph CLI."""

import typer
from rich.console import Console

from todograph import __version__
from todograph.commands import lists, tasks
from todograph.commands.decorators import command_wrapper, report_result
from todograph.services.config_service import get_config_service
from todograph.services.history_service import HistoryService
from todograph.utils.typer_helpers import SuggestingGroup
from todograph.utils.ui.formatters import format_history

# Create main app with custom group class
app = typer.Typer(
    name="todograph",
    cls=SuggestingGroup,
    help="Task lists with subtasks, blockers and related links, plus undo/redo",
    no_args_is_help=True,
)

console = Console()


# Add subcommands
app.add_typer(tasks.app, name="tasks", help="Task management commands")
app.add_typer(lists.app, name="lists", help="List management commands")


# Add top-level commands
@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]todograph[/bold] version [cyan]{__version__}[/cyan]")


@app.command()
@command_wrapper
def undo() -> None:
    """Undo the most recent change."""
    with get_config_service().open_store() as store:
        report_result(HistoryService(store).undo())


@app.command()
@command_wrapper
def redo() -> None:
    """Redo the most recently undone change."""
    with get_config_service().open_store() as store:
        report_result(HistoryService(store).redo())


@app.command()
@command_wrapper
def history(
    clear: bool = typer.Option(False, "--clear", help="Forget all undo history"),
) -> None:
    """Show (or clear) the undo and redo history."""
    with get_config_service().open_store() as store:
        service = HistoryService(store)
        if clear:
            report_result(service.clear())
            return
        undo_stack, redo_stack = service.history()
    format_history(undo_stack, redo_stack)


# Main entry point
def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
