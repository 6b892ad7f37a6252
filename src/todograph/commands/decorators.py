"""Decorators and shared helpers for command functions."""

import functools
import time
import traceback
from collections.abc import Callable

import typer

from todograph.models.results import Error, NoChange, NotFound, Success, TaskResult
from todograph.utils.exit_codes import ERROR_GENERAL, ERROR_NOT_FOUND
from todograph.utils.logger import get_logger
from todograph.utils.ui.formatters import (
    format_error,
    format_info,
    format_success,
    format_warning,
)


class AppError(Exception):
    """Custom application error with exit code."""

    def __init__(self, message: str, exit_code: int = ERROR_GENERAL):
        super().__init__(message)
        self.exit_code = exit_code


def report_result(result: TaskResult) -> None:
    """Print an operation result; raise AppError for failures."""
    if isinstance(result, Success):
        format_success(result.message)
        for warning in result.warnings:
            format_warning(warning)
    elif isinstance(result, NoChange):
        format_info(result.reason)
    elif isinstance(result, NotFound):
        raise AppError(result.message or f"'{result.id}' not found", ERROR_NOT_FOUND)
    elif isinstance(result, Error):
        raise AppError(result.message, ERROR_GENERAL)


def command_wrapper(func: Callable):
    """Decorator to wrap command functions with logging and error handling."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger()
        cmd = func.__name__
        start = time.monotonic()
        logger.info("command started: %s", cmd)
        try:
            result = func(*args, **kwargs)
            elapsed = time.monotonic() - start
            logger.info("command completed: %s (%.3fs)", cmd, elapsed)
            return result

        except AppError as e:
            elapsed = time.monotonic() - start
            logger.error("command failed: %s (%.3fs) - %s", cmd, elapsed, str(e))
            format_error(str(e))
            raise typer.Exit(code=e.exit_code) from e

        except typer.Exit:
            # Re-raise Typer's own exits (like --help or explicit Exit(0))
            raise

        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(
                "command failed: %s (%.3fs) - %s\n%s",
                cmd,
                elapsed,
                str(e),
                traceback.format_exc(),
            )
            format_error(f"An unexpected error occurred: {str(e)}")
            raise typer.Exit(code=ERROR_GENERAL) from e

    return wrapper
