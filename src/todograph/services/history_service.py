"""Undo/redo service."""

from __future__ import annotations

import logging

from todograph.exceptions import NoChangeError
from todograph.models.results import Success, TaskResult
from todograph.services.store import Store

logger = logging.getLogger(__name__)


class HistoryService:
    """Undo, redo and inspect the persisted command log."""

    def __init__(self, store: Store):
        self.store = store
        self.command_log = store.command_log

    def undo(self) -> TaskResult:
        """Revert the most recent operation.

        Runs in its own transaction against the freshly loaded log, so an
        undo issued from one process sees operations made by another.
        """

        def operation() -> Success:
            description = self.command_log.undo(self.store.executor.revert)
            if description is None:
                raise NoChangeError("Nothing to undo")
            logger.info("undid '%s'", description)
            return Success(message=f"Undid: {description}")

        return self.store.run("Undo", operation)

    def redo(self) -> TaskResult:
        def operation() -> Success:
            description = self.command_log.redo(self.store.executor.apply)
            if description is None:
                raise NoChangeError("Nothing to redo")
            logger.info("redid '%s'", description)
            return Success(message=f"Redid: {description}")

        return self.store.run("Redo", operation)

    def history(self) -> tuple[list[str], list[str]]:
        """Descriptions of undoable and redoable operations, most recent first."""
        self.command_log.load(self.store.history)
        return self.command_log.history()

    def clear(self) -> TaskResult:
        self.store.clear_history()
        return Success(message="Undo history cleared")
