"""Undo/redo log of reversible commands.

A ``CommandLog`` is an explicit object owned by a ``Store``; nothing about
it is global. Each public operation opens exactly one batch, every command
recorded while it is open becomes part of it, and closing the batch pushes
a single undo entry (a ``CompositeCommand`` when several commands were
recorded). While an undo or redo is being replayed, recording is
suppressed so replays never feed back into the log.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from todograph.adapters.sqlite.history_repository import (
    REDO_STACK,
    UNDO_STACK,
    HistoryEntry,
    SqliteHistoryRepository,
)
from todograph.exceptions import ConsistencyError
from todograph.models.commands import (
    Command,
    CompositeCommand,
    describe_command,
    dump_command,
    load_command,
)

logger = logging.getLogger(__name__)


class LogEntry(BaseModel):
    """A command on one of the stacks, with the time it was pushed."""

    command: Command
    created_at: datetime


class Batch:
    """Transaction-scoped builder collecting the commands of one operation."""

    def __init__(self, description: str):
        self.description = description
        self.commands: list[Command] = []

    def record(self, command: Command) -> None:
        self.commands.append(command)

    def mark(self) -> int:
        """Position to roll back to if a nested step fails."""
        return len(self.commands)

    def rollback_to(self, mark: int) -> None:
        del self.commands[mark:]

    def build(self) -> Command | None:
        """Collapse the batch into one command, or None if it is empty."""
        if not self.commands:
            return None
        if len(self.commands) == 1:
            return self.commands[0].model_copy(update={"description": self.description})
        return CompositeCommand(description=self.description, commands=list(self.commands))


class CommandLog:
    """Two bounded stacks of reversible commands."""

    def __init__(
        self,
        max_depth: int = 50,
        retention_days: int = 30,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the log.

        Args:
            max_depth: Entries kept per stack; the oldest are evicted
            retention_days: Persisted entries older than this are dropped on load
            clock: Source of timestamps, for tests
        """
        self.max_depth = max_depth
        self.retention_days = retention_days
        self._clock = clock or (lambda: datetime.now(UTC))
        self.undo_stack: list[LogEntry] = []
        self.redo_stack: list[LogEntry] = []
        self._batch: Batch | None = None
        self._replaying = False

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    @property
    def is_replaying(self) -> bool:
        return self._replaying

    @property
    def current_batch(self) -> Batch | None:
        return self._batch

    @contextmanager
    def replaying(self) -> Iterator[None]:
        """Suppress recording while an undo or redo is applied."""
        previous = self._replaying
        self._replaying = True
        try:
            yield
        finally:
            self._replaying = previous

    def record(self, command: Command) -> None:
        """Record a command.

        Ignored while replaying. Inside a batch the command joins the batch;
        otherwise it is pushed to the undo stack and the redo stack is cleared.
        """
        if self._replaying:
            return
        if self._batch is not None:
            self._batch.record(command)
            return
        self._push_undo(command)

    def begin_batch(self, description: str) -> Batch:
        """Open the single active batch.

        Raises:
            RuntimeError: If a batch is already open
        """
        if self._batch is not None:
            raise RuntimeError(
                f"Cannot begin '{description}': batch '{self._batch.description}' is still open"
            )
        self._batch = Batch(description)
        return self._batch

    def end_batch(self, batch: Batch) -> Command | None:
        """Close ``batch`` and push its commands as one undo entry.

        Returns:
            The recorded command, or None if the batch was empty
        """
        self._close(batch)
        command = batch.build()
        if command is not None:
            self._push_undo(command)
            logger.debug(
                "recorded '%s' (%d command(s))", batch.description, len(batch.commands)
            )
        return command

    def cancel_batch(self, batch: Batch) -> None:
        """Close ``batch`` without recording anything."""
        self._close(batch)

    @contextmanager
    def batch(self, description: str) -> Iterator[Batch]:
        batch = self.begin_batch(description)
        try:
            yield batch
        except BaseException:
            self.cancel_batch(batch)
            raise
        self.end_batch(batch)

    def _close(self, batch: Batch) -> None:
        if batch is not self._batch:
            raise RuntimeError(f"Batch '{batch.description}' is not the open batch")
        self._batch = None

    def _push_undo(self, command: Command) -> None:
        self.undo_stack.append(LogEntry(command=command, created_at=self._clock()))
        self.redo_stack.clear()
        self._evict(self.undo_stack)

    def _evict(self, stack: list[LogEntry]) -> None:
        overflow = len(stack) - self.max_depth
        if overflow > 0:
            del stack[:overflow]

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def undo(self, revert: Callable[[Command], None]) -> str | None:
        """Revert the most recent command.

        Args:
            revert: Executor applying a command's reverse effect

        Returns:
            Description of the undone command, or None if nothing to undo
        """
        if not self.undo_stack:
            return None
        entry = self.undo_stack.pop()
        try:
            with self.replaying():
                revert(entry.command)
        except BaseException:
            self.undo_stack.append(entry)
            raise
        self.redo_stack.append(LogEntry(command=entry.command, created_at=self._clock()))
        self._evict(self.redo_stack)
        return describe_command(entry.command)

    def redo(self, apply: Callable[[Command], None]) -> str | None:
        """Re-apply the most recently undone command.

        Returns:
            Description of the redone command, or None if nothing to redo
        """
        if not self.redo_stack:
            return None
        entry = self.redo_stack.pop()
        try:
            with self.replaying():
                apply(entry.command)
        except BaseException:
            self.redo_stack.append(entry)
            raise
        self.undo_stack.append(LogEntry(command=entry.command, created_at=self._clock()))
        self._evict(self.undo_stack)
        return describe_command(entry.command)

    def history(self) -> tuple[list[str], list[str]]:
        """Descriptions of the undo and redo stacks, most recent first."""
        return (
            [describe_command(e.command) for e in reversed(self.undo_stack)],
            [describe_command(e.command) for e in reversed(self.redo_stack)],
        )

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self, repository: SqliteHistoryRepository) -> None:
        """Replace the in-memory stacks with the persisted ones.

        Entries past the retention window are dropped. Unreadable payloads
        and a store that changed behind the log's back both clear history
        instead of risking a replay against the wrong state.
        """
        self.clear()
        cutoff = self._clock() - timedelta(days=self.retention_days)
        try:
            for entry in repository.load_entries():
                created_at = entry.created_at or cutoff
                if created_at.tzinfo is None:
                    created_at = created_at.replace(tzinfo=UTC)
                if created_at < cutoff:
                    continue
                stack = self.undo_stack if entry.stack == UNDO_STACK else self.redo_stack
                stack.append(LogEntry(command=load_command(entry.payload), created_at=created_at))
        except (PydanticValidationError, ValueError) as e:
            logger.warning("undo history is unreadable, clearing it: %s", e)
            self.clear()
            return

        self._evict(self.undo_stack)
        self._evict(self.redo_stack)

        try:
            self._verify_fingerprint(repository)
        except ConsistencyError as e:
            logger.warning("%s; clearing undo history", e)
            self.clear()

    def _verify_fingerprint(self, repository: SqliteHistoryRepository) -> None:
        if not self.undo_stack and not self.redo_stack:
            return
        stored = repository.get_fingerprint()
        if stored is None or stored != repository.compute_fingerprint():
            raise ConsistencyError("Store changed outside the command log")

    def save(self, repository: SqliteHistoryRepository) -> None:
        """Persist both stacks and the fingerprint of the current store."""
        entries = [
            HistoryEntry(UNDO_STACK, dump_command(e.command), e.created_at)
            for e in self.undo_stack
        ] + [
            HistoryEntry(REDO_STACK, dump_command(e.command), e.created_at)
            for e in self.redo_stack
        ]
        repository.save_entries(entries)
        repository.set_fingerprint(repository.compute_fingerprint())
