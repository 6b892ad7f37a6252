"""Unit-of-work wrapper around the shared task store.

Every public mutation runs through ``Store.run``:

1. take the write lock (``BEGIN IMMEDIATE``), retrying on contention
2. reload the command log from the database and check its fingerprint
3. open one batch and run the operation
4. close the batch, persist the log and the new fingerprint
5. commit, or roll everything back if the operation raised

Expected failures are converted into result values, so callers never need
to catch anything.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path

from todograph.adapters.sqlite.connection import Database
from todograph.adapters.sqlite.guard import ConcurrencyGuard
from todograph.adapters.sqlite.history_repository import SqliteHistoryRepository
from todograph.adapters.sqlite.list_repository import SqliteListRepository
from todograph.adapters.sqlite.task_repository import SqliteTaskRepository
from todograph.exceptions import (
    ConcurrencyError,
    ConsistencyError,
    NoChangeError,
    NotFoundError,
    ValidationError,
)
from todograph.models.config_models import AppConfig
from todograph.models.results import Error, NoChange, NotFound, Success, TaskResult
from todograph.services.command_executor import CommandExecutor
from todograph.services.command_log import CommandLog
from todograph.services.graph_service import RelationshipGraph
from todograph.services.sync_service import SyncCoordinator

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class Store:
    """Owns the database handle, command log and relationship graph."""

    def __init__(
        self,
        database: Database,
        config: AppConfig | None = None,
        command_log: CommandLog | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the store.

        Args:
            database: Open or lazily opened database handle
            config: Application configuration; defaults if None
            command_log: Undo log; a fresh one sized from ``config`` if None
            clock: Returns the current (timezone-aware) time, for tests
        """
        self.config = config or AppConfig()
        self.database = database
        self._clock = clock or _local_now
        self.guard = ConcurrencyGuard(self.config.lock)
        self.command_log = command_log or CommandLog(
            max_depth=self.config.undo.max_depth,
            retention_days=self.config.undo.retention_days,
            clock=self._clock,
        )
        self.tasks = SqliteTaskRepository(database)
        self.lists = SqliteListRepository(database)
        self.history = SqliteHistoryRepository(database)
        self.sync = SyncCoordinator(self.tasks, self.command_log)
        self.graph = RelationshipGraph(database, self.tasks, self.command_log, self.sync)
        self.executor = CommandExecutor(self.tasks, self.lists)
        self._seen_data_version: int | None = None
        self._ensure_default_list()

    @classmethod
    def open(
        cls,
        db_path: str | Path | None = None,
        config: AppConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> Store:
        """Open the store at ``db_path`` (or the configured/default location)."""
        config = config or AppConfig()
        path = db_path or config.database_path
        return cls(Database(path, config.lock), config=config, clock=clock)

    @property
    def default_list(self) -> str:
        return self.config.default_list

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    def _ensure_default_list(self) -> None:
        if self.lists.exists(self.default_list):
            return

        def create() -> Success:
            self.lists.ensure(self.default_list, sort_order=0)
            return Success(message=f"Created default list '{self.default_list}'")

        self.run("Create default list", create)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def run(self, description: str, operation: Callable[[], TaskResult]) -> TaskResult:
        """Run ``operation`` as one transaction and at most one undo entry.

        Args:
            description: Label for the undo entry
            operation: Performs the mutation; raises ``TodographError``
                subclasses for expected failures

        Returns:
            The operation's result, or the failure converted to a result
        """

        def unit() -> TaskResult:
            with self.database.transaction():
                self.command_log.load(self.history)
                batch = self.command_log.begin_batch(description)
                try:
                    result = operation()
                except BaseException:
                    self.command_log.cancel_batch(batch)
                    raise
                self.command_log.end_batch(batch)
                self.command_log.save(self.history)
                return result

        try:
            result = self.guard.run(unit)
        except NotFoundError as e:
            return NotFound(id=e.item_id, message=str(e))
        except NoChangeError as e:
            return NoChange(reason=str(e))
        except ValidationError as e:
            return Error(message=str(e))
        except ConsistencyError as e:
            logger.warning("%s failed: %s; clearing undo history", description, e)
            self.clear_history()
            return Error(message=f"{e}. Undo history was cleared")
        except ConcurrencyError as e:
            logger.error("%s failed: %s", description, e)
            return Error(message=str(e))

        self._seen_data_version = self.database.data_version()
        return result

    def clear_history(self) -> None:
        """Drop both stacks and re-anchor the fingerprint to the current store."""

        def unit() -> None:
            with self.database.transaction():
                self.command_log.clear()
                self.command_log.save(self.history)

        self.guard.run(unit)
        logger.info("undo history cleared")

    def has_external_changes(self) -> bool:
        """Check whether another connection committed since the last check.

        Long-running surfaces poll this and reload their view when it
        returns True instead of writing over state they have not seen.
        """
        version = self.database.data_version()
        changed = self._seen_data_version is not None and version != self._seen_data_version
        self._seen_data_version = version
        return changed

    def close(self) -> None:
        self.database.close()

    def __enter__(self) -> Store:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
