"""Database connection management for the shared task store.

Several processes (short-lived CLI invocations and long-running surfaces)
open the same SQLite file. Each ``Database`` instance owns one connection
configured for that: WAL journal, foreign keys, a bounded busy timeout and
explicit transactions that take the write lock up front.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from platformdirs import user_data_dir

from todograph.adapters.sqlite.migrations import ALL_MIGRATIONS
from todograph.adapters.sqlite.migrations.runner import MigrationRunner
from todograph.models.config_models import LockConfig

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def default_db_path() -> Path:
    """Location of the store when no path is configured."""
    return Path(user_data_dir("todograph")) / "todograph.db"


class Database:
    """Connection to the task store.

    Provides:
    - Lazy connection with WAL mode and foreign key enforcement
    - Migrations on first connect
    - Re-entrant transactions (outermost ``BEGIN IMMEDIATE``, nested savepoints)
    - A change counter for detecting commits from other connections

    Instances are independent; tests construct as many as they need.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        lock_config: LockConfig | None = None,
    ):
        """Initialize the database handle.

        Args:
            db_path: Path to database file, or ":memory:". If None, uses the
                default location.
            lock_config: Busy timeout and retry settings
        """
        if db_path is None:
            db_path = default_db_path()
        self.db_path = db_path if str(db_path) == MEMORY_PATH else Path(db_path)
        self.lock_config = lock_config or LockConfig()
        self._connection: sqlite3.Connection | None = None
        self._depth = 0
        self._savepoint_seq = 0

    @property
    def connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = self._connect()
        return self._connection

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def _connect(self) -> sqlite3.Connection:
        is_memory = str(self.db_path) == MEMORY_PATH
        is_new_database = False
        if not is_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            is_new_database = not self.db_path.exists()

        connection = sqlite3.connect(
            str(self.db_path),
            timeout=self.lock_config.busy_timeout,
            isolation_level=None,  # Transactions are managed explicitly
            check_same_thread=False,
        )

        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        if not is_memory:
            connection.execute("PRAGMA journal_mode = WAL")

        # Set file permissions (owner read/write only)
        if is_new_database:
            os.chmod(self.db_path, 0o600)

        runner = MigrationRunner(connection)
        applied = runner.run_migrations(ALL_MIGRATIONS)
        if applied:
            logger.info("applied %d migration(s) to %s", applied, self.db_path)

        return connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically.

        The outermost call takes the write lock immediately (``BEGIN
        IMMEDIATE``) so lock contention surfaces before any work is done.
        Nested calls become savepoints.

        Raises:
            sqlite3.OperationalError: If the lock cannot be acquired within
                the busy timeout
        """
        if self._depth > 0:
            with self.savepoint() as connection:
                yield connection
            return

        connection = self.connection
        connection.execute("BEGIN IMMEDIATE")
        self._depth = 1
        try:
            yield connection
            connection.execute("COMMIT")
        except BaseException:
            if connection.in_transaction:
                connection.execute("ROLLBACK")
            raise
        finally:
            self._depth = 0

    @contextmanager
    def savepoint(self) -> Iterator[sqlite3.Connection]:
        """Run a block that can be rolled back without aborting the transaction."""
        connection = self.connection
        self._savepoint_seq += 1
        name = f"sp_{self._savepoint_seq}"
        connection.execute(f"SAVEPOINT {name}")
        self._depth += 1
        try:
            yield connection
        except BaseException:
            connection.execute(f"ROLLBACK TO {name}")
            connection.execute(f"RELEASE {name}")
            raise
        else:
            connection.execute(f"RELEASE {name}")
        finally:
            self._depth -= 1

    def data_version(self) -> int:
        """Counter that changes whenever another connection commits."""
        return self.connection.execute("PRAGMA data_version").fetchone()[0]

    def close(self) -> None:
        """Close the connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            self._depth = 0

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
