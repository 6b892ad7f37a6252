"""Forward-only schema migrations tracked in a ``schema_version`` table.

Each migration runs in its own ``BEGIN IMMEDIATE`` transaction. The version
is re-read after the write lock is taken, so two processes opening a fresh
database never apply the same migration twice.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import UTC, datetime

logger = logging.getLogger(__name__)


class Migration(ABC):
    """One schema step, identified by a sequential version number."""

    @property
    @abstractmethod
    def version(self) -> int:
        """Migration version number (sequential)."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of the migration."""

    @abstractmethod
    def up(self, connection: sqlite3.Connection) -> None:
        """Apply the step. Must not commit; the runner owns the transaction."""


class MigrationRunner:
    """Applies pending migrations to one connection."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection
        self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                description TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
            """
        )

    def get_current_version(self) -> int:
        """Highest applied version, 0 for a fresh database."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] or 0

    def _apply(self, migration: Migration) -> bool:
        self.connection.execute("BEGIN IMMEDIATE")
        if migration.version <= self.get_current_version():
            self.connection.rollback()
            return False
        try:
            migration.up(self.connection)
            self.connection.execute(
                "INSERT INTO schema_version (version, description, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.description, datetime.now(UTC).isoformat()),
            )
            self.connection.commit()
        except Exception as e:
            self.connection.rollback()
            raise RuntimeError(f"Migration {migration.version} failed: {e}") from e
        logger.debug("applied migration %d: %s", migration.version, migration.description)
        return True

    def run_migrations(self, migrations: list[Migration]) -> int:
        """Apply every migration newer than the current version, in order.

        Returns:
            Number of migrations applied by this call
        """
        applied = 0
        for migration in sorted(migrations, key=lambda m: m.version):
            if migration.version > self.get_current_version() and self._apply(migration):
                applied += 1
        return applied
