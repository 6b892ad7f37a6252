"""Initial database schema migration.

This migration creates all tables of the task store:
- lists
- tasks
- task_dependencies (blocking edges)
- task_relations (related edges)
- undo_history
- store_meta
"""

import sqlite3

from todograph.adapters.sqlite import schema
from .runner import Migration


class InitialSchemaMigration(Migration):
    """Migration 001: Create initial database schema."""

    @property
    def version(self) -> int:
        return 1

    @property
    def description(self) -> str:
        return "Initial database schema"

    def up(self, connection: sqlite3.Connection) -> None:
        """Create all initial tables."""
        for table_sql in schema.ALL_TABLES:
            connection.execute(table_sql)

        for index_sql in schema.ALL_INDEXES:
            connection.execute(index_sql)


initial_migration = InitialSchemaMigration()
