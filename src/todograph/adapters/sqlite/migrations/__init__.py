"""Database migration system for the task store."""

from .m001_initial_schema import initial_migration
from .runner import Migration, MigrationRunner

# All migrations in order
ALL_MIGRATIONS: list[Migration] = [
    initial_migration,
]

__all__ = [
    "ALL_MIGRATIONS",
    "Migration",
    "MigrationRunner",
]
