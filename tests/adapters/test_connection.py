"""Unit tests for Database (connection.py)."""

from __future__ import annotations

import sqlite3
import stat

import pytest

from todograph.adapters.sqlite.connection import Database
from todograph.models.config_models import LockConfig


def _list_names(db: Database) -> list[str]:
    return [row[0] for row in db.connection.execute("SELECT name FROM lists ORDER BY name")]


# ---------------------------------------------------------------------------
# Connecting
# ---------------------------------------------------------------------------


class TestConnect:
    def test_creates_file_and_parent_dirs(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "tasks.db"
        with Database(path) as db:
            assert isinstance(db.connection, sqlite3.Connection)
        assert path.exists()

    def test_new_file_is_owner_only(self, tmp_path):
        path = tmp_path / "tasks.db"
        with Database(path) as db:
            db.connection
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_connection_is_reused(self, tmp_path):
        with Database(tmp_path / "tasks.db") as db:
            assert db.connection is db.connection

    def test_wal_and_foreign_keys(self, tmp_path):
        with Database(tmp_path / "tasks.db") as db:
            assert db.connection.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
            assert db.connection.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_busy_timeout_comes_from_lock_config(self, tmp_path):
        config = LockConfig(busy_timeout=0.25)
        with Database(tmp_path / "tasks.db", config) as db:
            assert db.connection.execute("PRAGMA busy_timeout").fetchone()[0] == 250

    def test_migrations_run_on_connect(self, tmp_path):
        with Database(tmp_path / "tasks.db") as db:
            tables = {
                row[0]
                for row in db.connection.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'table'"
                )
            }
        assert {"lists", "tasks", "task_dependencies", "task_relations", "undo_history"} <= tables

    def test_memory_database(self):
        with Database(":memory:") as db:
            db.connection.execute("INSERT INTO lists (name) VALUES ('a')")
            assert _list_names(db) == ["a"]

    def test_close_is_idempotent(self, tmp_path):
        db = Database(tmp_path / "tasks.db")
        db.connection
        db.close()
        db.close()
        assert not db.in_transaction


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TestTransaction:
    def test_commits_on_success(self, tmp_path):
        path = tmp_path / "tasks.db"
        with Database(path) as db:
            with db.transaction() as connection:
                connection.execute("INSERT INTO lists (name) VALUES ('a')")
        with Database(path) as other:
            assert _list_names(other) == ["a"]

    def test_rolls_back_on_error(self, tmp_path):
        with Database(tmp_path / "tasks.db") as db:
            with pytest.raises(RuntimeError):
                with db.transaction() as connection:
                    connection.execute("INSERT INTO lists (name) VALUES ('a')")
                    raise RuntimeError("boom")
            assert _list_names(db) == []
            assert not db.in_transaction

    def test_nested_transaction_is_a_savepoint(self, tmp_path):
        with Database(tmp_path / "tasks.db") as db:
            with db.transaction() as connection:
                connection.execute("INSERT INTO lists (name) VALUES ('outer')")
                with pytest.raises(ValueError):
                    with db.transaction() as inner:
                        inner.execute("INSERT INTO lists (name) VALUES ('inner')")
                        raise ValueError("discard inner only")
                assert db.in_transaction
            assert _list_names(db) == ["outer"]

    def test_savepoint_release_keeps_changes(self, tmp_path):
        with Database(tmp_path / "tasks.db") as db:
            with db.transaction() as connection:
                with db.savepoint():
                    connection.execute("INSERT INTO lists (name) VALUES ('kept')")
            assert _list_names(db) == ["kept"]

    def test_second_writer_is_locked_out(self, tmp_path):
        path = tmp_path / "tasks.db"
        config = LockConfig(busy_timeout=0)
        with Database(path, config) as first, Database(path, config) as second:
            second.connection
            with first.transaction():
                with pytest.raises(sqlite3.OperationalError, match="locked"):
                    with second.transaction():
                        pass


# ---------------------------------------------------------------------------
# Change detection
# ---------------------------------------------------------------------------


class TestDataVersion:
    def test_changes_after_other_connection_commits(self, tmp_path):
        path = tmp_path / "tasks.db"
        with Database(path) as watcher, Database(path) as writer:
            before = watcher.data_version()
            with writer.transaction() as connection:
                connection.execute("INSERT INTO lists (name) VALUES ('a')")
            assert watcher.data_version() != before

    def test_unchanged_by_own_commits(self, tmp_path):
        with Database(tmp_path / "tasks.db") as db:
            before = db.data_version()
            with db.transaction() as connection:
                connection.execute("INSERT INTO lists (name) VALUES ('a')")
            assert db.data_version() == before
