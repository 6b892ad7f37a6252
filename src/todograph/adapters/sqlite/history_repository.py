"""SQLite persistence for the undo/redo stacks.

Besides the two stacks this repository keeps a fingerprint of the store's
content, written together with the stacks. If another writer changed the
store without going through the command log, the fingerprints disagree and
the history must not be replayed.
"""

from __future__ import annotations

import hashlib
import sqlite3
from datetime import datetime

from todograph.adapters.sqlite.connection import Database
from todograph.adapters.sqlite.schema import TASK_COLUMNS
from todograph.adapters.sqlite.utils import format_datetime, parse_datetime

FINGERPRINT_KEY = "history_fingerprint"

UNDO_STACK = "undo"
REDO_STACK = "redo"


class HistoryEntry:
    """Raw persisted stack entry."""

    __slots__ = ("stack", "payload", "created_at")

    def __init__(self, stack: str, payload: str, created_at: datetime):
        self.stack = stack
        self.payload = payload
        self.created_at = created_at


class SqliteHistoryRepository:
    """Reads and writes ``undo_history`` and ``store_meta``."""

    def __init__(self, database: Database):
        self.database = database

    @property
    def connection(self) -> sqlite3.Connection:
        return self.database.connection

    def load_entries(self) -> list[HistoryEntry]:
        """Load both stacks, oldest entry first within each stack."""
        rows = self.connection.execute(
            "SELECT stack, command_payload, created_at FROM undo_history ORDER BY id"
        ).fetchall()
        return [
            HistoryEntry(row["stack"], row["command_payload"], parse_datetime(row["created_at"]))
            for row in rows
        ]

    def save_entries(self, entries: list[HistoryEntry]) -> None:
        """Replace both stacks."""
        self.connection.execute("DELETE FROM undo_history")
        self.connection.executemany(
            """
            INSERT INTO undo_history (stack, command_payload, created_at)
            VALUES (?, ?, ?)
            """,
            [(e.stack, e.payload, format_datetime(e.created_at)) for e in entries],
        )

    def clear(self) -> None:
        self.connection.execute("DELETE FROM undo_history")

    def get_meta(self, key: str) -> str | None:
        row = self.connection.execute(
            "SELECT value FROM store_meta WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row else None

    def set_meta(self, key: str, value: str) -> None:
        self.connection.execute(
            """
            INSERT INTO store_meta (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )

    def get_fingerprint(self) -> str | None:
        return self.get_meta(FINGERPRINT_KEY)

    def set_fingerprint(self, fingerprint: str) -> None:
        self.set_meta(FINGERPRINT_KEY, fingerprint)

    def compute_fingerprint(self) -> str:
        """Digest of every row the command log can change.

        List collapse state is a display preference and is left out.
        """
        digest = hashlib.sha256()
        queries = (
            f"SELECT {', '.join(TASK_COLUMNS)} FROM tasks ORDER BY id",
            "SELECT blocker_id, blocked_id FROM task_dependencies ORDER BY blocker_id, blocked_id",
            "SELECT id_1, id_2 FROM task_relations ORDER BY id_1, id_2",
            "SELECT name, sort_order FROM lists ORDER BY name",
        )
        for sql in queries:
            digest.update(sql.encode("utf-8"))
            for row in self.connection.execute(sql):
                digest.update(repr(tuple(row)).encode("utf-8"))
        return digest.hexdigest()
