"""Database schema definitions for the shared task store.

Statements use ``IF NOT EXISTS`` so the initial migration is safe to re-run.
"""

from __future__ import annotations

# Lists table
CREATE_LISTS_TABLE = """
CREATE TABLE IF NOT EXISTS lists (
    name TEXT PRIMARY KEY,
    is_collapsed INTEGER NOT NULL DEFAULT 0,
    sort_order INTEGER NOT NULL DEFAULT 0
)
"""

# Tasks table
CREATE_TASKS_TABLE = """
CREATE TABLE IF NOT EXISTS tasks (
    id TEXT PRIMARY KEY,
    description TEXT NOT NULL,
    status INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    list_name TEXT NOT NULL,
    due_date TEXT,
    due_date_raw TEXT,
    priority INTEGER,
    tags TEXT,
    is_trashed INTEGER NOT NULL DEFAULT 0,
    trash_group TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    parent_id TEXT,
    FOREIGN KEY (list_name) REFERENCES lists(name)
        ON DELETE CASCADE ON UPDATE CASCADE,
    FOREIGN KEY (parent_id) REFERENCES tasks(id) ON DELETE CASCADE
)
"""

# Directed blocking edges
CREATE_TASK_DEPENDENCIES_TABLE = """
CREATE TABLE IF NOT EXISTS task_dependencies (
    blocker_id TEXT NOT NULL,
    blocked_id TEXT NOT NULL,
    PRIMARY KEY (blocker_id, blocked_id),
    CHECK (blocker_id != blocked_id),
    FOREIGN KEY (blocker_id) REFERENCES tasks(id) ON DELETE CASCADE,
    FOREIGN KEY (blocked_id) REFERENCES tasks(id) ON DELETE CASCADE
)
"""

# Symmetric relations, stored as a canonical pair
CREATE_TASK_RELATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS task_relations (
    id_1 TEXT NOT NULL,
    id_2 TEXT NOT NULL,
    PRIMARY KEY (id_1, id_2),
    CHECK (id_1 < id_2),
    FOREIGN KEY (id_1) REFERENCES tasks(id) ON DELETE CASCADE,
    FOREIGN KEY (id_2) REFERENCES tasks(id) ON DELETE CASCADE
)
"""

# Persisted undo/redo stacks
CREATE_UNDO_HISTORY_TABLE = """
CREATE TABLE IF NOT EXISTS undo_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    stack TEXT NOT NULL CHECK (stack IN ('undo', 'redo')),
    command_payload TEXT NOT NULL,
    created_at TEXT NOT NULL
)
"""

# Key/value store for the history fingerprint and similar bookkeeping
CREATE_STORE_META_TABLE = """
CREATE TABLE IF NOT EXISTS store_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

CREATE_TASK_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_list ON tasks(list_name, is_trashed)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_trash_group ON tasks(trash_group)",
]

CREATE_EDGE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_dependencies_blocked ON task_dependencies(blocked_id)",
    "CREATE INDEX IF NOT EXISTS idx_relations_second ON task_relations(id_2)",
]

# All table creation statements in dependency order
ALL_TABLES = [
    CREATE_LISTS_TABLE,
    CREATE_TASKS_TABLE,
    CREATE_TASK_DEPENDENCIES_TABLE,
    CREATE_TASK_RELATIONS_TABLE,
    CREATE_UNDO_HISTORY_TABLE,
    CREATE_STORE_META_TABLE,
]

ALL_INDEXES = CREATE_TASK_INDEXES + CREATE_EDGE_INDEXES

# Column order used by INSERT statements and snapshots
TASK_COLUMNS = (
    "id",
    "description",
    "status",
    "created_at",
    "list_name",
    "due_date",
    "due_date_raw",
    "priority",
    "tags",
    "is_trashed",
    "trash_group",
    "sort_order",
    "completed_at",
    "parent_id",
)
