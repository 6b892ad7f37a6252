"""Unit tests for SqliteTaskRepository."""

from __future__ import annotations

import sqlite3
from datetime import UTC, date, datetime

import pytest

from todograph.adapters.sqlite.connection import Database
from todograph.adapters.sqlite.list_repository import SqliteListRepository
from todograph.adapters.sqlite.task_repository import SqliteTaskRepository
from todograph.exceptions import NotFoundError
from todograph.models.core import Priority, Task, TaskList, TaskStatus
from todograph.parsing.search_filters import SearchFilters

_NOW = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)
_TODAY = _NOW.date()


@pytest.fixture()
def database(tmp_path):
    with Database(tmp_path / "tasks.db") as db:
        SqliteListRepository(db).insert(TaskList(name="tasks"))
        SqliteListRepository(db).insert(TaskList(name="work", sort_order=1))
        yield db


@pytest.fixture()
def repo(database):
    return SqliteTaskRepository(database)


def _task(task_id: str, **overrides) -> Task:
    values = {
        "id": task_id,
        "description": f"Task {task_id}",
        "list_name": "tasks",
        "created_at": _NOW,
    }
    values.update(overrides)
    return Task(**values)


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


class TestRows:
    def test_insert_and_get_round_trips_every_field(self, repo):
        task = _task(
            "abc",
            description="Report\np1 @fri #work",
            status=TaskStatus.IN_PROGRESS,
            priority=Priority.HIGH,
            due_date=date(2026, 3, 13),
            due_date_raw="fri",
            tags=["work"],
            sort_order=7,
        )
        repo.insert(task)
        assert repo.get("abc") == task

    def test_get_missing_returns_none(self, repo):
        assert repo.get("zzz") is None

    def test_require_rejects_trashed_unless_allowed(self, repo):
        repo.insert(_task("abc", is_trashed=True, trash_group="g"))
        with pytest.raises(NotFoundError):
            repo.require("abc")
        assert repo.require("abc", allow_trashed=True).is_trashed

    def test_update_of_missing_task_raises(self, repo):
        with pytest.raises(NotFoundError):
            repo.set_description("zzz", "nope")

    def test_new_id_is_three_base36_chars(self, repo):
        task_id = repo.new_id()
        assert len(task_id) == 3
        assert task_id.isalnum() and task_id == task_id.lower()

    def test_next_sort_order_is_per_list(self, repo):
        assert repo.next_sort_order("tasks") == 0
        repo.insert(_task("abc", sort_order=4))
        assert repo.next_sort_order("tasks") == 5
        assert repo.next_sort_order("work") == 0

    def test_unknown_list_is_rejected(self, repo):
        with pytest.raises(sqlite3.IntegrityError):
            repo.insert(_task("abc", list_name="nope"))


# ---------------------------------------------------------------------------
# Listing and search
# ---------------------------------------------------------------------------


class TestListing:
    def test_done_last_then_most_recent_first(self, repo):
        repo.insert(_task("aaa", sort_order=0))
        repo.insert(_task("bbb", sort_order=2, status=TaskStatus.DONE))
        repo.insert(_task("ccc", sort_order=1))
        assert [t.id for t in repo.list_tasks("tasks")] == ["ccc", "aaa", "bbb"]

    def test_filters(self, repo):
        repo.insert(_task("aaa"))
        repo.insert(_task("bbb", status=TaskStatus.DONE))
        repo.insert(_task("ccc", is_trashed=True))
        repo.insert(_task("ddd", list_name="work"))
        assert {t.id for t in repo.list_tasks()} == {"aaa", "bbb", "ddd"}
        assert {t.id for t in repo.list_tasks("tasks", include_done=False)} == {"aaa"}
        assert [t.id for t in repo.list_tasks(trashed=True)] == ["ccc"]

    def test_search_is_case_insensitive_and_skips_trash(self, repo):
        repo.insert(_task("aaa", description="Buy MILK"))
        repo.insert(_task("bbb", description="milk again", is_trashed=True))
        assert [t.id for t in repo.search(SearchFilters(text="milk"), _TODAY)] == ["aaa"]

    def test_search_treats_wildcards_literally(self, repo):
        repo.insert(_task("aaa", description="100% done"))
        repo.insert(_task("bbb", description="100 done"))
        assert [t.id for t in repo.search(SearchFilters(text="100%"), _TODAY)] == ["aaa"]

    def test_search_filters_combine(self, repo):
        repo.insert(_task("aaa", description="Fix bug\n#ui", tags=["ui"], status=TaskStatus.DONE))
        repo.insert(_task("bbb", description="Fix layout\n#ui", tags=["ui"]))
        repo.insert(_task("ccc", description="Fix api\n#api", tags=["api"], status=TaskStatus.DONE))
        filters = SearchFilters(tags=["ui"], status=TaskStatus.DONE)
        assert [t.id for t in repo.search(filters, _TODAY)] == ["aaa"]

    @pytest.mark.parametrize(
        "due, expected",
        [
            ("today", {"now"}),
            ("overdue", {"old"}),
            ("week", {"now", "wek"}),
            ("month", {"now", "wek", "mon"}),
        ],
    )
    def test_search_due_windows(self, repo, due, expected):
        repo.insert(_task("old", due_date=date(2026, 3, 9)))
        repo.insert(_task("now", due_date=date(2026, 3, 10)))
        repo.insert(_task("wek", due_date=date(2026, 3, 17)))
        repo.insert(_task("mon", due_date=date(2026, 4, 9)))
        repo.insert(_task("non"))
        assert {t.id for t in repo.search(SearchFilters(due=due), _TODAY)} == expected

    def test_search_has_filters(self, repo):
        repo.insert(_task("par"))
        repo.insert(_task("kid", parent_id="par", priority=Priority.LOW))
        repo.insert(_task("old", parent_id="kid", is_trashed=True))
        assert [t.id for t in repo.search(SearchFilters(has={"subtasks"}), _TODAY)] == ["par"]
        assert [t.id for t in repo.search(SearchFilters(has={"parent"}), _TODAY)] == ["kid"]
        filters = SearchFilters(priority=Priority.LOW, list_name="tasks")
        assert [t.id for t in repo.search(filters, _TODAY)] == ["kid"]


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class TestHierarchy:
    @pytest.fixture()
    def tree(self, repo):
        #   aaa
        #   +-- bbb
        #   |   +-- ddd (trashed)
        #   +-- ccc
        repo.insert(_task("aaa"))
        repo.insert(_task("bbb", parent_id="aaa"))
        repo.insert(_task("ccc", parent_id="aaa"))
        repo.insert(_task("ddd", parent_id="bbb", is_trashed=True))
        return repo

    def test_children(self, tree):
        assert {t.id for t in tree.get_children("aaa")} == {"bbb", "ccc"}
        assert tree.get_children("bbb") == []
        assert [t.id for t in tree.get_children("bbb", include_trashed=True)] == ["ddd"]

    def test_descendants(self, tree):
        assert set(tree.get_descendant_ids("aaa")) == {"bbb", "ccc"}
        assert set(tree.get_descendant_ids("aaa", include_trashed=True)) == {"bbb", "ccc", "ddd"}

    def test_subtree_snapshot_lists_parents_first(self, tree):
        ids = [t.id for t in tree.subtree_snapshot(["aaa"])]
        assert set(ids) == {"aaa", "bbb", "ccc", "ddd"}
        assert ids.index("aaa") < ids.index("bbb") < ids.index("ddd")

    def test_delete_cascades_to_descendants(self, tree):
        tree.delete("aaa")
        assert tree.list_tasks() == []
        assert tree.list_tasks(trashed=True) == []

    def test_trash_group(self, tree):
        tree.set_trashed(["aaa", "ccc"], True, "g1")
        assert {t.id for t in tree.get_trash_group("g1")} == {"aaa", "ccc"}


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


class TestEdges:
    @pytest.fixture(autouse=True)
    def _tasks(self, repo):
        for task_id in ("aaa", "bbb", "ccc"):
            repo.insert(_task(task_id))

    def test_dependencies_are_directed(self, repo):
        repo.add_dependency("aaa", "bbb")
        assert repo.has_dependency("aaa", "bbb")
        assert not repo.has_dependency("bbb", "aaa")
        assert repo.get_blocked_ids("aaa") == ["bbb"]
        assert repo.get_blocker_ids("bbb") == ["aaa"]

    def test_self_dependency_is_rejected(self, repo):
        with pytest.raises(sqlite3.IntegrityError):
            repo.add_dependency("aaa", "aaa")

    def test_relations_are_symmetric(self, repo):
        repo.add_relation("ccc", "aaa")
        assert repo.has_relation("aaa", "ccc")
        assert repo.has_relation("ccc", "aaa")
        assert repo.get_related_ids("aaa") == ["ccc"]
        assert repo.get_related_ids("ccc") == ["aaa"]
        assert repo.relations_touching(["ccc"]) == [("aaa", "ccc")]

    def test_duplicate_relation_in_either_direction_is_rejected(self, repo):
        repo.add_relation("aaa", "bbb")
        with pytest.raises(sqlite3.IntegrityError):
            repo.add_relation("bbb", "aaa")

    def test_edges_touching(self, repo):
        repo.add_dependency("aaa", "bbb")
        repo.add_dependency("bbb", "ccc")
        assert repo.dependencies_touching(["ccc"]) == [("bbb", "ccc")]
        assert repo.dependencies_touching([]) == []

    def test_edges_cascade_on_delete(self, repo):
        repo.add_dependency("aaa", "bbb")
        repo.add_relation("aaa", "ccc")
        repo.delete("aaa")
        assert repo.get_blocker_ids("bbb") == []
        assert repo.get_related_ids("ccc") == []
