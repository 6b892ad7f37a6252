"""Unit tests for SqliteListRepository."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from todograph.adapters.sqlite.connection import Database
from todograph.adapters.sqlite.list_repository import SqliteListRepository
from todograph.adapters.sqlite.task_repository import SqliteTaskRepository
from todograph.exceptions import NotFoundError
from todograph.models.core import Task, TaskList


@pytest.fixture()
def database(tmp_path):
    with Database(tmp_path / "tasks.db") as db:
        yield db


@pytest.fixture()
def repo(database):
    return SqliteListRepository(database)


class TestListRepository:
    def test_insert_and_list_in_sort_order(self, repo):
        repo.insert(TaskList(name="b", sort_order=0))
        repo.insert(TaskList(name="a", sort_order=1))
        assert [task_list.name for task_list in repo.list_all()] == ["b", "a"]

    def test_require_missing_list(self, repo):
        with pytest.raises(NotFoundError, match="List 'nope' not found"):
            repo.require("nope")

    def test_ensure_reports_creation(self, repo):
        assert repo.ensure("tasks") is True
        assert repo.ensure("tasks") is False

    def test_next_sort_order(self, repo):
        assert repo.next_sort_order() == 0
        repo.insert(TaskList(name="a", sort_order=3))
        assert repo.next_sort_order() == 4

    def test_rename_cascades_to_tasks(self, repo, database):
        repo.insert(TaskList(name="old"))
        tasks = SqliteTaskRepository(database)
        tasks.insert(
            Task(id="abc", description="x", list_name="old", created_at=datetime.now(UTC))
        )
        repo.rename("old", "new")
        assert tasks.get("abc").list_name == "new"

    def test_delete_cascades_to_tasks(self, repo, database):
        repo.insert(TaskList(name="old"))
        tasks = SqliteTaskRepository(database)
        tasks.insert(
            Task(id="abc", description="x", list_name="old", created_at=datetime.now(UTC))
        )
        repo.delete("old")
        assert tasks.get("abc") is None

    def test_set_collapsed(self, repo):
        repo.insert(TaskList(name="a"))
        repo.set_collapsed("a", True)
        assert repo.get("a").is_collapsed

    def test_set_collapsed_missing(self, repo):
        with pytest.raises(NotFoundError):
            repo.set_collapsed("nope", True)

    def test_set_sort_orders(self, repo):
        repo.insert(TaskList(name="a", sort_order=0))
        repo.insert(TaskList(name="b", sort_order=1))
        repo.set_sort_orders({"a": 1, "b": 0})
        assert [task_list.name for task_list in repo.list_all()] == ["b", "a"]
