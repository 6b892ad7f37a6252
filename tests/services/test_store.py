"""Tests for the Store unit of work across connections."""

from __future__ import annotations

import multiprocessing
import sys
import threading

import pytest

from todograph.models.config_models import AppConfig
from todograph.services import HistoryService, Store, TaskService


class TestStore:
    def test_default_list_is_created_once(self, db_path, clock, store):
        with Store.open(db_path, AppConfig(), clock=clock) as other:
            assert [task_list.name for task_list in other.lists.list_all()] == ["tasks"]

    def test_failed_operation_rolls_back(self, store, tasks, add):
        task_id = add("Task")
        before = store.tasks.get(task_id)
        result = tasks.rename_task(task_id, "  ")
        assert result.kind == "error"
        assert store.tasks.get(task_id) == before

    def test_has_external_changes(self, db_path, clock, store):
        assert store.has_external_changes() is False
        with Store.open(db_path, AppConfig(), clock=clock) as other:
            TaskService(other).add_task("From elsewhere")
        assert store.has_external_changes() is True
        assert store.has_external_changes() is False

    def test_replay_failure_clears_history(self, store, tasks, history, add):
        task_id = add("Task")
        tasks.rename_task(task_id, "Renamed")
        # Remove the row behind the log's back, then re-anchor the fingerprint
        with store.database.transaction():
            store.database.connection.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            store.history.set_fingerprint(store.history.compute_fingerprint())

        result = history.undo()
        assert result.kind == "error"
        assert "Undo history was cleared" in result.message
        assert history.history() == ([], [])


class TestConcurrentWriters:
    def test_two_stores_in_threads(self, db_path, clock, store):
        errors: list[object] = []

        def writer(prefix: str) -> None:
            with Store.open(db_path, AppConfig(), clock=clock) as own:
                service = TaskService(own)
                for i in range(10):
                    result = service.add_task(f"{prefix} {i}")
                    if result.kind != "success":
                        errors.append(result)

        threads = [threading.Thread(target=writer, args=(name,)) for name in ("a", "b")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(store.tasks.list_tasks()) == 20
        undo, _ = HistoryService(store).history()
        assert len(undo) == 20


def _write_tasks(db_path, prefix: str) -> None:
    with Store.open(db_path, AppConfig()) as own:
        service = TaskService(own)
        for i in range(10):
            result = service.add_task(f"{prefix} {i}")
            assert result.kind == "success", result


@pytest.mark.skipif(sys.platform == "win32", reason="needs the fork start method")
class TestConcurrentProcesses:
    def test_two_processes_share_one_history(self, db_path, store):
        context = multiprocessing.get_context("fork")
        processes = [
            context.Process(target=_write_tasks, args=(db_path, name)) for name in ("a", "b")
        ]
        for process in processes:
            process.start()
        for process in processes:
            process.join(timeout=60)

        assert [process.exitcode for process in processes] == [0, 0]
        with Store.open(db_path, AppConfig()) as check:
            assert len(check.tasks.list_tasks()) == 20
            undo, _ = HistoryService(check).history()
        assert len(undo) == 20
