"""End-to-end tests for the todograph CLI."""

from __future__ import annotations

import json
import re

import pytest
from typer.testing import CliRunner

from todograph.main import app
from todograph.services.config_service import DB_PATH_ENV, get_config_service
from todograph.utils.exit_codes import ERROR_GENERAL, ERROR_NOT_FOUND

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "cli.db"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    get_config_service.cache_clear()
    yield
    get_config_service.cache_clear()


def _add(description: str, *args: str) -> str:
    result = runner.invoke(app, ["tasks", "add", description, *args])
    assert result.exit_code == 0, result.output
    match = re.search(r"Added task (\w{3})", result.output)
    assert match, result.output
    return match.group(1)


def _list_json() -> list[dict]:
    result = runner.invoke(app, ["tasks", "list", "--json"])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class TestTasks:
    def test_add_and_list(self):
        task_id = _add("Buy milk")
        tasks = _list_json()
        assert [t["id"] for t in tasks] == [task_id]
        assert tasks[0]["list_name"] == "tasks"

    def test_table_output(self):
        _add("Buy milk")
        result = runner.invoke(app, ["tasks", "list"])
        assert result.exit_code == 0
        assert "Buy milk" in result.output

    def test_done_and_undo(self):
        task_id = _add("Buy milk")
        result = runner.invoke(app, ["tasks", "done", task_id])
        assert result.exit_code == 0
        assert _list_json()[0]["status"] == 2

        result = runner.invoke(app, ["undo"])
        assert result.exit_code == 0
        assert "Undid" in result.output
        assert _list_json()[0]["status"] == 0

    def test_missing_task_exit_code(self):
        result = runner.invoke(app, ["tasks", "done", "zzz"])
        assert result.exit_code == ERROR_NOT_FOUND
        assert "not found" in result.output

    def test_show_missing_task(self):
        result = runner.invoke(app, ["tasks", "show", "zzz"])
        assert result.exit_code == ERROR_NOT_FOUND

    def test_rejected_operation_exit_code(self):
        task_id = _add("Alone")
        result = runner.invoke(app, ["tasks", "parent", task_id, task_id])
        assert result.exit_code == ERROR_GENERAL

    def test_warning_is_printed(self):
        result = runner.invoke(app, ["tasks", "add", "Thing\n!zzz"])
        assert result.exit_code == 0
        assert "Warning" in result.output

    def test_unknown_status(self):
        task_id = _add("Buy milk")
        result = runner.invoke(app, ["tasks", "status", "finished", task_id])
        assert result.exit_code != 0

    def test_due_and_show(self):
        task_id = _add("Report")
        assert runner.invoke(app, ["tasks", "due", task_id, "tomorrow"]).exit_code == 0
        result = runner.invoke(app, ["tasks", "show", task_id])
        assert result.exit_code == 0
        assert "Report" in result.output
        assert "Due" in result.output

    def test_delete_several_skips_missing_ids(self):
        first, second = _add("First"), _add("Second")
        result = runner.invoke(app, ["tasks", "delete", first, "zzz", second])
        assert result.exit_code == 0, result.output
        assert "Warning" in result.output
        assert _list_json() == []

        assert runner.invoke(app, ["undo"]).exit_code == 0
        assert {t["id"] for t in _list_json()} == {first, second}

    def test_search_filters(self):
        task_id = _add("Fix bug\n#ui")
        _add("Fix docs")
        result = runner.invoke(app, ["tasks", "search", "tag:ui", "--json"])
        assert result.exit_code == 0, result.output
        assert [t["id"] for t in json.loads(result.output)] == [task_id]

    def test_list_priority_filter(self):
        urgent = _add("Urgent\np1")
        _add("Someday\np3")
        result = runner.invoke(app, ["tasks", "list", "--priority", "high", "--json"])
        assert result.exit_code == 0, result.output
        assert [t["id"] for t in json.loads(result.output)] == [urgent]

    def test_nothing_to_undo_is_not_an_error(self):
        result = runner.invoke(app, ["undo"])
        assert result.exit_code == 0
        assert "Nothing to undo" in result.output


class TestLists:
    def test_create_and_delete(self):
        assert runner.invoke(app, ["lists", "create", "work"]).exit_code == 0
        _add("Standup", "--list", "work")

        result = runner.invoke(app, ["lists", "delete", "work", "--yes"])
        assert result.exit_code == 0
        assert _list_json() == []

    def test_delete_cancelled(self):
        runner.invoke(app, ["lists", "create", "work"])
        result = runner.invoke(app, ["lists", "delete", "work"], input="n\n")
        assert result.exit_code == 0
        assert "Cancelled" in result.output

    def test_list_lists(self):
        runner.invoke(app, ["lists", "create", "work"])
        result = runner.invoke(app, ["lists", "list"])
        assert result.exit_code == 0
        assert "work" in result.output


class TestHistory:
    def test_history_and_clear(self):
        _add("Buy milk")
        result = runner.invoke(app, ["history"])
        assert "Add task to 'tasks'" in result.output

        assert runner.invoke(app, ["history", "--clear"]).exit_code == 0
        result = runner.invoke(app, ["history"])
        assert "No undo history" in result.output
