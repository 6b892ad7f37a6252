"""Tests for the undo/redo command log."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from todograph.models.commands import AddRelatedCommand, CompositeCommand
from todograph.models.config_models import AppConfig
from todograph.services import HistoryService, Store, TaskService
from todograph.services.command_log import CommandLog


def _edge(suffix: str) -> AddRelatedCommand:
    return AddRelatedCommand(id_1="aaa", id_2=suffix)


@pytest.fixture()
def log():
    return CommandLog(max_depth=3, clock=lambda: datetime(2026, 3, 10, tzinfo=UTC))


# ---------------------------------------------------------------------------
# In-memory behaviour
# ---------------------------------------------------------------------------


class TestBatching:
    def test_single_command_takes_batch_description(self, log):
        with log.batch("Relate"):
            log.record(_edge("bbb"))
        assert len(log.undo_stack) == 1
        command = log.undo_stack[0].command
        assert isinstance(command, AddRelatedCommand)
        assert command.description == "Relate"

    def test_several_commands_become_one_composite(self, log):
        with log.batch("Relate twice"):
            log.record(_edge("bbb"))
            log.record(_edge("ccc"))
        assert len(log.undo_stack) == 1
        command = log.undo_stack[0].command
        assert isinstance(command, CompositeCommand)
        assert [c.id_2 for c in command.commands] == ["bbb", "ccc"]

    def test_empty_batch_records_nothing_and_keeps_redo(self, log):
        log.record(_edge("bbb"))
        log.undo(lambda command: None)
        with log.batch("Nothing"):
            pass
        assert log.undo_stack == []
        assert log.can_redo

    def test_failed_batch_records_nothing(self, log):
        with pytest.raises(ValueError):
            with log.batch("Boom"):
                log.record(_edge("bbb"))
                raise ValueError("boom")
        assert log.undo_stack == []
        assert log.current_batch is None

    def test_only_one_batch_can_be_open(self, log):
        log.begin_batch("First")
        with pytest.raises(RuntimeError, match="still open"):
            log.begin_batch("Second")

    def test_rollback_to_mark_discards_later_commands(self, log):
        batch = log.begin_batch("Partial")
        log.record(_edge("bbb"))
        mark = batch.mark()
        log.record(_edge("ccc"))
        batch.rollback_to(mark)
        log.end_batch(batch)
        assert isinstance(log.undo_stack[0].command, AddRelatedCommand)


class TestStacks:
    def test_recording_clears_redo(self, log):
        log.record(_edge("bbb"))
        assert log.can_undo
        log.undo(lambda command: None)
        assert not log.can_undo
        assert log.can_redo
        log.record(_edge("ccc"))
        assert not log.can_redo

    def test_replaying_suppresses_recording(self, log):
        log.record(_edge("bbb"))

        def revert(command):
            assert log.is_replaying
            log.record(_edge("zzz"))

        log.undo(revert)
        assert not log.is_replaying
        assert log.undo_stack == []
        assert len(log.redo_stack) == 1

    def test_failed_revert_keeps_entry(self, log):
        log.record(_edge("bbb"))

        def revert(command):
            raise RuntimeError("broken")

        with pytest.raises(RuntimeError):
            log.undo(revert)
        assert len(log.undo_stack) == 1
        assert log.redo_stack == []

    def test_oldest_entries_are_evicted(self, log):
        for suffix in ("bbb", "ccc", "ddd", "eee"):
            log.record(_edge(suffix))
        assert [e.command.id_2 for e in log.undo_stack] == ["ccc", "ddd", "eee"]

    def test_nothing_to_undo_or_redo(self, log):
        assert log.undo(lambda command: None) is None
        assert log.redo(lambda command: None) is None

    def test_history_is_most_recent_first(self, log):
        with log.batch("First"):
            log.record(_edge("bbb"))
        with log.batch("Second"):
            log.record(_edge("ccc"))
        log.undo(lambda command: None)
        assert log.history() == (["First"], ["Second"])


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_history_is_shared_between_store_instances(self, db_path, clock, add):
        task_id = add("Buy milk")
        with Store.open(db_path, AppConfig(), clock=clock) as other:
            result = HistoryService(other).undo()
            assert result.kind == "success"
            assert other.tasks.get(task_id) is None

    def test_external_write_clears_history(self, store, history, add):
        task_id = add("Buy milk")
        store.database.connection.execute(
            "UPDATE tasks SET description = 'edited elsewhere' WHERE id = ?", (task_id,)
        )
        result = history.undo()
        assert result.kind == "no_change"
        assert result.reason == "Nothing to undo"
        assert store.tasks.get(task_id).description == "edited elsewhere"

    def test_collapse_does_not_invalidate_history(self, store, history, add, lists):
        add("Buy milk")
        lists.set_collapsed("tasks", True)
        assert history.undo().kind == "success"

    def test_corrupt_payload_clears_history(self, store, history, add):
        add("Buy milk")
        store.database.connection.execute("UPDATE undo_history SET command_payload = 'garbage'")
        assert history.undo().kind == "no_change"
        assert history.history() == ([], [])

    def test_entries_past_retention_are_dropped(self, clock, history, add):
        add("Buy milk")
        clock.advance(days=31)
        assert history.history() == ([], [])

    def test_entries_within_retention_are_kept(self, clock, history, add):
        add("Buy milk")
        clock.advance(days=29)
        undo, _ = history.history()
        assert len(undo) == 1

    def test_depth_limit_applies_to_persisted_log(self, db_path, clock):
        config = AppConfig.model_validate({"undo": {"max_depth": 2}})
        with Store.open(db_path, config, clock=clock) as store:
            service = TaskService(store)
            for name in ("one", "two", "three"):
                service.add_task(name)
            undo, _ = HistoryService(store).history()
        assert len(undo) == 2
