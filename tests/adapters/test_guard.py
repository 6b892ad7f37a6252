"""Unit tests for the retry-with-backoff ConcurrencyGuard."""

from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest

from todograph.adapters.sqlite.guard import ConcurrencyGuard, is_lock_error
from todograph.exceptions import ConcurrencyError
from todograph.models.config_models import LockConfig


def _locked() -> sqlite3.OperationalError:
    return sqlite3.OperationalError("database is locked")


class TestIsLockError:
    def test_locked_and_busy(self):
        assert is_lock_error(_locked())
        assert is_lock_error(sqlite3.OperationalError("database is busy"))

    def test_other_operational_errors(self):
        assert not is_lock_error(sqlite3.OperationalError("no such table: tasks"))

    def test_other_exception_types(self):
        assert not is_lock_error(ValueError("database is locked"))


class TestDelay:
    def test_grows_exponentially_within_jitter(self):
        guard = ConcurrencyGuard(LockConfig(initial_delay=0.1, max_delay=10.0))
        for attempt, base in enumerate([0.1, 0.2, 0.4, 0.8]):
            assert base <= guard.delay_for(attempt) <= base * 1.1

    def test_capped_at_max_delay(self):
        guard = ConcurrencyGuard(LockConfig(initial_delay=0.1, max_delay=0.3))
        assert 0.3 <= guard.delay_for(10) <= 0.33


class TestRun:
    def test_returns_result_without_sleeping(self):
        sleep = MagicMock()
        guard = ConcurrencyGuard(LockConfig(), sleep=sleep)
        assert guard.run(lambda: 42) == 42
        sleep.assert_not_called()

    def test_retries_then_succeeds(self):
        sleep = MagicMock()
        unit = MagicMock(side_effect=[_locked(), _locked(), "done"])
        guard = ConcurrencyGuard(LockConfig(max_retries=5), sleep=sleep)
        assert guard.run(unit) == "done"
        assert unit.call_count == 3
        assert sleep.call_count == 2

    def test_gives_up_after_max_retries(self):
        sleep = MagicMock()
        unit = MagicMock(side_effect=_locked())
        guard = ConcurrencyGuard(LockConfig(max_retries=3), sleep=sleep)
        with pytest.raises(ConcurrencyError, match="3 attempts"):
            guard.run(unit)
        assert unit.call_count == 3
        assert sleep.call_count == 2

    def test_other_errors_are_not_retried(self):
        sleep = MagicMock()
        unit = MagicMock(side_effect=sqlite3.OperationalError("no such table: x"))
        guard = ConcurrencyGuard(LockConfig(), sleep=sleep)
        with pytest.raises(sqlite3.OperationalError, match="no such table"):
            guard.run(unit)
        assert unit.call_count == 1
        sleep.assert_not_called()
