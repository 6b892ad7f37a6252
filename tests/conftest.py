"""Shared test fixtures and configuration.

Every test gets its own SQLite file under ``tmp_path`` and a controllable
clock, so nothing touches the real user data directory.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from todograph.models.config_models import AppConfig
from todograph.services import HistoryService, ListService, Store, TaskService


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


# 2026-03-10 is a Tuesday
START = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture()
def clock():
    return FakeClock(START)


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / "tasks.db"


@pytest.fixture()
def store(db_path, clock):
    with Store.open(db_path, AppConfig(), clock=clock) as s:
        yield s


@pytest.fixture()
def tasks(store):
    return TaskService(store)


@pytest.fixture()
def lists(store):
    return ListService(store)


@pytest.fixture()
def history(store):
    return HistoryService(store)


@pytest.fixture()
def add(tasks):
    """Add a task and return its ID, failing loudly if it was rejected."""

    def _add(description: str, list_name: str | None = None) -> str:
        result = tasks.add_task(description, list_name)
        assert result.kind == "success", result
        return result.task_id

    return _add
