# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from timeblock.core.state import AppState
from timeblock.tasks.occurrences import OccurrenceEngine
from timeblock.tasks.task_scheduler import WarningScheduler
from timeblock.tasks.task_store import TaskStore
from timeblock.tts.engine import TTSEngine

from .fakes import FakeTaskRepo, FakeTimers, RecordingSink

# Monday 2024-01-01 is a convenient anchor: weekday_index == 1.
MONDAY = datetime(2024, 1, 1)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="timeblock-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        silent=False,
        tts_mode=False,
        desktop_notifications=False,
        default_duration_minutes=30,
        default_color="#0ea5e9",
        time_format="24h",
        week_starts_on=0,
        snap_minutes=5,
        lead_minutes=5,
        min_break_minutes=5,
        refresh_seconds=60.0,
        lookahead_days=7,
    )


@pytest.fixture()
def repo() -> FakeTaskRepo:
    return FakeTaskRepo()


@pytest.fixture()
def timers() -> FakeTimers:
    return FakeTimers(MONDAY.replace(hour=7))


@pytest.fixture()
def sink(timers: FakeTimers) -> RecordingSink:
    return RecordingSink(clock=timers.now)


@pytest.fixture()
def scheduler(repo: FakeTaskRepo, sink: RecordingSink, timers: FakeTimers) -> WarningScheduler:
    return WarningScheduler(OccurrenceEngine(repo), sink, timers)


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    """
    AppState wired with a real SQLite TaskStore (its correctness is part of what we test)
    and no scheduler; tests that need one attach it explicitly.
    """
    return AppState(
        settings=settings,
        task_store=store,
        engine=OccurrenceEngine(store),
        tts_engine=TTSEngine(enabled=False),
        silent=False,
        tts_enabled=False,
    )
