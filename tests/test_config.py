# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from timeblock.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TIME_FORMAT", "LEAD_MINUTES", "DATA_DIR", "TASKS_DB_PATH", "SILENT", "DEFAULT_DURATION_MINUTES"):
        monkeypatch.delenv(f"TIMEBLOCK_{name}", raising=False)

    s = Settings.from_env()

    assert s.time_format == "12h"
    assert s.lead_minutes == 5
    assert s.min_break_minutes >= 0
    assert s.default_duration_minutes == 30
    assert s.silent is False
    assert s.tasks_db_path == Path(".local/timeblock") / "tasks.sqlite3"


def test_env_overrides_and_bad_values(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TIMEBLOCK_TIME_FORMAT", "24H")
    monkeypatch.setenv("TIMEBLOCK_LEAD_MINUTES", "10")
    monkeypatch.setenv("TIMEBLOCK_DEFAULT_DURATION_MINUTES", "-4")
    monkeypatch.setenv("TIMEBLOCK_REFRESH_SECONDS", "nope")
    monkeypatch.setenv("TIMEBLOCK_SILENT", "yes")
    monkeypatch.setenv("TIMEBLOCK_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TIMEBLOCK_TASKS_DB_PATH", raising=False)

    s = Settings.from_env()

    assert s.time_format == "24h"
    assert s.lead_minutes == 10
    assert s.default_duration_minutes == 30
    assert s.refresh_seconds == 60.0
    assert s.silent is True
    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"
