# src/timeblock/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.occurrences import OccurrenceEngine
from ..tasks.task_scheduler import WarningScheduler
from .ports import TaskRepo, TTSEngine


@dataclass
class AppState:
    """Everything a connector/command needs, wired once in cli.bootstrap."""

    settings: Any

    task_store: TaskRepo
    engine: OccurrenceEngine
    tts_engine: TTSEngine

    silent: bool = False
    tts_enabled: bool = False

    # Set once the background scheduler thread is up.
    scheduler: WarningScheduler | None = None
