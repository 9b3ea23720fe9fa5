# src/timeblock/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/engine/TTS),
- builds the alert sink and the warning scheduler for a given timer backend.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..config import get_settings
from ..core.ports import TimerBackend
from ..core.state import AppState
from ..notify.alerts import AlertNotifier
from ..tasks.occurrences import OccurrenceEngine
from ..tasks.task_scheduler import WarningScheduler
from ..tasks.task_store import TaskStore
from ..tts.engine import TTSEngine

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(
        settings.tasks_db_path,
        default_duration_minutes=settings.default_duration_minutes,
        default_color=settings.default_color,
    )

    return AppState(
        settings=settings,
        task_store=store,
        engine=OccurrenceEngine(store),
        tts_engine=TTSEngine(enabled=settings.tts_mode, settings=settings),
        silent=bool(settings.silent),
        tts_enabled=bool(settings.tts_mode),
    )


def build_notifier(state: AppState, emit: Callable[[str], None] | None = None) -> AlertNotifier:
    # Read live attributes so /silent and /tts take effect without rewiring.
    return AlertNotifier(
        is_silent=lambda: state.silent,
        tts=_LiveTTS(state),
        emit=emit,
        desktop=bool(getattr(state.settings, "desktop_notifications", True)),
    )


def build_scheduler(
    state: AppState,
    timers: TimerBackend,
    emit: Callable[[str], None] | None = None,
) -> WarningScheduler:
    s = state.settings
    return WarningScheduler(
        state.engine,
        build_notifier(state, emit),
        timers,
        lead_minutes=s.lead_minutes,
        min_break_minutes=s.min_break_minutes,
        refresh_seconds=s.refresh_seconds,
        lookahead_days=s.lookahead_days,
        time_format=s.time_format,
    )


class _LiveTTS:
    """Forwards to whatever engine is currently on the state (it is swapped by /tts)."""

    def __init__(self, state: AppState) -> None:
        self._state = state

    @property
    def enabled(self) -> bool:
        return bool(self._state.tts_enabled and getattr(self._state.tts_engine, "enabled", False))

    def speak_sentence(self, text: str) -> None:
        self._state.tts_engine.speak_sentence(text)

    def wait_all(self) -> None:
        self._state.tts_engine.wait_all()

    def shutdown(self) -> None:
        self._state.tts_engine.shutdown()
