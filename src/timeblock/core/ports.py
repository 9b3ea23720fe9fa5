# src/timeblock/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/alert delivery/timers swappable and makes testing easier
(tests drive the scheduler with a fake clock instead of real sleeps).
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, Protocol


class TaskRepo(Protocol):
    """Durable collection of task definitions."""

    def list_all(self) -> list[Any]: ...
    def get_task(self, task_id: str) -> Any | None: ...
    def count_tasks(self) -> int: ...

    def create(
            self,
            *,
            title: str,
            start: datetime,
            duration_minutes: Any = None,
            color: str | None = None,
            recurrence_days: Iterable[Any] | None = None,
            exception_dates: Iterable[Any] | None = None,
    ) -> Any: ...

    def patch(
            self,
            task_id: str,
            *,
            title: str | None = None,
            start: datetime | None = None,
            duration_minutes: Any = None,
            color: str | None = None,
            recurrence_days: Iterable[Any] | None = None,
            exception_dates: Iterable[Any] | None = None,
    ) -> Any | None: ...

    def delete(self, task_id: str) -> None: ...
    def tasks_in_range(self, window_start: datetime, window_end: datetime) -> list[Any]: ...


class NotificationSink(Protocol):
    """
    Alert delivery (sound/speech/desktop notification).

    Fire-and-forget: the scheduler does not look at the outcome.
    """

    def notify(self, title: str, body: str) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerBackend(Protocol):
    """
    Where scheduler callbacks run.

    All callbacks (including `call_soon`) are serialized on one thread,
    so scheduler state needs no locking.
    """

    def now(self) -> datetime: ...
    def call_at(self, when: datetime, callback: Callable[[], None]) -> TimerHandle: ...
    def call_soon(self, callback: Callable[[], None]) -> None: ...


class TTSEngine(Protocol):
    enabled: bool

    def speak_sentence(self, text: str) -> None: ...
    def wait_all(self) -> None: ...
    def shutdown(self) -> None: ...
