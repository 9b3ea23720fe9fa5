# tests/fakes.py

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from timeblock.tasks.task_models import (
    DEFAULT_COLOR,
    Task,
    normalize_duration,
    normalize_exceptions,
    normalize_weekdays,
)


class FakeTaskRepo:
    """
    In-memory TaskRepo used for engine/scheduler unit tests.

    Same normalization rules as TaskStore, deterministic ids (t1, t2, ...).
    """

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}
        self._ids = itertools.count(1)

    def list_all(self) -> list[Task]:
        return list(self.tasks.values())

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def count_tasks(self) -> int:
        return len(self.tasks)

    def create(
        self,
        *,
        title: str,
        start: datetime,
        duration_minutes: Any = None,
        color: str | None = None,
        recurrence_days: Iterable[Any] | None = None,
        exception_dates: Iterable[Any] | None = None,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("title is required")
        task = Task(
            id=f"t{next(self._ids)}",
            title=title.strip(),
            start=start,
            duration_minutes=normalize_duration(duration_minutes),
            color=color or DEFAULT_COLOR,
            recurrence_days=normalize_weekdays(recurrence_days),
            exception_dates=normalize_exceptions(exception_dates),
        )
        self.tasks[task.id] = task
        return task

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
    ) -> Task | None:
        t = self.tasks.get(task_id)
        if t is None:
            return None
        t = replace(
            t,
            title=title.strip() if title and title.strip() else t.title,
            start=start if start is not None else t.start,
            duration_minutes=(
                normalize_duration(duration_minutes, t.duration_minutes)
                if duration_minutes is not None
                else t.duration_minutes
            ),
            color=color or t.color,
            recurrence_days=(
                normalize_weekdays(recurrence_days) if recurrence_days is not None else t.recurrence_days
            ),
            exception_dates=(
                normalize_exceptions(exception_dates) if exception_dates is not None else t.exception_dates
            ),
        )
        self.tasks[task_id] = t
        return t

    def delete(self, task_id: str) -> None:
        self.tasks.pop(task_id, None)

    def tasks_in_range(self, window_start: datetime, window_end: datetime) -> list[Task]:
        return [t for t in self.tasks.values() if t.end > window_start and t.start < window_end]


@dataclass(slots=True)
class Notification:
    title: str
    body: str
    at: datetime | None


@dataclass(slots=True)
class RecordingSink:
    """NotificationSink that records calls; `fail=True` makes every call raise."""

    clock: Callable[[], datetime] | None = None
    fail: bool = False
    sent: list[Notification] = field(default_factory=list)

    def notify(self, title: str, body: str) -> None:
        self.sent.append(Notification(title=title, body=body, at=self.clock() if self.clock else None))
        if self.fail:
            raise RuntimeError("delivery failed")

    def titles(self) -> list[str]:
        return [n.title for n in self.sent]


class _FakeHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """
    TimerBackend with a simulated clock.

    Nothing fires until advance_to()/advance() moves time forward; callbacks then run
    in fire-time order (ties in arm order), and timers armed during a callback fire
    too if they fall inside the advanced span.
    """

    def __init__(self, now: datetime) -> None:
        self._now = now
        self._seq = itertools.count()
        self._entries: list[tuple[datetime, int, Callable[[], None], _FakeHandle]] = []

    def now(self) -> datetime:
        return self._now

    def call_at(self, when: datetime, callback: Callable[[], None]) -> _FakeHandle:
        handle = _FakeHandle()
        self._entries.append((when, next(self._seq), callback, handle))
        return handle

    def call_soon(self, callback: Callable[[], None]) -> None:
        callback()

    def live(self) -> list[datetime]:
        """Fire times of timers that are neither cancelled nor fired yet."""
        return sorted(when for when, _, _, h in self._entries if not h.cancelled)

    def advance_to(self, target: datetime) -> None:
        while True:
            due = [e for e in self._entries if not e[3].cancelled and e[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda e: (e[0], e[1]))
            self._entries.remove(entry)
            when, _, callback, _ = entry
            self._now = max(self._now, when)
            callback()
        self._now = target

    def advance(self, **delta: float) -> None:
        from datetime import timedelta

        self.advance_to(self._now + timedelta(**delta))
