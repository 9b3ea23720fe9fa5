# src/timeblock/tasks/task_models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

DEFAULT_DURATION_MINUTES = 30
DEFAULT_COLOR = "#0ea5e9"


def normalize_duration(raw: Any, default: int = DEFAULT_DURATION_MINUTES) -> int:
    """Positive integer minutes; anything else falls back to `default`."""
    try:
        value = int(float(raw))
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def normalize_weekdays(raw: Iterable[Any] | None) -> frozenset[int]:
    """Keep only weekday indices 0..6 (0=Sunday). Unparseable items are dropped."""
    if not raw:
        return frozenset()
    out: set[int] = set()
    for item in raw:
        try:
            n = int(item)
        except (TypeError, ValueError):
            continue
        if 0 <= n <= 6:
            out.add(n)
    return frozenset(out)


def normalize_exceptions(raw: Iterable[Any] | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(str(k).strip() for k in raw if str(k).strip())


@dataclass(slots=True, frozen=True)
class Task:
    """
    Stored definition of a planned block.

    For a recurring task `start` is the reference time-of-day and the earliest date
    the series may produce an occurrence on.
    """

    id: str
    title: str
    start: datetime
    duration_minutes: int
    color: str = DEFAULT_COLOR
    recurrence_days: frozenset[int] = field(default_factory=frozenset)
    exception_dates: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurrence_days)

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)

    @property
    def end(self) -> datetime:
        """End of the anchored (first) interval."""
        return self.start + self.duration


@dataclass(slots=True, frozen=True)
class Occurrence:
    """One concrete instance of a task. Derived on every query, never persisted."""

    task: Task
    start: datetime
    end: datetime

    @property
    def task_id(self) -> str:
        return self.task.id

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def overlaps(self, window_start: datetime, window_end: datetime) -> bool:
        return self.end > window_start and self.start < window_end

    @classmethod
    def of(cls, task: Task, start: datetime) -> Occurrence:
        return cls(task=task, start=start, end=start + task.duration)
