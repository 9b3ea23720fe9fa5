# src/timeblock/tasks/occurrences.py

from __future__ import annotations

"""
Occurrence engine.

Expands stored task definitions into concrete occurrences over a window:
- one-off tasks contribute their anchored interval if it overlaps the window,
- recurring tasks contribute one occurrence per matching, non-excepted weekday
  from their anchor date onward, at the anchor's time-of-day.

Nothing is cached: every call re-reads the repo, so edits are visible immediately.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from ..core.clock import DAY, at_time_of_day, date_key, end_of_day, start_of_day, weekday_index
from ..core.ports import TaskRepo
from .task_models import Occurrence, Task

logger = logging.getLogger(__name__)


def _sort_key(occ: Occurrence) -> tuple[datetime, str]:
    return occ.start, occ.task.id


def expand_task(task: Task, window_start: datetime, window_end: datetime) -> list[Occurrence]:
    """Occurrences of a single task overlapping [window_start, window_end)."""
    if window_end <= window_start:
        return []

    if not task.is_recurring:
        # A one-off keeps its own slot even if it carries exception dates
        # (e.g. copied from the series it was split off).
        occ = Occurrence.of(task, task.start)
        return [occ] if occ.overlaps(window_start, window_end) else []

    out: list[Occurrence] = []
    day = max(start_of_day(window_start), start_of_day(task.start))
    last_day = start_of_day(window_end)
    while day <= last_day:
        if weekday_index(day) in task.recurrence_days and date_key(day) not in task.exception_dates:
            occ = Occurrence.of(task, at_time_of_day(day, task.start))
            if occ.overlaps(window_start, window_end):
                out.append(occ)
        day = start_of_day(day + DAY)
    return out


def expand(tasks: Iterable[Task], window_start: datetime, window_end: datetime) -> list[Occurrence]:
    """All occurrences overlapping the window, ordered by start then task id."""
    out: list[Occurrence] = []
    for task in tasks:
        out.extend(expand_task(task, window_start, window_end))
    out.sort(key=_sort_key)
    return out


class OccurrenceEngine:
    """Binds `expand` to a task repo."""

    def __init__(self, repo: TaskRepo) -> None:
        self._repo = repo

    @property
    def repo(self) -> TaskRepo:
        return self._repo

    def expand(self, window_start: datetime, window_end: datetime) -> list[Occurrence]:
        return expand(self._repo.list_all(), window_start, window_end)

    def on_day(self, day: datetime) -> list[Occurrence]:
        """Occurrences overlapping the calendar date of `day`."""
        return self.expand(start_of_day(day), end_of_day(day))

    def starting_on(self, day: datetime) -> list[Occurrence]:
        """Occurrences whose start falls on the calendar date of `day`."""
        key = date_key(day)
        return [o for o in self.on_day(day) if date_key(o.start) == key]
