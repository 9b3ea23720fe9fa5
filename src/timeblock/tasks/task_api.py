# src/timeblock/tasks/task_api.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from ..core.clock import DAY, date_key, is_same_day, snap_datetime, start_of_day
from ..core.ports import TaskRepo
from .occurrences import OccurrenceEngine, expand_task
from .task_models import Occurrence, Task
from .task_scheduler import WarningScheduler

logger = logging.getLogger(__name__)

SNAP_MINUTES = 5


class RelocationKind(str, Enum):
    MOVED = "moved"  # one-off task patched in place
    SPLIT = "split"  # same-day move of a recurring instance: exception + one-off
    CLONED = "cloned"  # cross-day move of a recurring instance: one-off only


@dataclass(slots=True, frozen=True)
class Relocation:
    kind: RelocationKind
    task: Task
    series: Task | None = None
    excepted_date: str | None = None


def _snap_within_day(new_start: datetime, step: int) -> datetime:
    """Snap to the grid without leaving the calendar date the user picked."""
    target = snap_datetime(new_start, step)
    if not is_same_day(target, new_start):
        target = start_of_day(new_start) + DAY - timedelta(minutes=max(1, int(step)))
    return target


def _notify_changed(scheduler: WarningScheduler | None) -> None:
    if scheduler is None:
        return
    try:
        scheduler.request_rebuild()
    except Exception:
        logger.exception("request_rebuild failed")


def create_task(
    repo: TaskRepo,
    *,
    title: str,
    start: datetime,
    duration_minutes: Any = None,
    color: str | None = None,
    recurrence_days: Iterable[Any] | None = None,
    scheduler: WarningScheduler | None = None,
) -> Task:
    task = repo.create(
        title=title,
        start=start,
        duration_minutes=duration_minutes,
        color=color,
        recurrence_days=recurrence_days,
    )
    logger.info("Created task id=%s title=%r", task.id, task.title)
    _notify_changed(scheduler)
    return task


def update_task(
    repo: TaskRepo,
    task_id: str,
    *,
    scheduler: WarningScheduler | None = None,
    **fields: Any,
) -> Task | None:
    """Patch a task; returns None if it does not exist (no rebuild in that case)."""
    updated = repo.patch(task_id, **fields)
    if updated is None:
        logger.info("Update skipped: task %s not found", task_id)
        return None
    logger.info("Updated task id=%s fields=%s", task_id, sorted(fields))
    _notify_changed(scheduler)
    return updated


def delete_task(repo: TaskRepo, task_id: str, *, scheduler: WarningScheduler | None = None) -> None:
    repo.delete(task_id)
    logger.info("Deleted task id=%s", task_id)
    _notify_changed(scheduler)


def relocate_occurrence(
    repo: TaskRepo,
    occurrence: Occurrence,
    new_start: datetime,
    *,
    scheduler: WarningScheduler | None = None,
    snap_step: int = SNAP_MINUTES,
) -> Relocation | None:
    """
    Move one occurrence to `new_start` (snapped to `snap_step` minutes).

    - one-off task: its start is patched (a true move, duration unchanged)
    - recurring, same calendar date: the series gains an exception for that date and
      a one-off clone is created at the new time
    - recurring, other date: a one-off clone is created; the series is untouched

    Clones carry no recurrence and no exception dates.
    Returns None if the underlying task no longer exists.
    """
    target = _snap_within_day(new_start, snap_step)

    # Work from the stored record, not the (possibly stale) copy inside the occurrence.
    task = repo.get_task(occurrence.task.id)
    if task is None:
        logger.info("Relocation skipped: task %s not found", occurrence.task.id)
        return None

    if not task.is_recurring:
        moved = repo.patch(task.id, start=target)
        if moved is None:
            return None
        logger.info("Moved task id=%s to %s", task.id, target.isoformat())
        _notify_changed(scheduler)
        return Relocation(kind=RelocationKind.MOVED, task=moved)

    series: Task | None = None
    excepted: str | None = None
    if is_same_day(occurrence.start, target):
        excepted = date_key(occurrence.start)
        series = repo.patch(task.id, exception_dates=set(task.exception_dates) | {excepted})

    clone = repo.create(
        title=task.title,
        start=target,
        duration_minutes=task.duration_minutes,
        color=task.color,
        recurrence_days=None,
        exception_dates=None,
    )

    kind = RelocationKind.SPLIT if excepted else RelocationKind.CLONED
    logger.info(
        "Relocated instance of series id=%s (%s) -> one-off id=%s at %s",
        task.id,
        kind.value,
        clone.id,
        target.isoformat(),
    )
    _notify_changed(scheduler)
    return Relocation(kind=kind, task=clone, series=series, excepted_date=excepted)


def occurrence_for(engine: OccurrenceEngine, task_id: str, day: datetime) -> Occurrence | None:
    """The occurrence of `task_id` starting on the calendar date of `day`, if any."""
    for occ in engine.starting_on(day):
        if occ.task.id == task_id:
            return occ
    return None


def find_overlaps(engine: OccurrenceEngine, task: Task, *, horizon_days: int = 7) -> list[Occurrence]:
    """
    Occurrences of other tasks that collide with `task` within its first `horizon_days`.

    Overlaps break the "one active occurrence" assumption; callers flag them.
    """
    window_start = start_of_day(task.start)
    window_end = window_start + timedelta(days=max(1, horizon_days))
    mine = expand_task(task, window_start, window_end)
    if not mine:
        return []

    out: list[Occurrence] = []
    for other in engine.expand(window_start, window_end):
        if other.task.id == task.id:
            continue
        if any(other.overlaps(m.start, m.end) for m in mine):
            out.append(other)
    return out
