# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from timeblock.tasks.occurrences import OccurrenceEngine
from timeblock.tasks.task_api import delete_task, update_task
from timeblock.tasks.task_scheduler import (
    AlertKind,
    AsyncioTimerBackend,
    WarningScheduler,
    run_warning_scheduler,
)

from .fakes import FakeTaskRepo, FakeTimers, RecordingSink


def _at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    return datetime(2024, 1, day, hour, minute)


def _make(repo: FakeTaskRepo, now: datetime, **kwargs) -> tuple[WarningScheduler, FakeTimers, RecordingSink]:
    timers = FakeTimers(now)
    sink = RecordingSink(clock=timers.now)
    return WarningScheduler(OccurrenceEngine(repo), sink, timers, **kwargs), timers, sink


class BrokenRepo(FakeTaskRepo):
    def list_all(self):
        raise RuntimeError("db is gone")


def test_find_active_and_next(repo, scheduler) -> None:
    a = repo.create(title="A", start=_at(9), duration_minutes=60)
    b = repo.create(title="B", start=_at(10, 30), duration_minutes=30)

    active = scheduler.find_active(_at(9, 30))
    nxt = scheduler.find_next(_at(9, 30))
    assert active is not None and active.task_id == a.id
    assert nxt is not None and nxt.task_id == b.id

    assert scheduler.find_active(_at(10, 15)) is None
    nxt = scheduler.find_next(_at(10, 15))
    assert nxt is not None and nxt.task_id == b.id

    # End is exclusive.
    assert scheduler.find_active(_at(10)) is None
    assert scheduler.find_next(_at(11)) is None


def test_find_active_prefers_earliest_start_on_overlap(repo, scheduler) -> None:
    first = repo.create(title="First", start=_at(9), duration_minutes=60)
    repo.create(title="Second", start=_at(9, 30), duration_minutes=60)

    active = scheduler.find_active(_at(9, 45))
    assert active is not None and active.task_id == first.id


def test_find_active_sees_long_recurring_block_from_previous_day(repo, scheduler) -> None:
    night = repo.create(title="Night", start=_at(22), duration_minutes=600, recurrence_days=[1])
    active = scheduler.find_active(_at(6, day=2))
    assert active is not None and active.task_id == night.id


def test_find_next_respects_lookahead(repo, scheduler) -> None:
    repo.create(title="Far", start=_at(9, day=20))
    assert scheduler.find_next(_at(9)) is None


def test_plan_arms_ending_upcoming_and_short_break(repo) -> None:
    repo.create(title="A", start=_at(8, 30), duration_minutes=90)
    repo.create(title="B", start=_at(10, 3), duration_minutes=30)
    scheduler, _, _ = _make(repo, _at(9))

    scheduler.rebuild()

    assert scheduler.pending() == [
        (_at(9, 1), AlertKind.REFRESH),
        (_at(9, 55), AlertKind.ENDING),
        (_at(9, 58), AlertKind.UPCOMING),
        (_at(10), AlertKind.SHORT_BREAK),
    ]


def test_plan_texts(repo) -> None:
    repo.create(title="A", start=_at(8, 30), duration_minutes=90)
    repo.create(title="B", start=_at(10, 3), duration_minutes=30)
    scheduler, _, _ = _make(repo, _at(9))

    alerts = {a.kind: a for a in scheduler.plan(_at(9))}

    assert alerts[AlertKind.ENDING].title == "Task ending soon"
    assert alerts[AlertKind.ENDING].body == "A ends in 5 minutes."
    assert alerts[AlertKind.UPCOMING].title == "Upcoming task"
    assert alerts[AlertKind.UPCOMING].body == "B starts in 5 minutes (10:03)."
    assert alerts[AlertKind.SHORT_BREAK].title == "Short break detected"
    assert alerts[AlertKind.SHORT_BREAK].body == "Less than 5 minutes between tasks. Consider a short pause."


def test_no_warnings_for_instants_already_past(repo) -> None:
    repo.create(title="A", start=_at(9), duration_minutes=60)
    scheduler, _, _ = _make(repo, _at(9, 57))

    scheduler.rebuild()

    assert scheduler.pending() == [(_at(9, 58), AlertKind.REFRESH)]


def test_rebuild_is_idempotent(repo) -> None:
    repo.create(title="A", start=_at(8, 30), duration_minutes=90)
    repo.create(title="B", start=_at(10, 3), duration_minutes=30)
    scheduler, timers, _ = _make(repo, _at(9))

    scheduler.rebuild()
    first = scheduler.pending()
    scheduler.rebuild()
    scheduler.rebuild()

    assert scheduler.pending() == first
    assert len(timers.live()) == len(first)


def test_alerts_fire_once_each_in_order(repo) -> None:
    repo.create(title="A", start=_at(8, 30), duration_minutes=90)
    repo.create(title="B", start=_at(10, 3), duration_minutes=30)
    scheduler, timers, sink = _make(repo, _at(9))

    scheduler.start()
    timers.advance_to(_at(10, 1))

    assert [(n.title, n.at) for n in sink.sent] == [
        ("Task ending soon", _at(9, 55)),
        ("Upcoming task", _at(9, 58)),
        ("Short break detected", _at(10)),
    ]
    assert sink.sent[0].body == "A ends in 5 minutes."
    assert sink.sent[1].body == "B starts in 5 minutes (10:03)."


def test_short_break_already_due_is_delivered_once(repo) -> None:
    repo.create(title="A", start=_at(8, 30), duration_minutes=90)
    repo.create(title="B", start=_at(10, 3), duration_minutes=30)
    scheduler, timers, sink = _make(repo, _at(10, 1))

    scheduler.start()
    scheduler.rebuild()
    timers.advance_to(_at(10, 2) + timedelta(seconds=30))

    assert sink.titles() == ["Short break detected"]


def test_no_short_break_when_gap_is_long_enough(repo) -> None:
    repo.create(title="A", start=_at(8, 30), duration_minutes=90)
    repo.create(title="B", start=_at(10, 5), duration_minutes=30)
    scheduler, _, _ = _make(repo, _at(9))

    assert AlertKind.SHORT_BREAK not in {a.kind for a in scheduler.plan(_at(9))}


def test_delete_cancels_pending_warning(repo) -> None:
    t = repo.create(title="Standup", start=_at(9), duration_minutes=15)
    scheduler, timers, sink = _make(repo, _at(7))

    scheduler.start()
    assert (_at(8, 55), AlertKind.UPCOMING) in scheduler.pending()

    delete_task(repo, t.id, scheduler=scheduler)

    assert [k for _, k in scheduler.pending()] == [AlertKind.REFRESH]
    timers.advance_to(_at(9, 30))
    assert sink.sent == []


def test_edit_moves_pending_warning(repo) -> None:
    t = repo.create(title="Standup", start=_at(9), duration_minutes=15)
    scheduler, timers, sink = _make(repo, _at(7))
    scheduler.start()

    update_task(repo, t.id, start=_at(8), scheduler=scheduler)
    timers.advance_to(_at(8, 56))

    assert [(n.title, n.at) for n in sink.sent] == [
        ("Upcoming task", _at(7, 55)),
        ("Task ending soon", _at(8, 10)),
    ]


def test_sink_failure_does_not_break_scheduling(repo) -> None:
    repo.create(title="Standup", start=_at(7, 30), duration_minutes=30)
    scheduler, timers, sink = _make(repo, _at(7))
    sink.fail = True

    scheduler.start()
    timers.advance_to(_at(7, 26))

    assert sink.titles() == ["Upcoming task"]
    assert scheduler.running
    assert (_at(7, 27), AlertKind.REFRESH) in scheduler.pending()

    timers.advance_to(_at(7, 56))
    assert sink.titles() == ["Upcoming task", "Task ending soon"]


def test_planning_failure_keeps_refresh_alive() -> None:
    scheduler, _, sink = _make(BrokenRepo(), _at(9))

    scheduler.rebuild()

    assert scheduler.pending() == [(_at(9, 1), AlertKind.REFRESH)]
    assert sink.sent == []


def test_request_rebuild_ignored_when_not_running(repo) -> None:
    repo.create(title="Standup", start=_at(9))
    scheduler, timers, _ = _make(repo, _at(7))

    scheduler.request_rebuild()

    assert timers.live() == []
    assert scheduler.pending() == []


def test_stop_cancels_everything(repo) -> None:
    repo.create(title="Standup", start=_at(9))
    scheduler, timers, sink = _make(repo, _at(7))

    scheduler.start()
    scheduler.stop()

    assert not scheduler.running
    assert scheduler.pending() == []
    assert timers.live() == []
    timers.advance_to(_at(10))
    assert sink.sent == []


def test_info_snapshots_use_timer_clock(repo) -> None:
    a = repo.create(title="A", start=_at(7), duration_minutes=60)
    b = repo.create(title="B", start=_at(9))
    scheduler, _, _ = _make(repo, _at(7, 30))

    active = scheduler.active_occurrence_info()
    upcoming = scheduler.next_occurrence_info()
    assert active is not None and active.task_id == a.id
    assert upcoming is not None and upcoming.task_id == b.id


@pytest.mark.asyncio
async def test_run_warning_scheduler_on_asyncio_loop(repo) -> None:
    loop = asyncio.get_running_loop()
    timers = AsyncioTimerBackend(loop, clock_fn=datetime.now)
    sink = RecordingSink()
    repo.create(title="Standup", start=datetime.now() + timedelta(minutes=1, milliseconds=200))
    scheduler = WarningScheduler(OccurrenceEngine(repo), sink, timers, lead_minutes=1)

    stop = asyncio.Event()
    runner = asyncio.create_task(run_warning_scheduler(scheduler, stop))
    for _ in range(60):
        await asyncio.sleep(0.05)
        if sink.sent:
            break

    assert scheduler.running
    stop.set()
    await runner

    assert sink.titles() == ["Upcoming task"]
    assert sink.sent[0].body == "Standup starts in 1 minutes ({}).".format(
        repo.list_all()[0].start.strftime("%H:%M")
    )
    assert not scheduler.running
    assert scheduler.pending() == []


def test_find_previous_is_strictly_before(repo, scheduler) -> None:
    a = repo.create(title="A", start=_at(8), duration_minutes=30)
    b = repo.create(title="B", start=_at(9), duration_minutes=30)

    prev = scheduler.find_previous(_at(9))
    assert prev is not None and prev.task_id == a.id

    prev = scheduler.find_previous(_at(9, 0) + timedelta(seconds=1))
    assert prev is not None and prev.task_id == b.id

    assert scheduler.find_previous(_at(8)) is None


def test_find_previous_looks_back_seven_days(repo, scheduler) -> None:
    old = repo.create(title="Old", start=_at(9), duration_minutes=30)

    prev = scheduler.find_previous(_at(9, 29, day=8))
    assert prev is not None and prev.task_id == old.id
    # Ended exactly at the window start: outside the half-open window.
    assert scheduler.find_previous(_at(9, 30, day=8)) is None


class _RecordingLoop:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def call_later(self, delay, callback):
        self.delays.append(delay)
        return None


def test_asyncio_backend_delay_keeps_sub_second_precision() -> None:
    loop = _RecordingLoop()
    timers = AsyncioTimerBackend(loop, clock_fn=lambda: datetime(2024, 1, 1, 8, 54, 59, 750000))

    timers.call_at(_at(8, 55), lambda: None)
    timers.call_at(_at(8, 50), lambda: None)

    assert loop.delays == [0.25, 0.0]


def test_asyncio_backend_default_clock_is_not_truncated() -> None:
    timers = AsyncioTimerBackend(_RecordingLoop())
    assert timers._clock_fn == datetime.now
