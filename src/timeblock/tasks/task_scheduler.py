# src/timeblock/tasks/task_scheduler.py

from __future__ import annotations

"""
Warning scheduler.

A self-renewing set of one-shot timers that:
- warns `lead` minutes before the active occurrence ends,
- warns `lead` minutes before the next occurrence starts,
- flags a too-short break between the next occurrence and the one before it,
- re-evaluates everything every `refresh_seconds` (drift, missed edits, new data).

Every rebuild cancels the whole previous timer set before arming a new one,
so stacked rebuilds never produce duplicate alerts.

Delivery (sound/speech/notifications) belongs to the sink, not the scheduler.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from ..core import clock
from ..core.ports import NotificationSink, TimerBackend, TimerHandle
from .occurrences import OccurrenceEngine
from .task_models import Occurrence

logger = logging.getLogger(__name__)


class AlertKind(str, Enum):
    ENDING = "ending"
    UPCOMING = "upcoming"
    SHORT_BREAK = "short_break"
    REFRESH = "refresh"


@dataclass(slots=True, frozen=True)
class PlannedAlert:
    """
    What the scheduler wants to say, and when.

    `fire_at` <= now means "deliver immediately" (only used for short breaks).
    """

    kind: AlertKind
    fire_at: datetime
    title: str
    body: str
    key: tuple = ()


@dataclass(slots=True, eq=False)
class _Armed:
    kind: AlertKind
    fire_at: datetime
    handle: TimerHandle | None = field(default=None)


class AsyncioTimerBackend:
    """
    TimerBackend on top of an asyncio loop.

    Fire times are wall-clock; the delay is computed once at arm time from the
    untruncated clock (truncating would fire up to a second late), and the
    periodic refresh corrects any drift between the loop clock and the wall clock.
    """

    def __init__(
            self,
            loop: asyncio.AbstractEventLoop,
            *,
            clock_fn: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._loop = loop
        self._clock_fn = clock_fn

    def now(self) -> datetime:
        return self._clock_fn()

    def call_at(self, when: datetime, callback: Callable[[], None]) -> TimerHandle:
        delay = max(0.0, (when - self.now()).total_seconds())
        return self._loop.call_later(delay, callback)

    def call_soon(self, callback: Callable[[], None]) -> None:
        self._loop.call_soon_threadsafe(callback)


class WarningScheduler:
    """
    Owns the pending timer set for one process.

    Construct once and pass it explicitly to whatever mutates tasks; call
    `request_rebuild()` after every create/update/delete.
    """

    def __init__(
            self,
            engine: OccurrenceEngine,
            sink: NotificationSink,
            timers: TimerBackend,
            *,
            lead_minutes: int = 5,
            min_break_minutes: int = 5,
            refresh_seconds: float = 60.0,
            active_window_hours: int = 24,
            lookahead_days: int = 7,
            time_format: str = "24h",
    ) -> None:
        self._engine = engine
        self._sink = sink
        self._timers = timers

        self.lead = timedelta(minutes=max(1, int(lead_minutes)))
        self.min_break = timedelta(minutes=max(0, int(min_break_minutes)))
        self.refresh = timedelta(seconds=max(1.0, float(refresh_seconds)))
        self.active_window = timedelta(hours=max(24, int(active_window_hours)))
        self.lookahead = timedelta(days=max(1, int(lookahead_days)))
        self.time_format = time_format

        self._armed: list[_Armed] = []
        self._running = False
        self._last_break_key: tuple | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ---- temporal queries ----

    def find_active(self, now: datetime) -> Occurrence | None:
        """
        The occurrence with start <= now < end.

        Overlapping occurrences are a data error; if several match, the earliest
        start wins (then the lowest task id).
        """
        for occ in self._engine.expand(now - self.active_window, now + self.active_window):
            if occ.contains(now):
                return occ
        return None

    def find_next(self, now: datetime) -> Occurrence | None:
        for occ in self._engine.expand(now, now + self.lookahead):
            if occ.start > now:
                return occ
        return None

    def find_previous(self, before: datetime) -> Occurrence | None:
        prev: Occurrence | None = None
        for occ in self._engine.expand(before - self.lookahead, before):
            if occ.start < before:
                prev = occ
            else:
                break
        return prev

    def active_occurrence_info(self, now: datetime | None = None) -> Occurrence | None:
        """Read-only snapshot for live progress displays (cheap enough to poll)."""
        return self.find_active(now or self._timers.now())

    def next_occurrence_info(self, now: datetime | None = None) -> Occurrence | None:
        return self.find_next(now or self._timers.now())

    # ---- planning ----

    def plan(self, now: datetime) -> list[PlannedAlert]:
        """
        Compute the alerts a rebuild at `now` would arm (pure; no timers touched).

        The periodic refresh is not part of the plan.
        """
        lead_min = int(self.lead.total_seconds() // 60)
        out: list[PlannedAlert] = []

        active = self.find_active(now)
        if active is not None:
            warn_at = active.end - self.lead
            if warn_at > now:
                out.append(
                    PlannedAlert(
                        kind=AlertKind.ENDING,
                        fire_at=warn_at,
                        title="Task ending soon",
                        body=f"{active.task.title} ends in {lead_min} minutes.",
                        key=(active.task.id, active.end),
                    )
                )

        nxt = self.find_next(now)
        if nxt is None:
            return out

        warn_at = nxt.start - self.lead
        if warn_at > now:
            start_text = clock.format_clock(nxt.start, self.time_format)
            out.append(
                PlannedAlert(
                    kind=AlertKind.UPCOMING,
                    fire_at=warn_at,
                    title="Upcoming task",
                    body=f"{nxt.task.title} starts in {lead_min} minutes ({start_text}).",
                    key=(nxt.task.id, nxt.start),
                )
            )

        prev = self.find_previous(nxt.start)
        if prev is not None and nxt.start - prev.end < self.min_break:
            break_min = int(self.min_break.total_seconds() // 60)
            out.append(
                PlannedAlert(
                    kind=AlertKind.SHORT_BREAK,
                    fire_at=prev.end,
                    title="Short break detected",
                    body=f"Less than {break_min} minutes between tasks. Consider a short pause.",
                    key=(prev.task.id, prev.end, nxt.task.id, nxt.start),
                )
            )

        return out

    # ---- timer set ----

    def pending(self) -> list[tuple[datetime, AlertKind]]:
        """Currently armed timers (fire time, kind), sorted by fire time."""
        return sorted(((a.fire_at, a.kind) for a in self._armed), key=lambda x: (x[0], x[1].value))

    def cancel_all(self) -> None:
        armed, self._armed = self._armed, []
        for a in armed:
            if a.handle is None:
                continue
            try:
                a.handle.cancel()
            except Exception:
                logger.debug("Timer cancel failed kind=%s", a.kind.value, exc_info=True)

    def _arm(self, kind: AlertKind, when: datetime, callback: Callable[[], None]) -> None:
        entry = _Armed(kind=kind, fire_at=when)

        def fire() -> None:
            # The entry may already have been dropped by a rebuild that raced the loop.
            if entry not in self._armed:
                return
            self._armed.remove(entry)
            callback()

        entry.handle = self._timers.call_at(when, fire)
        self._armed.append(entry)

    def rebuild(self, now: datetime | None = None) -> None:
        """Cancel every pending timer, then arm a fresh set from current data."""
        now = now or self._timers.now()
        self.cancel_all()

        try:
            alerts = self.plan(now)
        except Exception:
            # Keep the refresh alive even if a query blew up; next tick tries again.
            logger.exception("Alert planning failed at %s", now.isoformat())
            alerts = []

        for alert in alerts:
            if alert.kind is AlertKind.SHORT_BREAK and alert.fire_at <= now:
                if alert.key != self._last_break_key:
                    self._last_break_key = alert.key
                    self._deliver(alert)
                continue
            self._arm(alert.kind, alert.fire_at, lambda a=alert: self._on_alert(a))

        self._arm(AlertKind.REFRESH, now + self.refresh, self._on_refresh)

        logger.debug(
            "Rebuilt timers at %s: %s",
            now.isoformat(),
            ", ".join(f"{k.value}@{t.isoformat()}" for t, k in self.pending()) or "none",
        )

    def _on_alert(self, alert: PlannedAlert) -> None:
        if alert.kind is AlertKind.SHORT_BREAK:
            self._last_break_key = alert.key
        self._deliver(alert)

    def _on_refresh(self) -> None:
        self.rebuild()

    def _deliver(self, alert: PlannedAlert) -> None:
        logger.info("Alert %s: %s", alert.kind.value, alert.body)
        try:
            self._sink.notify(alert.title, alert.body)
        except Exception:
            # Best-effort delivery: never let a sink failure touch scheduling state.
            logger.exception("Notification sink failed kind=%s", alert.kind.value)

    # ---- lifecycle ----

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info(
            "Warning scheduler started (lead=%s break=%s refresh=%ss).",
            self.lead,
            self.min_break,
            int(self.refresh.total_seconds()),
        )
        self.rebuild()

    def stop(self) -> None:
        self._running = False
        self.cancel_all()
        logger.info("Warning scheduler stopped.")

    def request_rebuild(self) -> None:
        """
        Thread-safe: schedule an eager rebuild on the timer backend's thread.

        Call after every task create/update/delete so warnings reflect new data
        without waiting for the next refresh tick.
        """
        if not self._running:
            logger.debug("request_rebuild ignored: scheduler not running")
            return

        def _rebuild_if_running() -> None:
            if self._running:
                self.rebuild()

        self._timers.call_soon(_rebuild_if_running)


async def run_warning_scheduler(scheduler: WarningScheduler, stop_event: asyncio.Event) -> None:
    """
    Run the scheduler on the current loop until `stop_event` is set.

    To stop the scheduler, set the event or cancel the coroutine/task.
    """
    scheduler.start()
    try:
        await stop_event.wait()
    finally:
        scheduler.stop()
