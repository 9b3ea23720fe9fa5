# src/timeblock/tasks/task_runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from ..core.ports import TimerBackend
from .task_scheduler import AsyncioTimerBackend, WarningScheduler, run_warning_scheduler

logger = logging.getLogger(__name__)

SchedulerFactory = Callable[[TimerBackend], WarningScheduler]


@dataclass(slots=True)
class SchedulerBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event
    scheduler: WarningScheduler

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal scheduler stop (loop closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_scheduler_in_background(build: SchedulerFactory) -> SchedulerBackgroundRunner | None:
    """
    Start the warning scheduler on its own event loop in a background thread.

    The console REPL is blocking (input()), so timers need a loop of their own.
    `build` receives the loop-bound TimerBackend and returns the scheduler; all
    scheduler callbacks then run on that one thread.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        try:
            scheduler = build(AsyncioTimerBackend(loop))
        except Exception:
            logger.exception("Failed to build warning scheduler.")
            ready.set()
            loop.close()
            return

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        holder["scheduler"] = scheduler
        ready.set()

        try:
            loop.run_until_complete(run_warning_scheduler(scheduler, stop_event))
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="timeblock-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")
    scheduler = holder.get("scheduler")

    if (
        not isinstance(loop, asyncio.AbstractEventLoop)
        or not isinstance(stop_event, asyncio.Event)
        or not isinstance(scheduler, WarningScheduler)
    ):
        logger.error("Scheduler thread did not initialize properly.")
        return None

    logger.info("Scheduler background thread started.")
    return SchedulerBackgroundRunner(thread=t, loop=loop, stop_event=stop_event, scheduler=scheduler)
