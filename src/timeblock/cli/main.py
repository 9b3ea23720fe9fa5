# src/timeblock/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the warning scheduler on its own event loop in a background thread,
- the console REPL in the main thread (or waits for a signal with --no-console).
"""

from __future__ import annotations

import argparse
import logging
import signal
import threading

from ..cli.bootstrap import build_scheduler, create_initial_state
from ..config import get_settings
from ..connectors.console_connector import emit_line, run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.task_runner import SchedulerBackgroundRunner, start_scheduler_in_background

logger = logging.getLogger(__name__)


def _shutdown(state: AppState, runner: SchedulerBackgroundRunner | None) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if runner is not None:
        runner.stop()
        runner.join(timeout=5.0)
    state.scheduler = None

    # TaskStore uses short-lived sqlite connections per call; no explicit close required.
    try:
        tts = getattr(state, "tts_engine", None)
        if tts is not None and hasattr(tts, "shutdown"):
            tts.shutdown()
    except Exception:
        logger.debug("TTS shutdown failed.", exc_info=True)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="timeblock", description="Time-blocking planner with timed alerts.")
    p.add_argument("--no-console", action="store_true", help="Run alerts only, without the interactive REPL.")
    p.add_argument("--silent", action="store_true", help="Start with alerts silenced.")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    if args.silent:
        state.silent = True

    runner = start_scheduler_in_background(lambda timers: build_scheduler(state, timers, emit=emit_line))
    if runner is None:
        logger.error("Alerts are unavailable: scheduler failed to start.")
    else:
        state.scheduler = runner.scheduler

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        # The REPL handles Ctrl+C itself (KeyboardInterrupt in input()).
        if args.no_console:
            signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError, AttributeError):
        # Some platforms may not support SIGTERM, etc.
        pass

    try:
        if not args.no_console:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running alerts only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        _shutdown(state, runner)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
