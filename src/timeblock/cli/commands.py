# src/timeblock/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
import shlex
from collections.abc import Callable
from datetime import datetime
from typing import Any, cast

from ..core import clock
from ..core.state import AppState
from ..tasks.progress import describe_progress
from ..tasks.task_api import (
    RelocationKind,
    create_task,
    delete_task,
    find_overlaps,
    occurrence_for,
    relocate_occurrence,
    update_task,
)
from ..tasks.task_models import Occurrence, Task
from ..tts.engine import TTSEngine  # concrete engine (not the Protocol)

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
SHORT_ID = 8


class CommandError(ValueError):
    """Bad command input; the message is shown to the user as-is."""


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Cannot parse command: {e}."
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except CommandError as e:
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def parse_kv(args: list[str]) -> tuple[dict[str, str], list[str]]:
    """Split `key=value` tokens from positional ones."""
    kv: dict[str, str] = {}
    rest: list[str] = []
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key:
            kv[key.strip().lower()] = value.strip()
        else:
            rest.append(a)
    return kv, rest


def parse_days(raw: str) -> list[int]:
    """'1,3' or 'mon,wed' -> [1, 3]; '' / 'none' -> []."""
    raw = raw.strip().lower()
    if raw in ("", "none", "-"):
        return []
    out: list[int] = []
    for part in raw.replace(" ", ",").split(","):
        part = part.strip()
        if not part:
            continue
        if part.isdigit():
            out.append(int(part))
        elif part[:3] in DAY_NAMES:
            out.append(DAY_NAMES.index(part[:3]))
        else:
            raise CommandError(f"Unknown weekday: {part!r}. Use 0-6 (0=Sun) or sun..sat.")
    return out


def parse_start(kv: dict[str, str], *, default_day: datetime | None = None) -> datetime | None:
    """start=YYYY-MM-DDTHH:MM, or date=YYYY-MM-DD + time=HH:MM."""
    try:
        if "start" in kv:
            raw = kv["start"]
            if ":" in raw and "-" not in raw:
                day = clock.date_key(default_day or clock.now())
                return clock.parse_time_on(day, raw)
            return clock.parse_datetime(raw)
        if "time" in kv:
            day = kv.get("date") or clock.date_key(default_day or clock.now())
            return clock.parse_time_on(day, kv["time"])
    except ValueError:
        raise CommandError("Bad start time. Use start=YYYY-MM-DDTHH:MM or date=YYYY-MM-DD time=HH:MM.") from None
    return None


def resolve_task(state: AppState, raw: str) -> Task:
    """Find a task by full id or unique id prefix."""
    raw = raw.strip()
    if not raw:
        raise CommandError("Task id is required.")
    task = state.task_store.get_task(raw)
    if task is not None:
        return task
    matches = [t for t in state.task_store.list_all() if t.id.startswith(raw)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise CommandError(f"No task with id {raw!r}.")
    raise CommandError(f"Id prefix {raw!r} is ambiguous ({len(matches)} tasks).")


def _fmt(state: AppState, d: datetime) -> str:
    return clock.format_clock(d, getattr(state.settings, "time_format", "24h"))


def format_task(state: AppState, t: Task) -> str:
    if t.is_recurring:
        days = ",".join(DAY_NAMES[d] for d in sorted(t.recurrence_days))
        when = f"every {days} at {_fmt(state, t.start)} from {clock.date_key(t.start)}"
        if t.exception_dates:
            when += f" (except {', '.join(sorted(t.exception_dates))})"
    else:
        when = f"{clock.date_key(t.start)} {_fmt(state, t.start)}"
    return f"[{t.id[:SHORT_ID]}] {t.title} - {when}, {t.duration_minutes} min"


def format_occurrence(state: AppState, o: Occurrence) -> str:
    marker = " (recurring)" if o.task.is_recurring else ""
    return f"  {_fmt(state, o.start)} - {_fmt(state, o.end)}  {o.task.title} [{o.task.id[:SHORT_ID]}]{marker}"


def _overlap_warning(state: AppState, task: Task) -> str:
    overlaps = find_overlaps(state.engine, task)
    if not overlaps:
        return ""
    first = overlaps[0]
    return (
        f"\nWarning: overlaps {len(overlaps)} other occurrence(s), e.g. {first.task.title} "
        f"on {clock.date_key(first.start)} at {_fmt(state, first.start)}."
    )


# ---- commands ----


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    s = state.settings
    sched = state.scheduler
    return (
        "Status:\n"
        f"  Alerts: {'SILENT' if state.silent else 'ON'} (voice: {'ON' if state.tts_enabled else 'OFF'})\n"
        f"  Tasks stored: {state.task_store.count_tasks()}\n"
        f"  Scheduler: {'running' if sched is not None and sched.running else 'stopped'}\n"
        f"  Lead: {s.lead_minutes} min, min break: {s.min_break_minutes} min, "
        f"refresh: {int(s.refresh_seconds)}s"
    )


def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add title="Deep work" start=2026-10-19T09:00 dur=90 days=mon,wed color=#22c55e
    Bare words are used as the title when title= is missing.
    """
    kv, rest = parse_kv(args)
    title = kv.get("title") or " ".join(rest)
    start = parse_start(kv)
    if not title.strip():
        raise CommandError("Usage: /add title=... start=YYYY-MM-DDTHH:MM [dur=30] [days=mon,wed] [color=#hex]")
    if start is None:
        raise CommandError("start=YYYY-MM-DDTHH:MM (or time=HH:MM) is required.")

    task = create_task(
        state.task_store,
        title=title,
        start=start,
        duration_minutes=kv.get("dur") or kv.get("duration"),
        color=kv.get("color"),
        recurrence_days=parse_days(kv.get("days", "")),
        scheduler=state.scheduler,
    )
    return f"Added {format_task(state, task)}{_overlap_warning(state, task)}"


def cmd_edit(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/edit <id> [title=..] [start=..] [dur=..] [color=..] [days=..]"""
    kv, rest = parse_kv(args)
    if not rest:
        raise CommandError("Usage: /edit <id> [title=..] [start=..] [dur=..] [color=..] [days=..]")
    task = resolve_task(state, rest[0])

    fields: dict[str, Any] = {}
    if "title" in kv:
        fields["title"] = kv["title"]
    start = parse_start(kv, default_day=task.start)
    if start is not None:
        fields["start"] = start
    if "dur" in kv or "duration" in kv:
        fields["duration_minutes"] = kv.get("dur") or kv.get("duration")
    if "color" in kv:
        fields["color"] = kv["color"]
    if "days" in kv:
        fields["recurrence_days"] = parse_days(kv["days"])
    if not fields:
        return "Nothing to change."

    updated = update_task(state.task_store, task.id, scheduler=state.scheduler, **fields)
    if updated is None:
        return f"Task {task.id[:SHORT_ID]} not found."
    return f"Updated {format_task(state, updated)}{_overlap_warning(state, updated)}"


def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        raise CommandError("Usage: /delete <id>")
    task = resolve_task(state, args[0])
    delete_task(state.task_store, task.id, scheduler=state.scheduler)
    return f"Deleted {task.title} [{task.id[:SHORT_ID]}]."


def cmd_move(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /move <id>@YYYY-MM-DD <YYYY-MM-DDTHH:MM | HH:MM>
    The occurrence date defaults to today; a bare HH:MM keeps the same date.
    """
    if len(args) < 2:
        raise CommandError("Usage: /move <id>@YYYY-MM-DD <YYYY-MM-DDTHH:MM | HH:MM>")

    ref, _, day_raw = args[0].partition("@")
    task = resolve_task(state, ref)
    try:
        day = clock.from_date_key(day_raw) if day_raw else clock.start_of_day(clock.now())
    except ValueError:
        raise CommandError(f"Bad date {day_raw!r}. Use YYYY-MM-DD.") from None

    occ = occurrence_for(state.engine, task.id, day)
    if occ is None:
        return f"{task.title} has no occurrence on {clock.date_key(day)}."

    target = parse_start({"start": args[1]}, default_day=occ.start)
    assert target is not None

    step = int(getattr(state.settings, "snap_minutes", 5))
    result = relocate_occurrence(state.task_store, occ, target, scheduler=state.scheduler, snap_step=step)
    if result is None:
        return f"Task {task.id[:SHORT_ID]} not found."

    warning = _overlap_warning(state, result.task)
    if result.kind is RelocationKind.MOVED:
        return f"Moved {format_task(state, result.task)}{warning}"
    if result.kind is RelocationKind.SPLIT:
        return (
            f"Split {clock.date_key(occ.start)} out of the series; "
            f"new one-off {format_task(state, result.task)}{warning}"
        )
    return f"Series unchanged; added one-off {format_task(state, result.task)}{warning}"


def cmd_list(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    tasks = state.task_store.list_all()
    if not tasks:
        return "No tasks."
    return "Tasks:\n" + "\n".join(f"  {format_task(state, t)}" for t in tasks)


def _parse_day_arg(args: list[str]) -> datetime:
    if not args:
        return clock.start_of_day(clock.now())
    try:
        return clock.from_date_key(args[0])
    except ValueError:
        raise CommandError(f"Bad date {args[0]!r}. Use YYYY-MM-DD.") from None


def cmd_day(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    day = _parse_day_arg(args)
    occs = state.engine.on_day(day)
    header = f"{DAY_NAMES[clock.weekday_index(day)].capitalize()} {clock.date_key(day)}:"
    if not occs:
        return f"{header}\n  (nothing planned)"
    return header + "\n" + "\n".join(format_occurrence(state, o) for o in occs)


def cmd_week(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    base = _parse_day_arg(args)
    lines: list[str] = []
    for day in clock.week_days(base, int(getattr(state.settings, "week_starts_on", 0))):
        occs = state.engine.starting_on(day)
        lines.append(f"{DAY_NAMES[clock.weekday_index(day)].capitalize()} {clock.date_key(day)}:")
        lines.extend(format_occurrence(state, o) for o in occs)
    return "\n".join(lines)


def cmd_now(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    now = clock.now()
    if state.scheduler is not None:
        active = state.scheduler.active_occurrence_info(now)
        upcoming = state.scheduler.next_occurrence_info(now)
    else:
        occs = state.engine.expand(now - clock.DAY, now + clock.DAY * 7)
        active = next((o for o in occs if o.contains(now)), None)
        upcoming = next((o for o in occs if o.start > now), None)
    return describe_progress(active, upcoming, now, time_format=getattr(state.settings, "time_format", "24h"))


def cmd_pending(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    sched = state.scheduler
    if sched is None or not sched.running:
        return "Scheduler is not running."
    items = sched.pending()
    if not items:
        return "No pending alerts."
    return "Pending alerts:\n" + "\n".join(
        f"  {clock.date_key(t)} {_fmt(state, t)}  {kind.value}" for t, kind in items
    )


def cmd_silent(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /silent       -> show status
    /silent on    -> suppress all alert output
    /silent off   -> deliver alerts again
    """
    if not args:
        return f"Silent mode is {'ON' if state.silent else 'OFF'}. Use /silent on or /silent off."
    arg = args[0].lower()
    if arg in ("on", "1", "true", "yes"):
        state.silent = True
        return "Silent mode ON. Alerts are still scheduled but not delivered."
    if arg in ("off", "0", "false", "no"):
        state.silent = False
        return "Silent mode OFF."
    return "Usage: /silent on or /silent off."


def cmd_tts(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /tts          -> show status
    /tts on       -> speak alerts
    /tts off      -> beep only
    """
    if not args:
        return f"TTS is currently {'ON' if state.tts_enabled else 'OFF'}. Use /tts on or /tts off."

    arg = args[0].lower()

    if arg in ("on", "1", "true", "yes"):
        if state.tts_enabled:
            return "TTS is already ON."
        if emit:
            with contextlib.suppress(Exception):
                emit("[TTS] Enabling... importing deps and loading model (may take a while).")
        logger.debug("TTS enable requested")

        engine = TTSEngine(enabled=True, settings=state.settings)
        if not engine.enabled:
            return "TTS could not be enabled (missing dependencies?). See the log for details."
        state.tts_engine = engine
        state.tts_enabled = True
        return "TTS enabled. Alerts will be spoken."

    if arg in ("off", "0", "false", "no"):
        if not state.tts_enabled:
            return "TTS is already OFF."
        logger.debug("TTS disable requested")
        with contextlib.suppress(Exception):
            state.tts_engine.shutdown()
        state.tts_engine = TTSEngine(enabled=False)
        state.tts_enabled = False
        return "TTS disabled. Alerts will beep only."

    return "Usage: /tts on or /tts off."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show alert mode, task count and scheduler state.")
registry.register(
    "add",
    cmd_add,
    help_text='Add a task: /add title="..." start=YYYY-MM-DDTHH:MM [dur=30] [days=mon,wed] [color=#hex].',
)
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> [title=..] [start=..] [dur=..] [days=..].")
registry.register("delete", cmd_delete, help_text="Delete a task and all its occurrences: /delete <id>.", aliases=["rm"])
registry.register(
    "move",
    cmd_move,
    help_text="Move one occurrence: /move <id>@YYYY-MM-DD <YYYY-MM-DDTHH:MM | HH:MM>.",
)
registry.register("list", cmd_list, help_text="List stored task definitions.", aliases=["ls"])
registry.register("day", cmd_day, help_text="Show a day's plan: /day [YYYY-MM-DD].")
registry.register("week", cmd_week, help_text="Show a week's plan: /week [YYYY-MM-DD].")
registry.register("now", cmd_now, help_text="Show the active task's progress and what is next.")
registry.register("pending", cmd_pending, help_text="Show armed alert timers.")
registry.register("silent", cmd_silent, help_text="Silence alerts: /silent on | /silent off.")
registry.register("tts", cmd_tts, help_text="Spoken alerts: /tts on | /tts off.")
