# src/timeblock/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.clock import parse_datetime
from .task_models import (
    DEFAULT_COLOR,
    DEFAULT_DURATION_MINUTES,
    Task,
    normalize_duration,
    normalize_exceptions,
    normalize_weekdays,
)

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Read path:
    - rows missing required fields (title/start/duration) are skipped, never raised,
      so the occurrence engine only ever sees well-formed tasks

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(
        self,
        db_path: str | Path = "tasks.sqlite3",
        *,
        default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
        default_color: str = DEFAULT_COLOR,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._default_duration = normalize_duration(default_duration_minutes)
        self._default_color = default_color or DEFAULT_COLOR
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    color TEXT NOT NULL DEFAULT '#0ea5e9',
                    start TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL DEFAULT 30,
                    recurrence_days TEXT NOT NULL DEFAULT '[]',
                    exception_dates TEXT NOT NULL DEFAULT '[]',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("color", "TEXT NOT NULL DEFAULT '#0ea5e9'")
            add_col("recurrence_days", "TEXT NOT NULL DEFAULT '[]'")
            add_col("exception_dates", "TEXT NOT NULL DEFAULT '[]'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_start ON tasks(start)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _list_to_str(values: Iterable[Any]) -> str:
        return json.dumps(sorted(values))

    @staticmethod
    def _str_to_list(s: str | None) -> list[Any]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            return []
        return val if isinstance(val, list) else []

    def _row_to_task(self, row: sqlite3.Row) -> Task | None:
        """Build a Task or return None for a malformed row."""
        try:
            task_id = str(row["id"] or "").strip()
            title = str(row["title"] or "").strip()
            start = parse_datetime(str(row["start"] or ""))
            duration = row["duration_minutes"]
        except (TypeError, ValueError):
            return None

        if not task_id or not title or not isinstance(duration, (int, float)):
            return None

        return Task(
            id=task_id,
            title=title,
            color=str(row["color"] or self._default_color),
            start=start,
            duration_minutes=normalize_duration(duration, self._default_duration),
            recurrence_days=normalize_weekdays(self._str_to_list(row["recurrence_days"])),
            exception_dates=normalize_exceptions(self._str_to_list(row["exception_dates"])),
        )

    def _rows_to_tasks(self, rows: Iterable[sqlite3.Row]) -> list[Task]:
        out: list[Task] = []
        for row in rows:
            task = self._row_to_task(row)
            if task is None:
                logger.warning("Skipping malformed task row id=%r", row["id"])
                continue
            out.append(task)
        return out

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def list_all(self) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks ORDER BY start ASC, id ASC")
            return self._rows_to_tasks(cur.fetchall())
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (str(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

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
        """
        Insert a new task with a fresh id.

        Duration is normalized to a positive integer (default when invalid), weekdays
        are filtered to 0..6, exceptions default to empty.
        """
        if not title or not title.strip():
            raise ValueError("title is required")

        task = Task(
            id=uuid.uuid4().hex,
            title=title.strip(),
            color=(color or "").strip() or self._default_color,
            start=start.replace(microsecond=0),
            duration_minutes=normalize_duration(duration_minutes, self._default_duration),
            recurrence_days=normalize_weekdays(recurrence_days),
            exception_dates=normalize_exceptions(exception_dates),
        )

        now = time.time()
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, color, start, duration_minutes,
                    recurrence_days, exception_dates, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.title,
                    task.color,
                    task.start.isoformat(),
                    task.duration_minutes,
                    self._list_to_str(task.recurrence_days),
                    self._list_to_str(task.exception_dates),
                    now,
                    now,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug(
            "Task added id=%s title=%r start=%s duration=%s days=%s",
            task.id,
            task.title,
            task.start.isoformat(),
            task.duration_minutes,
            sorted(task.recurrence_days),
        )
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
        """
        Merge the provided fields over the stored record.

        Omitted (None) fields keep their value. The id is never editable.
        Returns the updated Task, or None when no task has this id.
        """
        existing = self.get_task(task_id)
        if existing is None:
            logger.debug("patch: task not found id=%s", task_id)
            return None

        new_title = title.strip() if isinstance(title, str) and title.strip() else existing.title
        updated = Task(
            id=existing.id,
            title=new_title,
            color=(color or "").strip() or existing.color,
            start=start.replace(microsecond=0) if start is not None else existing.start,
            duration_minutes=(
                normalize_duration(duration_minutes, existing.duration_minutes)
                if duration_minutes is not None
                else existing.duration_minutes
            ),
            recurrence_days=(
                normalize_weekdays(recurrence_days)
                if recurrence_days is not None
                else existing.recurrence_days
            ),
            exception_dates=(
                normalize_exceptions(exception_dates)
                if exception_dates is not None
                else existing.exception_dates
            ),
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                UPDATE tasks
                SET title = ?,
                    color = ?,
                    start = ?,
                    duration_minutes = ?,
                    recurrence_days = ?,
                    exception_dates = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    updated.title,
                    updated.color,
                    updated.start.isoformat(),
                    updated.duration_minutes,
                    self._list_to_str(updated.recurrence_days),
                    self._list_to_str(updated.exception_dates),
                    time.time(),
                    updated.id,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Task patched id=%s", updated.id)
        return updated

    def delete(self, task_id: str) -> None:
        """Remove a task. Unknown ids are a no-op."""
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (str(task_id),))
            conn.commit()
            if cur.rowcount:
                logger.debug("Task deleted id=%s", task_id)
        finally:
            conn.close()

    def tasks_in_range(self, window_start: datetime, window_end: datetime) -> list[Task]:
        """Stored tasks whose anchored interval [start, end) overlaps the window."""
        return [t for t in self.list_all() if t.end > window_start and t.start < window_end]
