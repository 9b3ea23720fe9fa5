# src/timeblock/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing required at import time; every value has a default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TIMEBLOCK"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Alert delivery ----
    silent: bool
    tts_mode: bool
    desktop_notifications: bool

    # ---- Task defaults ----
    default_duration_minutes: int
    default_color: str
    time_format: str
    week_starts_on: int
    snap_minutes: int

    # ---- Scheduler tuning ----
    lead_minutes: int
    min_break_minutes: int
    refresh_seconds: float
    lookahead_days: int

    # ---- TTS ----
    speaker_wav: str
    xtts_speaker_name: str
    xtts_language: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "timeblock") or "timeblock"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        silent = _env_bool(_k("SILENT"), False)
        tts_mode = _env_bool(_k("TTS_MODE"), False)
        desktop_notifications = _env_bool(_k("DESKTOP_NOTIFICATIONS"), True)

        default_duration_minutes = _env_int(_k("DEFAULT_DURATION_MINUTES"), 30)
        if default_duration_minutes <= 0:
            default_duration_minutes = 30
        default_color = _env(_k("DEFAULT_COLOR"), "#0ea5e9")
        time_format = _env(_k("TIME_FORMAT"), "12h").strip().lower()
        if time_format not in ("12h", "24h"):
            time_format = "12h"
        week_starts_on = 1 if _env_int(_k("WEEK_STARTS_ON"), 0) == 1 else 0
        snap_minutes = max(1, _env_int(_k("SNAP_MINUTES"), 5))

        lead_minutes = max(1, _env_int(_k("LEAD_MINUTES"), 5))
        min_break_minutes = max(0, _env_int(_k("MIN_BREAK_MINUTES"), 5))
        refresh_seconds = max(1.0, _env_float(_k("REFRESH_SECONDS"), 60.0))
        lookahead_days = max(1, _env_int(_k("LOOKAHEAD_DAYS"), 7))

        speaker_wav = _env(_k("SPEAKER_WAV"), "")
        xtts_speaker_name = _env(_k("XTTS_SPEAKER_NAME"), "Ana Florence")
        xtts_language = _env(_k("XTTS_LANGUAGE"), "en")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/timeblock"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            silent=silent,
            tts_mode=tts_mode,
            desktop_notifications=desktop_notifications,
            default_duration_minutes=default_duration_minutes,
            default_color=default_color,
            time_format=time_format,
            week_starts_on=week_starts_on,
            snap_minutes=snap_minutes,
            lead_minutes=lead_minutes,
            min_break_minutes=min_break_minutes,
            refresh_seconds=refresh_seconds,
            lookahead_days=lookahead_days,
            speaker_wav=speaker_wav,
            xtts_speaker_name=xtts_speaker_name,
            xtts_language=xtts_language,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
