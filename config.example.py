# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use `.env` (local, gitignored) for machine-specific values.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TIMEBLOCK_APP_NAME": "App display name (default: timeblock).",
    "TIMEBLOCK_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Alert delivery
    "TIMEBLOCK_SILENT": "Start with alerts silenced (true/false, default: false).",
    "TIMEBLOCK_TTS_MODE": "Speak alerts via XTTS (true/false, default: false). Needs the `tts` extra.",
    "TIMEBLOCK_DESKTOP_NOTIFICATIONS": "Show desktop notifications (true/false, default: true).",
    # Task defaults / display
    "TIMEBLOCK_DEFAULT_DURATION_MINUTES": "Duration used when none (or an invalid one) is given (default: 30).",
    "TIMEBLOCK_DEFAULT_COLOR": "Color stored for new tasks (default: #0ea5e9).",
    "TIMEBLOCK_TIME_FORMAT": "12h or 24h clock in listings and alerts (default: 12h).",
    "TIMEBLOCK_WEEK_STARTS_ON": "0 = Sunday, 1 = Monday (default: 0).",
    "TIMEBLOCK_SNAP_MINUTES": "Grid that /move snaps new start times to (default: 5).",
    # Scheduler tuning
    "TIMEBLOCK_LEAD_MINUTES": "Warn this many minutes before a task starts or ends (default: 5).",
    "TIMEBLOCK_MIN_BREAK_MINUTES": "Gaps shorter than this trigger a short-break alert (default: 5).",
    "TIMEBLOCK_REFRESH_SECONDS": "Full timer rebuild interval (default: 60).",
    "TIMEBLOCK_LOOKAHEAD_DAYS": "How far ahead the next task is searched for (default: 7).",
    # TTS
    "TIMEBLOCK_SPEAKER_WAV": "Optional speaker WAV path for voice cloning.",
    "TIMEBLOCK_XTTS_SPEAKER_NAME": "XTTS built-in speaker name fallback (default: Ana Florence).",
    "TIMEBLOCK_XTTS_LANGUAGE": "XTTS language (default: en).",
    # Paths (gitignored)
    "TIMEBLOCK_DATA_DIR": "Local data directory (default: .local/timeblock).",
    "TIMEBLOCK_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
}
