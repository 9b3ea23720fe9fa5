# src/timeblock/core/clock.py

"""
Wall-clock date arithmetic.

Everything here works on naive datetimes in the local zone of the running process.
There is no timezone engine: adding a day means "same wall-clock time tomorrow".
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)


def now() -> datetime:
    return datetime.now().replace(microsecond=0)


def start_of_day(d: datetime | date) -> datetime:
    if isinstance(d, datetime):
        return d.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime.combine(d, time.min)


def end_of_day(d: datetime | date) -> datetime:
    """Last representable instant of the day (inclusive end)."""
    return start_of_day(d) + DAY - timedelta(microseconds=1)


def add_minutes(d: datetime, n: int | float) -> datetime:
    return d + timedelta(minutes=n)


def add_days(d: datetime, n: int) -> datetime:
    return d + timedelta(days=n)


def date_key(d: datetime | date) -> str:
    """YYYY-MM-DD key of the calendar date (no time-of-day)."""
    if isinstance(d, datetime):
        d = d.date()
    return d.isoformat()


def from_date_key(key: str) -> datetime:
    return datetime.strptime(key.strip(), "%Y-%m-%d")


def weekday_index(d: datetime | date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday (Python's weekday() is 0=Monday)."""
    return (d.weekday() + 1) % 7


def at_time_of_day(day: datetime | date, reference: datetime) -> datetime:
    """`day` at the hour/minute of `reference` (seconds dropped)."""
    return start_of_day(day).replace(hour=reference.hour, minute=reference.minute)


def minutes_between(a: datetime, b: datetime) -> int:
    return round((b - a).total_seconds() / 60)


def is_same_day(a: datetime | date, b: datetime | date) -> bool:
    return date_key(a) == date_key(b)


def start_of_week(d: datetime | date, week_starts_on: int = 0) -> datetime:
    # week_starts_on: 0 Sunday, 1 Monday
    offset = (weekday_index(d) - week_starts_on + 7) % 7
    return start_of_day(d) - timedelta(days=offset)


def week_days(d: datetime | date, week_starts_on: int = 0) -> list[datetime]:
    first = start_of_week(d, week_starts_on)
    return [first + timedelta(days=i) for i in range(7)]


def snap_minutes(minutes: int | float, step: int = 5) -> int:
    step = max(1, int(step))
    return int(round(minutes / step)) * step


def snap_datetime(d: datetime, step: int = 5) -> datetime:
    """Round to the nearest `step` minutes from midnight of the same day."""
    midnight = start_of_day(d)
    minutes = (d - midnight).total_seconds() / 60
    return midnight + timedelta(minutes=snap_minutes(minutes, step))


def parse_time_on(key: str, hhmm: str) -> datetime:
    hh, mm = (int(p) for p in hhmm.strip().split(":", 1))
    return from_date_key(key).replace(hour=hh, minute=mm)


def parse_datetime(raw: str) -> datetime:
    """
    Accepts `YYYY-MM-DDTHH:MM[:SS]` or `YYYY-MM-DD HH:MM`.
    Raises ValueError on anything else.
    """
    value = datetime.fromisoformat(raw.strip())
    if value.tzinfo is not None:
        # Local wall clock only.
        value = value.astimezone().replace(tzinfo=None)
    return value


def format_12h(d: datetime) -> str:
    h = d.hour % 12 or 12
    ampm = "PM" if d.hour >= 12 else "AM"
    return f"{h}:{d.minute:02d} {ampm}"


def format_clock(d: datetime, time_format: str = "24h") -> str:
    if time_format == "12h":
        return format_12h(d)
    return f"{d.hour:02d}:{d.minute:02d}"


def format_mmss(seconds: float) -> str:
    total = max(0, int(seconds))
    return f"{total // 60:02d}:{total % 60:02d}"
