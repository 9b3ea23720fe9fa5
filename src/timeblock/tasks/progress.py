# src/timeblock/tasks/progress.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..core.clock import format_clock, format_mmss
from .task_models import Occurrence


@dataclass(slots=True, frozen=True)
class ProgressSnapshot:
    """Elapsed/remaining view of the active occurrence at one instant."""

    occurrence: Occurrence
    now: datetime
    total_seconds: float
    elapsed_seconds: float
    remaining_seconds: float

    @property
    def remaining_fraction(self) -> float:
        return self.remaining_seconds / self.total_seconds

    @property
    def percent_remaining(self) -> int:
        return round(self.remaining_fraction * 100)

    @classmethod
    def from_occurrence(cls, occ: Occurrence, now: datetime) -> ProgressSnapshot:
        total = max(1.0, (occ.end - occ.start).total_seconds())
        elapsed = min(max(0.0, (now - occ.start).total_seconds()), total)
        return cls(
            occurrence=occ,
            now=now,
            total_seconds=total,
            elapsed_seconds=elapsed,
            remaining_seconds=max(0.0, total - elapsed),
        )

    def describe(self, time_format: str = "24h") -> list[str]:
        occ = self.occurrence
        return [
            f"Active: {occ.task.title or 'Active task'}",
            f"  Ends at {format_clock(occ.end, time_format)}",
            f"  Remaining: {format_mmss(self.remaining_seconds)} ({self.percent_remaining}%)",
            f"  Elapsed: {format_mmss(self.elapsed_seconds)}",
        ]


def describe_progress(
    active: Occurrence | None,
    upcoming: Occurrence | None,
    now: datetime,
    *,
    time_format: str = "24h",
) -> str:
    lines: list[str] = []
    if active is None:
        lines.append("No active task.")
    else:
        lines.extend(ProgressSnapshot.from_occurrence(active, now).describe(time_format))

    if upcoming is None:
        lines.append("Next: -")
    else:
        lines.append(f"Next: {upcoming.task.title} at {format_clock(upcoming.start, time_format)}")
    return "\n".join(lines)
