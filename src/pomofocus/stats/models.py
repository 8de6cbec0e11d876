"""Per-day statistics record."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any


@dataclass(frozen=True)
class DailyStats:
    """Aggregate counters for one calendar day."""
    date: date
    pomodoros_completed: int = 0
    total_focus_time_minutes: int = 0
    tasks_completed: int = 0

    @property
    def has_activity(self) -> bool:
        return self.pomodoros_completed > 0 or self.tasks_completed > 0

    @classmethod
    def empty(cls, day: date) -> DailyStats:
        return cls(date=day)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyStats:
        """Create from a persisted dictionary."""
        return cls(
            date=date.fromisoformat(data["date"]),
            pomodoros_completed=max(0, int(data.get("pomodoros_completed", 0))),
            total_focus_time_minutes=max(0, int(data.get("total_focus_time_minutes", 0))),
            tasks_completed=max(0, int(data.get("tasks_completed", 0))),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "date": self.date.isoformat(),
            "pomodoros_completed": self.pomodoros_completed,
            "total_focus_time_minutes": self.total_focus_time_minutes,
            "tasks_completed": self.tasks_completed,
        }


@dataclass
class TodayProgress:
    """Progress toward today's goals, each in percent (0-100)."""
    pomodoro_progress: float = 0.0
    time_progress: float = 0.0
    task_progress: float = 0.0
