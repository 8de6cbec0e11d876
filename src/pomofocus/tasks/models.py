"""Task model and validation rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

TITLE_MAX_LENGTH = 100
MIN_ESTIMATE = 1
MAX_ESTIMATE = 10
DEFAULT_COLOR = "#3B82F6"


class TaskValidationError(ValueError):
    """A task title or estimate is out of range."""


class TaskNotFoundError(KeyError):
    """No task with the given id exists."""

    def __init__(self, task_id: str):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task not found: {self.task_id}"


def validate_title(title: str) -> str:
    """Return the trimmed title or raise TaskValidationError."""
    if not isinstance(title, str):
        raise TaskValidationError("Task title must be a string")
    trimmed = title.strip()
    if not trimmed or len(trimmed) > TITLE_MAX_LENGTH:
        raise TaskValidationError(
            f"Task title is required and must be at most {TITLE_MAX_LENGTH} characters"
        )
    return trimmed


def validate_estimate(estimated_pomodoros: int) -> int:
    if (
        isinstance(estimated_pomodoros, bool)
        or not isinstance(estimated_pomodoros, int)
        or not MIN_ESTIMATE <= estimated_pomodoros <= MAX_ESTIMATE
    ):
        raise TaskValidationError(
            f"Estimated pomodoros must be between {MIN_ESTIMATE} and {MAX_ESTIMATE}"
        )
    return estimated_pomodoros


@dataclass(frozen=True)
class Task:
    """A unit of work with Pomodoro progress.

    ``completed_pomodoros`` only ever grows. It may exceed
    ``estimated_pomodoros``; the overshoot is left visible to the user.
    """
    id: str
    title: str
    estimated_pomodoros: int = 1
    completed_pomodoros: int = 0
    is_completed: bool = False
    created_at: datetime | None = None
    completed_at: datetime | None = None
    color: str = DEFAULT_COLOR

    @property
    def progress_percent(self) -> float:
        """Progress toward the estimate (0-100)."""
        if self.estimated_pomodoros <= 0:
            return 0.0
        return min(100.0, (self.completed_pomodoros / self.estimated_pomodoros) * 100)

    @property
    def remaining_pomodoros(self) -> int:
        return max(0, self.estimated_pomodoros - self.completed_pomodoros)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        """Create from a persisted dictionary, re-validating title and estimate."""
        return cls(
            id=str(data["id"]),
            title=validate_title(data.get("title", "")),
            estimated_pomodoros=validate_estimate(data.get("estimated_pomodoros", 1)),
            completed_pomodoros=max(0, int(data.get("completed_pomodoros", 0))),
            is_completed=bool(data.get("is_completed", False)),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else None,
            completed_at=datetime.fromisoformat(data["completed_at"]) if data.get("completed_at") else None,
            color=data.get("color") or DEFAULT_COLOR,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "id": self.id,
            "title": self.title,
            "estimated_pomodoros": self.estimated_pomodoros,
            "completed_pomodoros": self.completed_pomodoros,
            "is_completed": self.is_completed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "color": self.color,
        }
