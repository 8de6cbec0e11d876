"""Timer modes, states, session snapshot and completion events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pomofocus.core.settings import Settings


class TimerMode(str, Enum):
    """Which kind of session is on the clock."""

    FOCUS = "focus"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @property
    def is_break(self) -> bool:
        return self is not TimerMode.FOCUS


class TimerState(str, Enum):
    """Lifecycle of the current countdown."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"  # Transient: cleared when the completion is acknowledged


class EventKind(str, Enum):
    """Why the timer moved to the next mode."""

    COMPLETED = "completed"
    SKIPPED = "skipped"


@dataclass
class TimerSession:
    """Snapshot of the engine's state."""
    mode: TimerMode = TimerMode.FOCUS
    state: TimerState = TimerState.IDLE
    remaining_seconds: int = 25 * 60
    pomodoros_completed_in_cycle: int = 0
    selected_task_id: str | None = None
    last_completed_mode: TimerMode | None = None

    @property
    def is_running(self) -> bool:
        return self.state is TimerState.RUNNING


@dataclass(frozen=True)
class SessionEvent:
    """One-shot notice that the timer moved past a session.

    ``completed_mode`` is the mode that just ended, ``next_mode`` the one now
    loaded. ``settings`` is the snapshot that was in force for the ended mode.
    """
    sequence: int
    kind: EventKind
    completed_mode: TimerMode
    next_mode: TimerMode
    settings: Settings
    selected_task_id: str | None = None
    occurred_at: datetime = field(default_factory=datetime.now)

    @property
    def was_focus_session(self) -> bool:
        return self.completed_mode is TimerMode.FOCUS


def duration_for(mode: TimerMode, settings: Settings) -> int:
    """Length of a mode in seconds."""
    if mode is TimerMode.FOCUS:
        return settings.focus_time * 60
    elif mode is TimerMode.SHORT_BREAK:
        return settings.short_break_time * 60
    else:
        return settings.long_break_time * 60


def next_mode(mode: TimerMode, completed_in_cycle: int, long_break_after: int) -> tuple[TimerMode, int]:
    """Apply the Pomodoro cadence.

    Returns the next mode and the new cycle count. A finished focus session
    counts toward the cycle; every ``long_break_after``-th one earns a long
    break and starts a new cycle. Breaks always lead back to focus.
    """
    if mode is TimerMode.FOCUS:
        count = completed_in_cycle + 1
        if count % long_break_after == 0:
            return TimerMode.LONG_BREAK, 0
        return TimerMode.SHORT_BREAK, count
    return TimerMode.FOCUS, completed_in_cycle
