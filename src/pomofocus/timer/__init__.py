"""Session timer engine and completion handling."""

from pomofocus.timer.coordinator import CompletionCoordinator
from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.models import EventKind, SessionEvent, TimerMode, TimerSession, TimerState
from pomofocus.timer.runner import TimerRunner

__all__ = [
    "CompletionCoordinator",
    "EventKind",
    "SessionEvent",
    "TimerEngine",
    "TimerMode",
    "TimerRunner",
    "TimerSession",
    "TimerState",
]
