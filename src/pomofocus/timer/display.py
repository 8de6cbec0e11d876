"""Display values derived from the timer session."""

from __future__ import annotations

from pomofocus.timer.models import TimerMode

MODE_LABELS = {
    TimerMode.FOCUS: "Focus",
    TimerMode.SHORT_BREAK: "Short Break",
    TimerMode.LONG_BREAK: "Long Break",
}


def format_display_time(seconds: int) -> str:
    """Format seconds as MM:SS."""
    minutes, seconds = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{seconds:02d}"


def progress_percent(remaining_seconds: int, duration_seconds: int) -> float:
    """Elapsed share of the session (0-100)."""
    if duration_seconds <= 0:
        return 0.0
    elapsed = duration_seconds - remaining_seconds
    return min(100.0, max(0.0, (elapsed / duration_seconds) * 100))


def mode_label(mode: TimerMode) -> str:
    return MODE_LABELS.get(mode, "Focus")
