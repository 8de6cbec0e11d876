"""Pomodoro timer state machine."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable

from pomofocus.core.settings import Settings
from pomofocus.storage.persistence import TIMER_STATE_KEY, PersistenceAdapter
from pomofocus.timer.display import format_display_time, mode_label, progress_percent
from pomofocus.timer.models import (
    EventKind,
    SessionEvent,
    TimerMode,
    TimerSession,
    TimerState,
    duration_for,
    next_mode,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[SessionEvent], None]
CommandListener = Callable[[str], None]


class TimerEngine:
    """Countdown, mode transitions and completion detection.

    The engine does no scheduling of its own: something outside calls
    ``tick()`` once per elapsed second. When a countdown reaches zero the next
    mode is staged in the same step and a ``SessionEvent`` is sent to the
    listeners. The state stays COMPLETED until a consumer acknowledges that
    event.

    Settings are read through ``settings_provider`` whenever a mode's duration
    is loaded, so a change never resizes a countdown already in progress.

    Usage:
        engine = TimerEngine(lambda: settings_store.snapshot)
        engine.add_listener(lambda event: print(event.completed_mode))
        engine.start()
        engine.tick()  # once per second
    """

    def __init__(
        self,
        settings_provider: Callable[[], Settings],
        persistence: PersistenceAdapter | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._settings_provider = settings_provider
        self._persistence = persistence
        self._clock = clock

        self._settings = settings_provider()
        self._duration = duration_for(TimerMode.FOCUS, self._settings)
        self._session = TimerSession(remaining_seconds=self._duration)

        self._sequence = 0
        self._pending_event: SessionEvent | None = None
        self._listeners: list[EventListener] = []
        self._command_listeners: list[CommandListener] = []

    @property
    def session(self) -> TimerSession:
        """Get current session state (read-only copy)."""
        return replace(self._session)

    @property
    def mode(self) -> TimerMode:
        return self._session.mode

    @property
    def state(self) -> TimerState:
        return self._session.state

    @property
    def remaining_seconds(self) -> int:
        return self._session.remaining_seconds

    @property
    def duration(self) -> int:
        """Full length of the current mode in seconds, as loaded."""
        return self._duration

    @property
    def pending_event(self) -> SessionEvent | None:
        """The completion waiting for acknowledgment, if any."""
        return self._pending_event

    # Display surface
    @property
    def display_time(self) -> str:
        return format_display_time(self._session.remaining_seconds)

    @property
    def progress(self) -> float:
        return progress_percent(self._session.remaining_seconds, self._duration)

    @property
    def mode_label(self) -> str:
        return mode_label(self._session.mode)

    # Listeners
    def add_listener(self, listener: EventListener) -> None:
        """Receive a SessionEvent on every completion and skip."""
        self._listeners.append(listener)

    def add_command_listener(self, listener: CommandListener) -> None:
        """Receive the name of every user command (start, pause, reset, skip, set_mode)."""
        self._command_listeners.append(listener)

    # Commands
    def start(self) -> None:
        """Start or resume the countdown."""
        if self._session.state is TimerState.RUNNING:
            return

        if self._session.state is TimerState.COMPLETED:
            # Starting the next session implies the completion was seen
            self._pending_event = None

        self._session.state = TimerState.RUNNING
        logger.info(f"Timer started: {self._session.mode.value} ({self.display_time} left)")
        self._persist()
        self._notify_command("start")

    def pause(self) -> None:
        """Halt the countdown, keeping the remaining time exactly.

        Listeners hear the command even when nothing is running, so a
        pending auto-start is dropped.
        """
        if self._session.state is not TimerState.RUNNING:
            self._notify_command("pause")
            return

        self._session.state = TimerState.PAUSED
        logger.info(f"Timer paused at {self.display_time}")
        self._persist()
        self._notify_command("pause")

    def reset(self) -> None:
        """Reload the current mode's full duration and go idle."""
        self._pending_event = None
        self._load_mode(self._session.mode)
        self._session.state = TimerState.IDLE
        logger.info(f"Timer reset: {self._session.mode.value}")
        self._persist()
        self._notify_command("reset")

    def skip(self) -> SessionEvent:
        """Move to the next mode now without counting the session as finished."""
        self._pending_event = None
        finished = self._session.mode
        settings = self._settings

        # The cycle count only moves on a finished focus session
        mode, _ = next_mode(
            self._session.mode,
            self._session.pomodoros_completed_in_cycle,
            self._settings.long_break_after,
        )
        self._load_mode(mode)
        self._session.state = TimerState.IDLE

        event = self._make_event(EventKind.SKIPPED, finished, settings)
        logger.info(f"Skipped {finished.value}, now {self._session.mode.value}")
        self._persist()
        self._notify_command("skip")
        self._emit(event)
        return event

    def set_mode(self, mode: TimerMode) -> None:
        """Switch to a mode manually, cancelling any countdown."""
        self._pending_event = None
        self._load_mode(mode)
        self._session.state = TimerState.IDLE
        logger.info(f"Timer mode set: {mode.value}")
        self._persist()
        self._notify_command("set_mode")

    def select_task(self, task_id: str | None) -> None:
        self._session.selected_task_id = task_id
        self._persist()

    def tick(self) -> SessionEvent | None:
        """Advance the countdown by one second.

        Does nothing unless running. Returns the completion event when this
        tick finished the session.
        """
        if self._session.state is not TimerState.RUNNING:
            return None

        self._session.remaining_seconds = max(0, self._session.remaining_seconds - 1)
        if self._session.remaining_seconds > 0:
            return None

        finished = self._session.mode
        settings = self._settings

        self._advance()
        self._session.state = TimerState.COMPLETED
        self._session.last_completed_mode = finished

        event = self._make_event(EventKind.COMPLETED, finished, settings)
        self._pending_event = event
        logger.info(f"{mode_label(finished)} complete, next: {self.mode_label}")
        self._persist()
        self._emit(event)
        return event

    def acknowledge(self, event: SessionEvent) -> bool:
        """Clear the COMPLETED state for this event.

        Returns False if the event is stale or was already acknowledged.
        """
        if self._pending_event is None or self._pending_event.sequence != event.sequence:
            return False

        self._pending_event = None
        if self._session.state is TimerState.COMPLETED:
            self._session.state = TimerState.IDLE
        return True

    def refresh_duration(self) -> None:
        """Adopt the latest settings while idle. Running or paused countdowns are kept."""
        if self._session.state is not TimerState.IDLE:
            return
        self._load_mode(self._session.mode)

    # Persistence
    def restore(self) -> None:
        """Rehydrate mode, cycle count and task selection. The countdown starts over."""
        if self._persistence is None:
            return

        data = self._persistence.load(TIMER_STATE_KEY)
        if not data:
            return

        try:
            mode = TimerMode(data.get("mode", TimerMode.FOCUS.value))
            cycle = max(0, int(data.get("pomodoros_completed_in_cycle", 0)))
        except (TypeError, ValueError) as e:
            logger.error(f"Stored timer state is unreadable, using defaults: {e}")
            return

        self._session = TimerSession(
            mode=mode,
            pomodoros_completed_in_cycle=cycle,
            selected_task_id=data.get("selected_task_id"),
        )
        self._load_mode(mode)
        logger.debug(f"Timer restored: {mode.value}, {cycle} in cycle")

    def _persist(self) -> None:
        if self._persistence is None:
            return
        self._persistence.save(
            TIMER_STATE_KEY,
            {
                "mode": self._session.mode.value,
                "pomodoros_completed_in_cycle": self._session.pomodoros_completed_in_cycle,
                "selected_task_id": self._session.selected_task_id,
            },
        )

    # Internals
    def _load_mode(self, mode: TimerMode) -> None:
        self._settings = self._settings_provider()
        self._duration = duration_for(mode, self._settings)
        self._session.mode = mode
        self._session.remaining_seconds = self._duration

    def _advance(self) -> None:
        mode, cycle = next_mode(
            self._session.mode,
            self._session.pomodoros_completed_in_cycle,
            self._settings.long_break_after,
        )
        self._session.pomodoros_completed_in_cycle = cycle
        self._load_mode(mode)

    def _make_event(self, kind: EventKind, finished: TimerMode, settings: Settings) -> SessionEvent:
        self._sequence += 1
        return SessionEvent(
            sequence=self._sequence,
            kind=kind,
            completed_mode=finished,
            next_mode=self._session.mode,
            settings=settings,
            selected_task_id=self._session.selected_task_id,
            occurred_at=self._clock(),
        )

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in session listener: {e}")

    def _notify_command(self, command: str) -> None:
        for listener in list(self._command_listeners):
            try:
                listener(command)
            except Exception as e:
                logger.error(f"Error in command listener: {e}")
