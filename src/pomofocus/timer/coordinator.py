"""Side effects of a finished session: sound, notification, statistics, auto-start."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pomofocus.core.scheduling import Cancellable, Scheduler, call_later
from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.models import EventKind, SessionEvent, TimerMode

if TYPE_CHECKING:
    from pomofocus.achievements import AchievementNotifier
    from pomofocus.notify import Notifier, SoundPlayer
    from pomofocus.stats.store import StatsStore
    from pomofocus.tasks.store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_AUTO_START_DELAY = 2.0

FOCUS_ENDED = ("Time for a break!", "Great job! Take a well-deserved break to recharge.")
BREAK_ENDED = ("Time to focus!", "Break is over! Let's get back to focus mode.")


class CompletionCoordinator:
    """Consumes completion events from the engine exactly once.

    For each completed session, in order: play the alarm, show a desktop
    notification, credit statistics and the selected task (focus sessions
    only), schedule auto-start of the next session, and signal achievement
    evaluation. Every step is isolated, so one failing does not stop the rest.
    Skipped sessions get none of this.

    Usage:
        coordinator = CompletionCoordinator(engine, tasks, stats, notifier=..., sound=...)
        # the coordinator subscribes itself; just tick the engine
    """

    def __init__(
        self,
        engine: TimerEngine,
        tasks: TaskStore,
        stats: StatsStore,
        notifier: Notifier | None = None,
        sound: SoundPlayer | None = None,
        achievements: AchievementNotifier | None = None,
        scheduler: Scheduler | None = None,
        auto_start_delay: float = DEFAULT_AUTO_START_DELAY,
    ):
        self.engine = engine
        self.tasks = tasks
        self.stats = stats
        self.notifier = notifier
        self.sound = sound
        self.achievements = achievements
        self.scheduler = scheduler
        self.auto_start_delay = auto_start_delay

        self._handled_sequence: int | None = None
        self._auto_start: Cancellable | None = None
        self._notification_permitted: bool | None = None

        engine.add_listener(self.handle)
        engine.add_command_listener(self._on_command)

    @property
    def auto_start_pending(self) -> bool:
        return self._auto_start is not None

    def handle(self, event: SessionEvent) -> bool:
        """Process an event. Returns True if side effects ran."""
        if event.kind is EventKind.SKIPPED:
            logger.debug(f"Session skipped: {event.completed_mode.value}")
            return False

        if self._handled_sequence is not None and event.sequence <= self._handled_sequence:
            logger.debug(f"Completion #{event.sequence} already handled")
            return False
        self._handled_sequence = event.sequence

        settings = event.settings
        was_focus_session = event.completed_mode is TimerMode.FOCUS

        if settings.sound_enabled:
            self._play_sound(settings.alarm_sound)

        if settings.notification_enabled:
            self._show_notification(was_focus_session)

        if was_focus_session:
            self._credit_focus_session(event)

        self._schedule_auto_start(event)

        self._signal_achievements()

        self.engine.acknowledge(event)
        return True

    def cancel_auto_start(self) -> None:
        """Drop a pending auto-start, if any."""
        if self._auto_start is not None:
            self._auto_start.cancel()
            self._auto_start = None
            logger.debug("Pending auto-start cancelled")

    def _on_command(self, command: str) -> None:
        # Any manual intervention overrides a pending auto-start
        self.cancel_auto_start()

    def _play_sound(self, sound_id: str) -> None:
        if self.sound is None:
            return
        try:
            self.sound.play(sound_id)
        except Exception as e:
            logger.warning(f"Sound playback failed: {e}")

    def _show_notification(self, was_focus_session: bool) -> None:
        if self.notifier is None:
            return
        try:
            if self._notification_permitted is None:
                self._notification_permitted = self.notifier.request_permission()
            if not self._notification_permitted:
                return
            title, body = FOCUS_ENDED if was_focus_session else BREAK_ENDED
            self.notifier.show(title, body)
        except Exception as e:
            logger.warning(f"Notification failed: {e}")

    def _credit_focus_session(self, event: SessionEvent) -> None:
        try:
            self.stats.increment_pomodoro()
            self.stats.add_focus_time(event.settings.focus_time)
        except Exception as e:
            logger.error(f"Failed to update statistics: {e}")

        if event.selected_task_id is None:
            return
        try:
            self.tasks.increment_pomodoro(event.selected_task_id)
        except Exception as e:
            logger.error(f"Failed to credit task {event.selected_task_id}: {e}")

    def _schedule_auto_start(self, event: SessionEvent) -> None:
        settings = event.settings
        if event.next_mode.is_break:
            enabled = settings.auto_start_break
        else:
            enabled = settings.auto_start_next_session
        if not enabled:
            return

        try:
            self.cancel_auto_start()
            self._auto_start = call_later(self.auto_start_delay, self._fire_auto_start, self.scheduler)
            if self._auto_start is not None:
                logger.info(f"Auto-starting {event.next_mode.value} in {self.auto_start_delay:g}s")
        except Exception as e:
            logger.error(f"Failed to schedule auto-start: {e}")

    def _fire_auto_start(self) -> None:
        self._auto_start = None
        self.engine.start()

    def _signal_achievements(self) -> None:
        if self.achievements is None:
            return
        try:
            self.achievements.signal("session_complete")
        except Exception as e:
            logger.error(f"Failed to signal achievements: {e}")
