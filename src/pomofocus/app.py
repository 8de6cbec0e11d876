"""Application wiring: stores, timer engine, coordinator and runner."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable

from pomofocus.achievements import AchievementNotifier, HttpAchievementEvaluator
from pomofocus.core.config import Config
from pomofocus.core.scheduling import Scheduler
from pomofocus.core.settings import Settings, SettingsStore
from pomofocus.notify import DesktopNotifier, Notifier, SoundPlayer, SystemSoundPlayer
from pomofocus.stats.store import StatsStore
from pomofocus.storage.database import Database
from pomofocus.storage.persistence import (
    JsonFilePersistence,
    PersistenceAdapter,
    SqlitePersistence,
)
from pomofocus.tasks.store import TaskStore
from pomofocus.timer.coordinator import CompletionCoordinator
from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.runner import TimerRunner

logger = logging.getLogger(__name__)


class PomofocusApp:
    """Owns every component and the operations that span several stores.

    Usage:
        app = PomofocusApp(JsonFilePersistence(path))
        app.load()
        await app.start()   # begins ticking
        app.engine.start()
        ...
        await app.stop()
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        notifier: Notifier | None = None,
        sound: SoundPlayer | None = None,
        achievements: AchievementNotifier | None = None,
        scheduler: Scheduler | None = None,
        auto_start_delay: float = 2.0,
        today: Callable[[], date] = date.today,
    ):
        self.persistence = persistence
        self.achievements = achievements
        self._today = today

        self.settings = SettingsStore(persistence)
        self.tasks = TaskStore(persistence)
        self.stats = StatsStore(persistence, clock=today)
        self.engine = TimerEngine(lambda: self.settings.snapshot, persistence)
        self.coordinator = CompletionCoordinator(
            self.engine,
            self.tasks,
            self.stats,
            notifier=notifier,
            sound=sound,
            achievements=achievements,
            scheduler=scheduler,
            auto_start_delay=auto_start_delay,
        )
        self.runner = TimerRunner(self.engine)

        self.settings.add_listener(self._on_settings_changed)

    def load(self, roll_over: bool = True) -> None:
        """Load persisted state once at startup.

        A record left over from an earlier day is archived first, so every
        entry point counts new work toward today.
        """
        self.settings.load()
        self.tasks.load()
        self.stats.load()
        if roll_over and self.roll_over_day():
            logger.info(f"Archived stats for {self.stats.history[0].date.isoformat()}")
        self.engine.refresh_duration()
        self.engine.restore()

        selected = self.engine.session.selected_task_id
        if selected is not None:
            try:
                self.tasks.select(selected)
            except KeyError:
                logger.info(f"Selected task {selected} no longer exists, clearing selection")
                self.engine.select_task(None)

        logger.info(
            f"Loaded {len(self.tasks.tasks)} tasks, "
            f"{self.stats.today.pomodoros_completed} pomodoros today"
        )

    async def start(self) -> None:
        await self.runner.start()

    async def stop(self) -> None:
        self.coordinator.cancel_auto_start()
        await self.runner.stop()
        if self.achievements is not None:
            self.achievements.clear_all()

    # Operations spanning stores
    def select_task(self, task_id: str | None) -> None:
        self.tasks.select(task_id)
        self.engine.select_task(task_id)

    def remove_task(self, task_id: str) -> None:
        self.tasks.remove(task_id)
        if self.engine.session.selected_task_id == task_id:
            self.engine.select_task(None)

    def toggle_task(self, task_id: str) -> bool:
        """Flip completion; count it in today's stats only when newly completed."""
        completed = self.tasks.toggle_completion(task_id)
        if completed:
            self.stats.increment_task_completion()
            self._signal_achievements("task_complete")
        return completed

    def roll_over_day(self) -> bool:
        """Archive yesterday's stats once the calendar day has changed.

        Returns True if a day was archived.
        """
        if self.stats.today.date >= self._today():
            return False

        archived = self.stats.add_day_to_history()
        if not archived:
            self.stats.reset_today()
        else:
            self._signal_achievements("streak_update")
        return archived

    def get_status(self) -> dict[str, Any]:
        session = self.engine.session
        selected = self.tasks.selected_task
        return {
            "mode": session.mode.value,
            "mode_label": self.engine.mode_label,
            "state": session.state.value,
            "time_remaining": self.engine.display_time,
            "progress": round(self.engine.progress, 1),
            "pomodoros_in_cycle": session.pomodoros_completed_in_cycle,
            "selected_task": selected.title if selected else None,
            "pomodoros_today": self.stats.today.pomodoros_completed,
            "focus_minutes_today": self.stats.today.total_focus_time_minutes,
            "auto_start_pending": self.coordinator.auto_start_pending,
        }

    def _on_settings_changed(self, settings: Settings, changed: frozenset[str]) -> None:
        # An idle timer adopts the new snapshot; a live countdown keeps its own
        self.engine.refresh_duration()

    def _signal_achievements(self, event_type: str) -> None:
        if self.achievements is None:
            return
        try:
            self.achievements.signal(event_type)
        except Exception as e:
            logger.error(f"Failed to signal achievements: {e}")


async def open_persistence(config: Config) -> PersistenceAdapter:
    """Build the persistence adapter selected in the configuration."""
    if config.storage.backend == "sqlite":
        persistence = SqlitePersistence(Database(config.db_path))
        await persistence.open()
        return persistence
    return JsonFilePersistence(config.state_file)


async def close_persistence(persistence: PersistenceAdapter) -> None:
    if isinstance(persistence, SqlitePersistence):
        await persistence.close()


async def create_app(config: Config, desktop: bool = True, roll_over: bool = True) -> PomofocusApp:
    """Build and load an application from configuration.

    With ``desktop=False`` no notifications or sounds are dispatched. With
    ``roll_over=False`` a stale day is left for the caller to archive.
    """
    persistence = await open_persistence(config)

    achievements = None
    if config.achievements.enabled:
        achievements = AchievementNotifier(
            HttpAchievementEvaluator(
                config.achievements.api_url,
                timeout_seconds=config.achievements.timeout_seconds,
            ),
            display_seconds=config.achievements.display_seconds,
            gap_seconds=config.achievements.gap_seconds,
        )

    app = PomofocusApp(
        persistence,
        notifier=DesktopNotifier() if desktop else None,
        sound=SystemSoundPlayer(config.data_dir / "sounds") if desktop else None,
        achievements=achievements,
        auto_start_delay=config.timer.auto_start_delay_seconds,
    )
    app.load(roll_over=roll_over)
    return app
