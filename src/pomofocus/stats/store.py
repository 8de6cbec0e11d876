"""Daily statistics with a rolling history and weekly, monthly and streak views."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any, Callable

from pomofocus.stats.models import DailyStats, TodayProgress
from pomofocus.storage.persistence import HISTORY_KEY, TODAY_STATS_KEY, PersistenceAdapter

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 30


def _percent(value: float, goal: float) -> float:
    if goal <= 0:
        return 0.0
    return min(100.0, max(0.0, (value / goal) * 100))


class StatsStore:
    """Holds today's counters hot and earlier days in a capped history.

    Day rollover is manual: ``add_day_to_history`` must be called by whoever
    notices that the calendar day changed. Dates are local calendar days.

    Usage:
        stats = StatsStore(persistence)
        stats.load()
        stats.increment_pomodoro()
        stats.add_focus_time(25)
        print(stats.streak())
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        clock: Callable[[], date] = date.today,
    ):
        self._persistence = persistence
        self._clock = clock
        self._today = DailyStats.empty(clock())
        self._history: list[DailyStats] = []

    @property
    def today(self) -> DailyStats:
        return self._today

    @property
    def history(self) -> list[DailyStats]:
        """Archived days, newest first."""
        return list(self._history)

    def load(self) -> None:
        """Load today's record and history, falling back to empty records."""
        today_data = self._persistence.load(TODAY_STATS_KEY)
        try:
            self._today = DailyStats.from_dict(today_data) if today_data else DailyStats.empty(self._clock())
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Stored stats for today are unreadable, starting fresh: {e}")
            self._today = DailyStats.empty(self._clock())

        history: list[DailyStats] = []
        for item in self._persistence.load(HISTORY_KEY, []) or []:
            try:
                history.append(DailyStats.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping unreadable history entry {item!r}: {e}")
        self._history = history[:HISTORY_LIMIT]

    # Counters
    def increment_pomodoro(self) -> DailyStats:
        return self._update_today(pomodoros_completed=self._today.pomodoros_completed + 1)

    def add_focus_time(self, minutes: int) -> DailyStats:
        if minutes < 0:
            raise ValueError(f"Focus time cannot be negative: {minutes}")
        return self._update_today(
            total_focus_time_minutes=self._today.total_focus_time_minutes + minutes
        )

    def increment_task_completion(self) -> DailyStats:
        return self._update_today(tasks_completed=self._today.tasks_completed + 1)

    def add_day_to_history(self) -> bool:
        """Archive today and start a fresh record.

        Only days with activity are archived. Returns True if a rollover happened.
        """
        if not self._today.has_activity:
            return False

        self._history = [self._today, *self._history][:HISTORY_LIMIT]
        self._persistence.save(HISTORY_KEY, [day.to_dict() for day in self._history])
        logger.info(
            f"Archived {self._today.date.isoformat()}: "
            f"{self._today.pomodoros_completed} pomodoros, {self._today.tasks_completed} tasks"
        )

        self._today = DailyStats.empty(self._clock())
        self._persistence.save(TODAY_STATS_KEY, self._today.to_dict())
        return True

    def reset_today(self) -> None:
        """Start an empty record for the clock's current day, discarding today's."""
        self._today = DailyStats.empty(self._clock())
        self._persistence.save(TODAY_STATS_KEY, self._today.to_dict())

    # Queries
    def all_days(self) -> list[DailyStats]:
        return [self._today, *self._history]

    def get_stats_for_date(self, day: date) -> DailyStats | None:
        for stats in self.all_days():
            if stats.date == day:
                return stats
        return None

    def weekly_stats(self) -> list[DailyStats]:
        """Records from Monday of the current week through today."""
        today = self._clock()
        week_start = today - timedelta(days=today.weekday())
        return [s for s in self.all_days() if week_start <= s.date <= today]

    def monthly_stats(self) -> list[DailyStats]:
        """Records from the 1st of the current month through today."""
        today = self._clock()
        month_start = today.replace(day=1)
        return [s for s in self.all_days() if month_start <= s.date <= today]

    def weekly_pomodoros(self) -> int:
        return sum(s.pomodoros_completed for s in self.weekly_stats())

    def weekly_focus_time(self) -> int:
        return sum(s.total_focus_time_minutes for s in self.weekly_stats())

    def monthly_pomodoros(self) -> int:
        return sum(s.pomodoros_completed for s in self.monthly_stats())

    def monthly_focus_time(self) -> int:
        return sum(s.total_focus_time_minutes for s in self.monthly_stats())

    def streak(self) -> int:
        """Count of consecutive days with at least one pomodoro.

        Walks backward from today's record one calendar day at a time. A day
        recorded with zero pomodoros is passed over; a day with no record at
        all ends the streak.
        """
        by_date = {s.date: s for s in self.all_days()}
        oldest = min(by_date)
        cursor = self._today.date
        streak = 0

        while cursor >= oldest:
            stats = by_date.get(cursor)
            if stats is None:
                break
            if stats.pomodoros_completed > 0:
                streak += 1
            cursor -= timedelta(days=1)

        return streak

    def best_day(self) -> DailyStats:
        best = self._today
        for stats in self._history:
            if stats.pomodoros_completed > best.pomodoros_completed:
                best = stats
        return best

    def average_focus_time(self) -> int:
        """Average minutes per pomodoro today, rounded."""
        if self._today.pomodoros_completed == 0:
            return 0
        return round(self._today.total_focus_time_minutes / self._today.pomodoros_completed)

    def today_progress(
        self, pomodoro_goal: int = 8, time_goal: int = 200, task_goal: int = 5
    ) -> TodayProgress:
        return TodayProgress(
            pomodoro_progress=_percent(self._today.pomodoros_completed, pomodoro_goal),
            time_progress=_percent(self._today.total_focus_time_minutes, time_goal),
            task_progress=_percent(self._today.tasks_completed, task_goal),
        )

    def estimated_finish_time(
        self, remaining_pomodoros: int, now: datetime | None = None
    ) -> datetime | None:
        """When the remaining pomodoros would be done at today's average pace.

        Returns None when nothing remains.
        """
        if remaining_pomodoros <= 0:
            return None
        now = now or datetime.now()
        return now + timedelta(minutes=remaining_pomodoros * self.average_focus_time())

    def export(self) -> dict[str, Any]:
        """JSON-ready dump of all statistics."""
        return {
            "today": self._today.to_dict(),
            "history": [day.to_dict() for day in self._history],
            "exported_at": datetime.now().isoformat(),
        }

    def _update_today(self, **changes: int) -> DailyStats:
        self._today = replace(self._today, **changes)
        self._persistence.save(TODAY_STATS_KEY, self._today.to_dict())
        return self._today
