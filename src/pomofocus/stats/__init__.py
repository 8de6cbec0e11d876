"""Usage statistics."""

from pomofocus.stats.models import DailyStats, TodayProgress
from pomofocus.stats.store import HISTORY_LIMIT, StatsStore

__all__ = ["DailyStats", "HISTORY_LIMIT", "StatsStore", "TodayProgress"]
