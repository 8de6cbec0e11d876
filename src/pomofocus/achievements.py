"""Achievement evaluation triggers and queued unlock display."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import aiohttp

from pomofocus.core.scheduling import Cancellable, Scheduler, call_later

logger = logging.getLogger(__name__)

EVENT_TYPES = frozenset({"session_complete", "task_complete", "streak_update"})


@dataclass(frozen=True)
class Achievement:
    """A newly unlocked achievement as reported by the evaluator."""
    id: str
    code: str
    name: str
    description: str = ""
    icon: str = ""
    rarity: str = "common"
    points: int = 0
    category: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Achievement:
        return cls(
            id=str(data.get("id", data.get("code", ""))),
            code=str(data.get("code", "")),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            icon=str(data.get("icon", "")),
            rarity=str(data.get("rarity", "common")),
            points=int(data.get("points", 0)),
            category=str(data.get("category", "")),
        )


class AchievementEvaluator(Protocol):
    async def evaluate(self, event_type: str) -> list[Achievement]: ...


class HttpAchievementEvaluator:
    """Asks the achievements API which achievements an event unlocked.

    Any failure yields an empty list.
    """

    def __init__(self, api_url: str, timeout_seconds: float = 5.0):
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds

    async def evaluate(self, event_type: str) -> list[Achievement]:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.api_url, json={"type": event_type}) as response:
                    if response.status != 200:
                        logger.error(f"Achievement check failed: HTTP {response.status}")
                        return []
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Error checking achievements: {e}")
            return []

        unlocked = data.get("newlyUnlocked") if isinstance(data, dict) else None
        achievements = []
        for item in unlocked or []:
            try:
                achievements.append(Achievement.from_dict(item))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed achievement {item!r}: {e}")
        return achievements


class AchievementNotifier:
    """Queues unlocked achievements and shows them one at a time.

    Each unlock is visible for ``display_seconds``; the next one follows after
    ``gap_seconds``. Rendering is delegated to the ``on_show`` and ``on_hide``
    callbacks.

    Usage:
        notifier = AchievementNotifier(HttpAchievementEvaluator(url))
        notifier.on_show = lambda a: console.print(f"Unlocked: {a.name}")
        notifier.signal("session_complete")
    """

    def __init__(
        self,
        evaluator: AchievementEvaluator | None = None,
        display_seconds: float = 5.0,
        gap_seconds: float = 0.3,
        scheduler: Scheduler | None = None,
    ):
        self.evaluator = evaluator
        self.display_seconds = display_seconds
        self.gap_seconds = gap_seconds
        self.scheduler = scheduler

        self._pending: deque[Achievement] = deque()
        self._current: Achievement | None = None
        self._visible = False
        self._timer: Cancellable | None = None
        self._tasks: set[asyncio.Task] = set()

        self.on_show: Callable[[Achievement], None] | None = None
        self.on_hide: Callable[[Achievement], None] | None = None

    @property
    def current(self) -> Achievement | None:
        return self._current

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def pending(self) -> list[Achievement]:
        return list(self._pending)

    def signal(self, event_type: str) -> None:
        """Trigger evaluation for an event without waiting on the result."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown achievement event type: {event_type}")
        if self.evaluator is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, skipping achievement check for {event_type}")
            return

        task = loop.create_task(self.check(event_type))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def check(self, event_type: str) -> list[Achievement]:
        """Evaluate an event and queue whatever it unlocked."""
        if self.evaluator is None:
            return []
        try:
            unlocked = await self.evaluator.evaluate(event_type)
        except Exception as e:
            logger.error(f"Achievement evaluation failed: {e}")
            return []

        self.add_pending(unlocked)
        return unlocked

    async def wait_idle(self) -> None:
        """Wait for in-flight evaluations."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    def add_pending(self, achievements: list[Achievement]) -> None:
        if not achievements:
            return
        self._pending.extend(achievements)
        logger.info(f"{len(achievements)} achievement(s) unlocked")
        if self._current is None:
            self.show_next()

    def show_next(self) -> None:
        if not self._pending:
            self._current = None
            self._visible = False
            return

        self._current = self._pending.popleft()
        self._visible = True
        self._emit(self.on_show, self._current)
        self._timer = call_later(self.display_seconds, self.dismiss, self.scheduler)

    def dismiss(self) -> None:
        """Hide the current unlock and move on after a short gap."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._current is None:
            return

        self._visible = False
        self._emit(self.on_hide, self._current)
        self._timer = call_later(self.gap_seconds, self._after_gap, self.scheduler)
        if self._timer is None:
            self._after_gap()

    def clear_all(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending.clear()
        self._current = None
        self._visible = False

    def _after_gap(self) -> None:
        self._timer = None
        if self._pending:
            self.show_next()
        else:
            self._current = None

    def _emit(self, callback: Callable[[Achievement], None] | None, achievement: Achievement) -> None:
        if callback is None:
            return
        try:
            callback(achievement)
        except Exception as e:
            logger.error(f"Error in achievement display callback: {e}")
