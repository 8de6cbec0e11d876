"""One-second cadence that drives the timer engine."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.models import TimerSession

logger = logging.getLogger(__name__)


class TimerRunner:
    """Calls ``engine.tick()`` every second on the event loop.

    The loop keeps running while the engine is idle or paused; ticks are
    no-ops then.
    """

    def __init__(self, engine: TimerEngine, interval: float = 1.0):
        self.engine = engine
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._running = False

        self.on_tick: Callable[[TimerSession], None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the tick loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._tick_loop())
        logger.debug(f"Timer runner started (every {self.interval}s)")

    async def stop(self) -> None:
        """Stop the tick loop."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("Timer runner stopped")

    async def _tick_loop(self) -> None:
        """Main timer tick loop."""
        while self._running:
            await asyncio.sleep(self.interval)

            try:
                self.engine.tick()
            except Exception as e:
                logger.error(f"Error in timer tick: {e}")

            if self.on_tick:
                try:
                    self.on_tick(self.engine.session)
                except Exception as e:
                    logger.error(f"Error in on_tick callback: {e}")
