"""Deferred callbacks on the event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later``; an asyncio event loop qualifies."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable: ...


def call_later(
    delay: float, callback: Callable[[], Any], scheduler: Scheduler | None = None
) -> Cancellable | None:
    """Schedule a callback on the given scheduler or the running loop.

    Returns None when there is nothing to schedule on.
    """
    if scheduler is None:
        try:
            scheduler = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, deferred callback dropped")
            return None
    return scheduler.call_later(delay, callback)
