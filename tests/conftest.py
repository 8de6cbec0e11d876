"""Shared fixtures and test doubles."""

from __future__ import annotations

from datetime import date
from typing import Any, Callable

import pytest

from pomofocus.achievements import Achievement
from pomofocus.core.settings import Settings, SettingsStore
from pomofocus.stats.store import StatsStore
from pomofocus.storage.persistence import MemoryPersistence
from pomofocus.tasks.store import TaskStore
from pomofocus.timer.coordinator import CompletionCoordinator
from pomofocus.timer.engine import TimerEngine


class FakeHandle:
    def __init__(self, delay: float, callback: Callable[[], Any]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records deferred callbacks; tests fire them explicitly."""

    def __init__(self):
        self.handles: list[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def active(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]

    def run_pending(self) -> int:
        fired = 0
        for handle in list(self.handles):
            if not handle.cancelled:
                handle.cancelled = True
                handle.callback()
                fired += 1
        return fired


class FakeNotifier:
    def __init__(self, permitted: bool = True):
        self.permitted = permitted
        self.permission_requests = 0
        self.shown: list[tuple[str, str]] = []

    def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.permitted

    def show(self, title: str, body: str) -> None:
        self.shown.append((title, body))


class FakeSound:
    def __init__(self):
        self.played: list[str] = []

    def play(self, sound_id: str) -> None:
        self.played.append(sound_id)


class FakeEvaluator:
    def __init__(self, unlocks=None, error=None):
        self.unlocks = unlocks or []
        self.error = error
        self.calls: list[str] = []

    async def evaluate(self, event_type: str) -> list[Achievement]:
        self.calls.append(event_type)
        if self.error:
            raise self.error
        return list(self.unlocks)


def make_achievement(code: str) -> Achievement:
    return Achievement(id=code, code=code, name=code.replace("_", " ").title(), points=10)


class FakeClock:
    """Settable calendar day."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


def run_to_completion(engine: TimerEngine):
    """Start the engine and tick until the countdown finishes."""
    engine.start()
    event = None
    while event is None:
        event = engine.tick()
    return event


@pytest.fixture
def persistence() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture
def settings_store(persistence) -> SettingsStore:
    store = SettingsStore(persistence)
    # Short durations keep completion loops fast
    store.update(focus_time=1, short_break_time=1, long_break_time=2)
    return store


@pytest.fixture
def engine(settings_store, persistence) -> TimerEngine:
    engine = TimerEngine(lambda: settings_store.snapshot, persistence)
    settings_store.add_listener(lambda settings, changed: engine.refresh_duration())
    return engine


@pytest.fixture
def task_store(persistence) -> TaskStore:
    return TaskStore(persistence)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(date(2024, 3, 14))


@pytest.fixture
def stats_store(persistence, clock) -> StatsStore:
    return StatsStore(persistence, clock=clock)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def sound() -> FakeSound:
    return FakeSound()


@pytest.fixture
def coordinator(engine, task_store, stats_store, notifier, sound, scheduler) -> CompletionCoordinator:
    return CompletionCoordinator(
        engine,
        task_store,
        stats_store,
        notifier=notifier,
        sound=sound,
        scheduler=scheduler,
    )


@pytest.fixture
def default_settings() -> Settings:
    return Settings()
