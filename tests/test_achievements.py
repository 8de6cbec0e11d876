"""Tests for achievement evaluation and the unlock display queue."""

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import FakeEvaluator, make_achievement
from pomofocus.achievements import AchievementNotifier, HttpAchievementEvaluator


@pytest.fixture
def shown():
    return []


@pytest.fixture
def achievement_notifier(scheduler, shown):
    notifier = AchievementNotifier(scheduler=scheduler)
    notifier.on_show = shown.append
    return notifier


class TestDisplayQueue:
    def test_first_unlock_shows_immediately(self, achievement_notifier, scheduler, shown):
        first, second = make_achievement("first_pomodoro"), make_achievement("streak_3")
        achievement_notifier.add_pending([first, second])

        assert shown == [first]
        assert achievement_notifier.current == first
        assert achievement_notifier.is_visible
        assert achievement_notifier.pending == [second]
        assert [h.delay for h in scheduler.active] == [5.0]

    def test_dismiss_then_gap_then_next(self, achievement_notifier, scheduler, shown):
        first, second = make_achievement("a"), make_achievement("b")
        achievement_notifier.add_pending([first, second])

        scheduler.run_pending()  # display time elapses
        assert not achievement_notifier.is_visible
        assert [h.delay for h in scheduler.active] == [0.3]

        scheduler.run_pending()  # gap elapses
        assert shown == [first, second]
        assert achievement_notifier.current == second

        scheduler.run_pending()
        scheduler.run_pending()
        assert achievement_notifier.current is None
        assert not achievement_notifier.is_visible

    def test_manual_dismiss_cancels_display_timer(self, achievement_notifier, scheduler):
        achievement_notifier.add_pending([make_achievement("a")])
        display_timer = scheduler.handles[0]

        achievement_notifier.dismiss()

        assert display_timer.cancelled
        assert not achievement_notifier.is_visible

    def test_new_unlocks_wait_behind_current(self, achievement_notifier, shown):
        first, second = make_achievement("a"), make_achievement("b")
        achievement_notifier.add_pending([first])
        achievement_notifier.add_pending([second])
        assert shown == [first]
        assert achievement_notifier.pending == [second]

    def test_clear_all(self, achievement_notifier, scheduler):
        achievement_notifier.add_pending([make_achievement("a"), make_achievement("b")])
        achievement_notifier.clear_all()
        assert achievement_notifier.current is None
        assert achievement_notifier.pending == []
        assert scheduler.active == []

    def test_hide_callback(self, achievement_notifier, scheduler):
        hidden = []
        achievement_notifier.on_hide = hidden.append
        unlock = make_achievement("a")
        achievement_notifier.add_pending([unlock])
        scheduler.run_pending()
        assert hidden == [unlock]


class TestSignal:
    def test_unknown_event_type_rejected(self, achievement_notifier):
        with pytest.raises(ValueError):
            achievement_notifier.signal("pomodoro_eaten")

    def test_signal_without_loop_is_dropped(self, scheduler):
        evaluator = FakeEvaluator([make_achievement("a")])
        notifier = AchievementNotifier(evaluator, scheduler=scheduler)
        notifier.signal("session_complete")
        assert evaluator.calls == []

    @pytest.mark.asyncio
    async def test_signal_evaluates_in_background(self, scheduler, shown):
        unlock = make_achievement("first_pomodoro")
        evaluator = FakeEvaluator([unlock])
        notifier = AchievementNotifier(evaluator, scheduler=scheduler)
        notifier.on_show = shown.append

        notifier.signal("session_complete")
        await notifier.wait_idle()

        assert evaluator.calls == ["session_complete"]
        assert shown == [unlock]

    @pytest.mark.asyncio
    async def test_evaluator_failure_yields_nothing(self, scheduler):
        notifier = AchievementNotifier(FakeEvaluator(error=RuntimeError("down")), scheduler=scheduler)
        assert await notifier.check("task_complete") == []
        assert notifier.current is None


class TestHttpEvaluator:
    @pytest.mark.asyncio
    async def test_posts_event_type_and_reads_unlocks(self):
        received = []

        async def handler(request):
            received.append(await request.json())
            return web.json_response({
                "newlyUnlocked": [
                    {"id": "a1", "code": "first_pomodoro", "name": "First Pomodoro", "points": 10},
                    "not an achievement",
                ]
            })

        app = web.Application()
        app.router.add_post("/api/achievements", handler)
        async with TestServer(app) as server:
            evaluator = HttpAchievementEvaluator(str(server.make_url("/api/achievements")))
            unlocked = await evaluator.evaluate("session_complete")

        assert received == [{"type": "session_complete"}]
        assert [a.code for a in unlocked] == ["first_pomodoro"]
        assert unlocked[0].points == 10

    @pytest.mark.asyncio
    async def test_http_error_yields_nothing(self):
        async def handler(request):
            return web.json_response({"error": "nope"}, status=500)

        app = web.Application()
        app.router.add_post("/api/achievements", handler)
        async with TestServer(app) as server:
            evaluator = HttpAchievementEvaluator(str(server.make_url("/api/achievements")))
            assert await evaluator.evaluate("task_complete") == []

    @pytest.mark.asyncio
    async def test_unreachable_server_yields_nothing(self):
        evaluator = HttpAchievementEvaluator("http://127.0.0.1:1/api/achievements", timeout_seconds=1)
        assert await evaluator.evaluate("streak_update") == []
