"""Tests for the timer state machine and its display values."""

import pytest

from conftest import run_to_completion
from pomofocus.storage.persistence import TIMER_STATE_KEY, MemoryPersistence
from pomofocus.timer.display import format_display_time, mode_label, progress_percent
from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.models import EventKind, TimerMode, TimerState, next_mode


def advance(engine: TimerEngine, seconds: int) -> None:
    for _ in range(seconds):
        engine.tick()


# ---- Pure helpers ----

class TestNextMode:
    def test_focus_leads_to_short_break(self):
        assert next_mode(TimerMode.FOCUS, 0, 4) == (TimerMode.SHORT_BREAK, 1)

    def test_every_nth_focus_earns_long_break(self):
        assert next_mode(TimerMode.FOCUS, 3, 4) == (TimerMode.LONG_BREAK, 0)

    def test_long_break_after_one(self):
        assert next_mode(TimerMode.FOCUS, 0, 1) == (TimerMode.LONG_BREAK, 0)

    @pytest.mark.parametrize("mode", [TimerMode.SHORT_BREAK, TimerMode.LONG_BREAK])
    def test_breaks_lead_to_focus(self, mode):
        assert next_mode(mode, 2, 4) == (TimerMode.FOCUS, 2)


class TestDisplay:
    def test_format_display_time(self):
        assert format_display_time(25 * 60) == "25:00"
        assert format_display_time(61) == "01:01"
        assert format_display_time(0) == "00:00"

    def test_progress_is_elapsed_share(self):
        assert progress_percent(45, 60) == 25.0
        assert progress_percent(60, 60) == 0.0
        assert progress_percent(0, 60) == 100.0

    def test_progress_clamped(self):
        assert progress_percent(90, 60) == 0.0
        assert progress_percent(-5, 60) == 100.0
        assert progress_percent(0, 0) == 0.0

    def test_mode_labels(self):
        assert mode_label(TimerMode.FOCUS) == "Focus"
        assert mode_label(TimerMode.SHORT_BREAK) == "Short Break"
        assert mode_label(TimerMode.LONG_BREAK) == "Long Break"


# ---- Countdown ----

class TestCountdown:
    def test_initial_state(self, engine):
        assert engine.mode is TimerMode.FOCUS
        assert engine.state is TimerState.IDLE
        assert engine.remaining_seconds == 60
        assert engine.display_time == "01:00"
        assert engine.progress == 0.0

    def test_n_ticks_reduce_remaining_by_n(self, engine):
        engine.start()
        advance(engine, 10)
        assert engine.remaining_seconds == 50
        assert engine.state is TimerState.RUNNING

    def test_tick_is_noop_unless_running(self, engine):
        advance(engine, 5)
        assert engine.remaining_seconds == 60

        engine.start()
        advance(engine, 5)
        engine.pause()
        assert engine.tick() is None
        assert engine.remaining_seconds == 55

    def test_pause_and_resume_without_drift(self, engine):
        engine.start()
        advance(engine, 5)
        engine.pause()
        assert engine.state is TimerState.PAUSED
        advance(engine, 3)
        engine.start()
        advance(engine, 5)
        assert engine.remaining_seconds == 50

    def test_start_while_running_is_noop(self, engine):
        commands = []
        engine.add_command_listener(commands.append)
        engine.start()
        engine.start()
        assert commands == ["start"]

    def test_display_follows_countdown(self, engine):
        engine.start()
        advance(engine, 15)
        assert engine.display_time == "00:45"
        assert engine.progress == 25.0
        assert engine.mode_label == "Focus"

    def test_reset_reloads_full_duration(self, engine):
        engine.start()
        advance(engine, 20)
        engine.reset()
        assert engine.state is TimerState.IDLE
        assert engine.remaining_seconds == 60
        assert engine.mode is TimerMode.FOCUS


# ---- Completion ----

class TestCompletion:
    def test_focus_completion_stages_short_break(self, engine):
        events = []
        engine.add_listener(events.append)

        event = run_to_completion(engine)

        assert events == [event]
        assert event.kind is EventKind.COMPLETED
        assert event.completed_mode is TimerMode.FOCUS
        assert event.next_mode is TimerMode.SHORT_BREAK
        assert engine.state is TimerState.COMPLETED
        assert engine.mode is TimerMode.SHORT_BREAK
        assert engine.remaining_seconds == 60
        assert engine.session.pomodoros_completed_in_cycle == 1
        assert engine.session.last_completed_mode is TimerMode.FOCUS

    def test_completion_takes_exactly_duration_ticks(self, engine):
        engine.start()
        advance(engine, 59)
        assert engine.state is TimerState.RUNNING
        assert engine.tick() is not None

    def test_fourth_focus_earns_long_break(self, engine):
        for i in range(4):
            event = run_to_completion(engine)
            assert event.completed_mode is TimerMode.FOCUS
            engine.acknowledge(event)
            if i < 3:
                assert event.next_mode is TimerMode.SHORT_BREAK
                engine.acknowledge(run_to_completion(engine))

        assert event.next_mode is TimerMode.LONG_BREAK
        assert engine.mode is TimerMode.LONG_BREAK
        assert engine.remaining_seconds == 120
        assert engine.session.pomodoros_completed_in_cycle == 0

    def test_break_completion_returns_to_focus(self, engine):
        engine.set_mode(TimerMode.SHORT_BREAK)
        event = run_to_completion(engine)
        assert event.completed_mode is TimerMode.SHORT_BREAK
        assert event.next_mode is TimerMode.FOCUS
        assert engine.session.pomodoros_completed_in_cycle == 0

    def test_acknowledge_clears_completed_state_once(self, engine):
        event = run_to_completion(engine)
        assert engine.pending_event is event

        assert engine.acknowledge(event) is True
        assert engine.state is TimerState.IDLE
        assert engine.pending_event is None
        assert engine.acknowledge(event) is False

    def test_start_from_completed_drops_pending_event(self, engine):
        event = run_to_completion(engine)
        engine.start()
        assert engine.pending_event is None
        assert engine.state is TimerState.RUNNING
        assert engine.acknowledge(event) is False

    def test_event_sequences_increase(self, engine):
        first = run_to_completion(engine)
        engine.acknowledge(first)
        second = run_to_completion(engine)
        assert second.sequence > first.sequence

    def test_event_carries_settings_in_force(self, engine, settings_store):
        engine.start()
        settings_store.update(focus_time=30)
        event = None
        while event is None:
            event = engine.tick()
        assert event.settings.focus_time == 1

    def test_listener_errors_do_not_break_completion(self, engine):
        received = []

        def broken(event):
            raise RuntimeError("boom")

        engine.add_listener(broken)
        engine.add_listener(received.append)
        event = run_to_completion(engine)
        assert received == [event]


# ---- Commands ----

class TestCommands:
    def test_skip_advances_without_completion(self, engine):
        events = []
        engine.add_listener(events.append)
        engine.start()
        advance(engine, 10)

        event = engine.skip()

        assert event.kind is EventKind.SKIPPED
        assert events == [event]
        assert engine.mode is TimerMode.SHORT_BREAK
        assert engine.state is TimerState.IDLE
        assert engine.remaining_seconds == 60
        assert engine.pending_event is None
        assert engine.session.pomodoros_completed_in_cycle == 0

    def test_skip_from_break_returns_to_focus(self, engine):
        engine.set_mode(TimerMode.LONG_BREAK)
        engine.skip()
        assert engine.mode is TimerMode.FOCUS

    def test_repeated_skips_never_earn_a_long_break(self, engine):
        for _ in range(8):
            engine.skip()
            assert engine.mode is not TimerMode.LONG_BREAK
        assert engine.session.pomodoros_completed_in_cycle == 0

    def test_skip_at_end_of_cycle_keeps_the_count(self, engine):
        for _ in range(3):
            run_to_completion(engine)
            engine.acknowledge(engine.pending_event)
            engine.skip()
        assert engine.session.pomodoros_completed_in_cycle == 3

        engine.skip()
        assert engine.mode is TimerMode.LONG_BREAK
        assert engine.session.pomodoros_completed_in_cycle == 3

    def test_pause_while_idle_still_reaches_command_listeners(self, engine):
        commands = []
        engine.add_command_listener(commands.append)
        engine.pause()
        assert commands == ["pause"]
        assert engine.state is TimerState.IDLE

    def test_set_mode_loads_duration(self, engine):
        engine.start()
        engine.set_mode(TimerMode.LONG_BREAK)
        assert engine.mode is TimerMode.LONG_BREAK
        assert engine.state is TimerState.IDLE
        assert engine.remaining_seconds == 120
        assert engine.duration == 120

    def test_commands_reach_command_listeners(self, engine):
        commands = []
        engine.add_command_listener(commands.append)
        engine.start()
        engine.pause()
        engine.reset()
        engine.skip()
        engine.set_mode(TimerMode.FOCUS)
        assert commands == ["start", "pause", "reset", "skip", "set_mode"]


# ---- Settings changes ----

class TestRefreshDuration:
    def test_idle_timer_picks_up_new_duration(self, engine, settings_store):
        settings_store.update(focus_time=30)
        engine.refresh_duration()
        assert engine.remaining_seconds == 30 * 60

    def test_running_timer_keeps_its_countdown(self, engine, settings_store):
        engine.start()
        advance(engine, 10)
        settings_store.update(focus_time=30)
        engine.refresh_duration()
        assert engine.remaining_seconds == 50

    def test_paused_timer_keeps_its_countdown(self, engine, settings_store):
        engine.start()
        advance(engine, 10)
        engine.pause()
        settings_store.update(focus_time=30)
        engine.refresh_duration()
        assert engine.remaining_seconds == 50

    def test_next_mode_uses_latest_settings(self, engine, settings_store):
        engine.start()
        settings_store.update(short_break_time=7)
        run_to_completion(engine)
        assert engine.remaining_seconds == 7 * 60


# ---- Persistence ----

class TestRestore:
    def test_restores_mode_cycle_and_selection(self, settings_store, persistence):
        first = TimerEngine(lambda: settings_store.snapshot, persistence)
        first.select_task("abc")
        run_to_completion(first)

        second = TimerEngine(lambda: settings_store.snapshot, persistence)
        second.restore()

        assert second.mode is TimerMode.SHORT_BREAK
        assert second.state is TimerState.IDLE
        assert second.remaining_seconds == 60
        assert second.session.pomodoros_completed_in_cycle == 1
        assert second.session.selected_task_id == "abc"

    def test_unreadable_state_is_ignored(self, settings_store):
        persistence = MemoryPersistence({TIMER_STATE_KEY: {"mode": "nap"}})
        engine = TimerEngine(lambda: settings_store.snapshot, persistence)
        engine.restore()
        assert engine.mode is TimerMode.FOCUS

    def test_restore_without_persistence_is_noop(self, settings_store):
        engine = TimerEngine(lambda: settings_store.snapshot)
        engine.restore()
        assert engine.mode is TimerMode.FOCUS
