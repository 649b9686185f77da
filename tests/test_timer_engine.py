import random

import pytest

from nudge.messages import (
    COMPLETION_MESSAGES, ENCOURAGEMENT_MESSAGES, FALLBACK_MESSAGE, PAUSE_MESSAGE
)
from nudge.models import MessageResult, TimerMode, TimerSettings
from nudge.storage import TIMER_STATE_KEY
from nudge.timer_engine import (
    SOUND_BREAK_START, SOUND_FOCUS_START, SOUND_SESSION_COMPLETE
)


def run_to_completion(engine):
    """Start the current mode and tick until it completes."""
    engine.start()
    for _ in range(engine.time_remaining + 1):
        engine.tick()


def record(signal):
    seen = []
    signal.connect(lambda *args: seen.append(args))
    return seen


# ---- start / pause ----

def test_initial_state_is_stopped_focus(engine):
    state = engine.state
    assert state.mode is TimerMode.FOCUS
    assert not state.is_running and not state.is_paused
    assert state.time_remaining_seconds == state.total_seconds == 25 * 60
    assert state.current_session_index == 1
    assert state.completed_focus_sessions == 0


def test_start_runs_and_second_start_is_ignored(engine, message_client):
    changes = record(engine.state_changed)

    engine.start()
    engine.start()

    assert engine.is_running and not engine.is_paused
    assert len(changes) == 1
    assert len(message_client.requests) == 1


def test_pause_only_while_running(engine):
    messages = record(engine.motivational_message)
    engine.pause()
    assert not engine.is_paused
    assert messages == []

    engine.start()
    engine.tick()
    engine.pause()

    assert not engine.is_running and engine.is_paused
    assert messages[-1] == (PAUSE_MESSAGE,)
    assert engine.title_text() == "Paused - Nudge"

    # ticks that arrive after pausing change nothing
    engine.tick()
    assert engine.time_remaining == 25 * 60 - 1


def test_start_persists_running_snapshot(engine, storage):
    engine.set_task_label("Essay")
    engine.start()

    snapshot = storage.get(TIMER_STATE_KEY)
    assert snapshot["is_running"] is True
    assert snapshot["task_label"] == "Essay"
    assert snapshot["mode"] == "focus"


# ---- tick ----

def test_tick_counts_down_and_reports(engine):
    ticks = record(engine.ticked)
    engine.start()
    engine.tick()

    assert engine.time_remaining == 25 * 60 - 1
    assert ticks[-1] == (25 * 60 - 1, 25 * 60, TimerMode.FOCUS)
    assert engine.title_text() == "24:59 🎯 Nudge"


def test_encouragement_every_five_minutes(engine):
    messages = record(engine.motivational_message)
    engine.start()
    for _ in range(20 * 60):
        engine.tick()

    encouragements = [m for (m,) in messages if m in ENCOURAGEMENT_MESSAGES]
    assert len(encouragements) == 4
    assert engine.time_remaining == 5 * 60


# ---- completion and transitions ----

def test_natural_completion_credits_full_duration(engine, stats):
    completed = record(engine.session_completed)
    run_to_completion(engine)

    current = stats.get_stats()
    assert current.today_focus_minutes == 25
    assert current.today_sessions == 1
    assert current.all_time_sessions == 1
    assert completed == [(TimerMode.FOCUS,)]
    assert engine.state.completed_focus_sessions == 1


def test_completion_credits_configured_minutes_even_after_adjusting(engine, stats):
    engine.start()
    assert engine.adjust_time(5)
    assert engine.total_seconds == 30 * 60
    for _ in range(engine.time_remaining + 1):
        engine.tick()

    assert stats.get_stats().today_focus_minutes == 25


def test_completion_waits_in_next_mode_without_starting(engine):
    modes = record(engine.mode_changed)
    run_to_completion(engine)

    assert engine.mode is TimerMode.SHORT_BREAK
    assert not engine.is_running
    assert engine.time_remaining == engine.total_seconds == 5 * 60
    assert modes == [(TimerMode.SHORT_BREAK, 1)]


def test_break_completion_does_not_credit_focus(engine, stats):
    run_to_completion(engine)
    run_to_completion(engine)

    assert engine.mode is TimerMode.FOCUS
    assert engine.state.current_session_index == 2
    assert stats.get_stats().today_sessions == 1
    assert stats.get_stats().today_focus_minutes == 25


def test_long_break_after_every_fourth_focus_session(engine):
    breaks = []
    for _ in range(8):
        run_to_completion(engine)
        breaks.append(engine.mode)
        engine.skip()  # leave the break, back to focus

    short, long_ = TimerMode.SHORT_BREAK, TimerMode.LONG_BREAK
    assert breaks == [short, short, short, long_, short, short, short, long_]
    assert engine.state.current_session_index == 9


def test_transition_resets_countdown_to_mode_duration(engine):
    engine.start()
    for _ in range(100):
        engine.tick()
    engine.transition_to_next_mode()

    assert engine.mode is TimerMode.SHORT_BREAK
    assert engine.time_remaining == engine.total_seconds == 5 * 60


def test_sound_cues(engine):
    sounds = record(engine.sound_requested)
    run_to_completion(engine)

    assert sounds == [(SOUND_FOCUS_START,), (SOUND_SESSION_COMPLETE,), (SOUND_BREAK_START,)]


def test_completion_message_is_shown(engine):
    messages = record(engine.motivational_message)
    run_to_completion(engine)

    assert any(m in COMPLETION_MESSAGES for (m,) in messages)


def test_delayed_transition_can_be_skipped_once(make_engine):
    engine = make_engine(transition_delay_ms=2000)
    run_to_completion(engine)

    assert engine.transition_pending
    assert engine.mode is TimerMode.FOCUS

    engine.start()
    assert not engine.is_running

    engine.skip()
    assert not engine.transition_pending
    assert engine.mode is TimerMode.SHORT_BREAK


def test_adjust_rejected_while_transition_pending(make_engine):
    engine = make_engine(transition_delay_ms=2000)
    run_to_completion(engine)
    messages = record(engine.motivational_message)

    assert engine.adjust_time(1) is False
    assert engine.time_remaining == 0
    assert messages == []

    engine.transition_to_next_mode()
    assert engine.adjust_time(1) is True


# ---- skip ----

def test_skip_gives_partial_credit_for_elapsed_minutes(engine, stats):
    messages = record(engine.motivational_message)
    engine.start()
    for _ in range(600):
        engine.tick()
    engine.skip()

    current = stats.get_stats()
    assert current.today_focus_minutes == 10
    assert current.today_sessions == 0
    assert engine.mode is TimerMode.SHORT_BREAK
    assert not engine.is_running
    assert ("Great job on 10 minutes! Every bit counts. 🌟",) in messages


def test_skip_under_a_minute_credits_nothing(engine, stats):
    engine.start()
    for _ in range(59):
        engine.tick()
    engine.skip()

    assert stats.get_stats().today_focus_minutes == 0


def test_skip_while_stopped_transitions_without_credit(engine, stats):
    engine.start()
    for _ in range(300):
        engine.tick()
    engine.pause()
    engine.skip()

    assert stats.get_stats().today_focus_minutes == 0
    assert engine.mode is TimerMode.SHORT_BREAK
    assert not engine.is_paused


def test_skip_from_break_advances_session(engine):
    engine.skip()
    assert engine.mode is TimerMode.SHORT_BREAK
    engine.skip()
    assert engine.mode is TimerMode.FOCUS
    assert engine.state.current_session_index == 2


# ---- adjust_time ----

def test_adjust_rejected_below_one_minute(engine):
    engine.start()
    for _ in range(25 * 60 - 65):
        engine.tick()
    assert engine.time_remaining == 65

    assert engine.adjust_time(-1) is False
    assert engine.time_remaining == 65


def test_adjust_accepted_down_to_one_minute(engine):
    engine.start()
    for _ in range(25 * 60 - 125):
        engine.tick()

    assert engine.adjust_time(-1) is True
    assert engine.time_remaining == 65
    assert engine.total_seconds == 25 * 60


def test_adjust_capped_at_sixty_minutes(engine):
    assert engine.adjust_time(35) is True
    assert engine.time_remaining == engine.total_seconds == 3600
    assert engine.adjust_time(1) is False
    assert engine.time_remaining == 3600


def test_adjust_feedback_message(engine):
    messages = record(engine.motivational_message)
    engine.adjust_time(5)
    engine.adjust_time(-1)

    assert messages == [
        ("Added 5 minutes. You're in control! ✨",),
        ("Removed 1 minute. You're in control! ✨",),
    ]


def test_remaining_never_exceeds_total_under_random_operations(engine):
    rng = random.Random(1234)
    operations = [
        engine.start, engine.pause, engine.skip, engine.reset,
        lambda: engine.adjust_time(rng.choice([-5, -1, 1, 5, 15])),
    ]
    for _ in range(400):
        if rng.random() < 0.7:
            for _ in range(rng.randint(1, 400)):
                engine.tick()
        else:
            rng.choice(operations)()
        state = engine.state
        assert 0 <= state.time_remaining_seconds <= state.total_seconds


# ---- reset ----

def test_reset_restores_defaults(engine):
    run_to_completion(engine)
    engine.skip()
    engine.set_task_label("Taxes")
    engine.start()
    engine.tick()

    engine.reset()

    state = engine.state
    assert state.mode is TimerMode.FOCUS
    assert not state.is_running and not state.is_paused
    assert state.current_session_index == 1
    assert state.completed_focus_sessions == 0
    assert state.time_remaining_seconds == state.total_seconds == 25 * 60
    assert state.task_label == "Taxes"

    engine.tick()
    assert engine.time_remaining == 25 * 60


# ---- persistence and restore ----

def test_restores_continuity_from_stopped_snapshot(engine, make_engine):
    engine.set_task_label("Essay")
    run_to_completion(engine)
    engine.skip()

    restored = make_engine()

    state = restored.state
    assert state.current_session_index == 2
    assert state.completed_focus_sessions == 1
    assert state.task_label == "Essay"
    assert state.mode is TimerMode.FOCUS
    assert not state.is_running


def test_running_snapshot_is_not_resumed(engine, make_engine):
    run_to_completion(engine)
    engine.skip()
    engine.set_task_label("Essay")
    engine.start()
    for _ in range(30):
        engine.tick()

    restored = make_engine()

    state = restored.state
    assert not state.is_running
    assert state.current_session_index == 1
    assert state.completed_focus_sessions == 0
    assert state.task_label == ""
    assert state.time_remaining_seconds == 25 * 60


def test_new_day_ignores_snapshot(engine, make_engine):
    run_to_completion(engine)
    engine.skip()

    restored = make_engine(new_day=True)

    assert restored.state.current_session_index == 1
    assert restored.state.completed_focus_sessions == 0


def test_corrupt_snapshot_starts_fresh(storage, make_engine):
    storage.set(TIMER_STATE_KEY, {"mode": "nap", "is_running": False})

    engine = make_engine()

    assert engine.state.current_session_index == 1


# ---- settings ----

def test_settings_come_from_storage(storage, make_engine):
    storage.save_settings(TimerSettings(focus_minutes=50, short_break_minutes=10,
                                        long_break_minutes=20, sessions_before_long_break=2))
    engine = make_engine()

    assert engine.time_remaining == 50 * 60
    assert engine.session_label() == "Session 1 of 2"
    run_to_completion(engine)
    assert engine.time_remaining == 10 * 60


def test_update_settings_only_between_sessions(engine):
    engine.start()
    assert engine.update_settings(TimerSettings(focus_minutes=40)) is False

    engine.pause()
    assert engine.update_settings(TimerSettings(focus_minutes=40)) is False

    engine.reset()
    changed = record(engine.settings_changed)
    assert engine.update_settings(TimerSettings(focus_minutes=40)) is True
    assert engine.time_remaining == engine.total_seconds == 40 * 60
    assert changed == [(TimerSettings(focus_minutes=40),)]


# ---- AI encouragement ----

def test_start_requests_ai_message_for_task(engine, message_client):
    received = record(engine.ai_message)
    engine.set_task_label("Write report")
    engine.start()

    assert message_client.requests == ["Write report"]
    assert received == [(MessageResult("Stub encouragement", "ai"),)]


def test_failed_ai_request_falls_back(make_engine, failing_message_client):
    engine = make_engine(message_client=failing_message_client)
    received = record(engine.ai_message)
    engine.start()

    assert engine.is_running
    assert received == [(MessageResult(FALLBACK_MESSAGE, "fallback"),)]


def test_engine_runs_without_message_client(make_engine):
    engine = make_engine(message_client=None)
    engine.start()
    assert engine.is_running


@pytest.mark.parametrize("mode_steps, icon", [(0, "🎯"), (1, "☕")])
def test_title_icon_follows_mode(engine, mode_steps, icon):
    for _ in range(mode_steps):
        engine.skip()
    assert engine.title_text().split()[1] == icon
