import io
import wave

import pytest

from nudge.models import TimerMode, TimerSettings
from nudge.notifications import (
    SOUND_TONES, NotificationManager, SoundPlayer, completion_notice, generate_tone_sequence,
)
from nudge.timer_engine import SOUND_FOCUS_START, SOUND_SESSION_COMPLETE


class RecordingPlayer(SoundPlayer):
    """Collects cue ids instead of spawning a player process."""

    def __init__(self):
        super().__init__()
        self.played = []

    def play(self, sound_id):
        if self.enabled:
            self.played.append(sound_id)


@pytest.fixture
def player():
    return RecordingPlayer()


@pytest.fixture
def shown(monkeypatch):
    calls = []
    monkeypatch.setattr(
        NotificationManager, "_show_native_notification",
        lambda self, title, message: calls.append((title, message)),
    )
    return calls


def test_tone_sequence_is_valid_wav():
    data = generate_tone_sequence([(440, 0.1), (0, 0.05)], sample_rate=8000)
    with wave.open(io.BytesIO(data)) as wav:
        assert wav.getnchannels() == 1
        assert wav.getsampwidth() == 2
        assert wav.getframerate() == 8000
        assert wav.getnframes() == 800 + 400


def test_every_engine_cue_has_tones():
    assert set(SOUND_TONES) >= {SOUND_FOCUS_START, SOUND_SESSION_COMPLETE}


def test_sound_player_writes_and_cleans_up_files(monkeypatch):
    sound_player = SoundPlayer()
    played = []
    monkeypatch.setattr(sound_player, "_play_file", played.append)

    sound_player.play(SOUND_FOCUS_START)
    sound_player.play("no-such-cue")

    assert len(played) == 1
    with wave.open(played[0]) as wav:
        assert wav.getnframes() > 0
    sound_player.cleanup()
    assert sound_player._files == {}


def test_completion_notice():
    assert completion_notice(TimerMode.FOCUS)[0] == "🎉 Focus Session Complete!"
    assert completion_notice(TimerMode.SHORT_BREAK) == completion_notice(TimerMode.LONG_BREAK)


def test_plays_requested_sounds(qapp, player):
    manager = NotificationManager(TimerSettings(), sound_player=player)
    manager.on_sound_requested(SOUND_FOCUS_START)
    assert player.played == [SOUND_FOCUS_START]


def test_sound_disabled_by_settings(qapp, player):
    manager = NotificationManager(TimerSettings(sound_enabled=False), sound_player=player)
    manager.on_sound_requested(SOUND_FOCUS_START)
    assert player.played == []


def test_notification_without_tray(qapp, player, shown):
    manager = NotificationManager(TimerSettings(), sound_player=player)
    manager.on_session_completed(TimerMode.FOCUS)
    assert shown == [("🎉 Focus Session Complete!", "Great work! Time for a break.")]


def test_notifications_disabled(qapp, player, shown):
    manager = NotificationManager(TimerSettings(notifications_enabled=False), sound_player=player)
    manager.on_session_completed(TimerMode.SHORT_BREAK)
    assert shown == []


def test_follows_engine_settings_changes(engine, player, shown):
    manager = NotificationManager(TimerSettings(), sound_player=player)
    manager.attach(engine)

    assert engine.update_settings(TimerSettings(sound_enabled=False, notifications_enabled=False))
    engine.start()
    engine.complete()

    assert player.played == []
    assert shown == []

    assert engine.update_settings(TimerSettings())
    manager.on_sound_requested(SOUND_FOCUS_START)
    assert player.played == [SOUND_FOCUS_START]


def test_attach_follows_engine(engine, player, shown):
    manager = NotificationManager(engine.settings, sound_player=player)
    manager.attach(engine)

    engine.start()
    engine.complete()

    assert player.played[0] == SOUND_FOCUS_START
    assert SOUND_SESSION_COMPLETE in player.played
    assert shown and shown[0][0] == "🎉 Focus Session Complete!"
