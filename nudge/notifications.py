"""
Notification module for the Nudge focus timer.
Turns TimerEngine signals into sounds and desktop notifications.
"""

import io
import logging
import math
import os
import struct
import subprocess
import sys
import tempfile
import wave
from typing import Dict, List, Optional, Sequence, Tuple

from PySide6.QtCore import QObject, Slot
from PySide6.QtWidgets import QSystemTrayIcon

from .models import TimerMode, TimerSettings
from .timer_engine import (
    SOUND_BREAK_START, SOUND_FOCUS_START, SOUND_SESSION_COMPLETE, TimerEngine
)

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100

# (frequency Hz, duration s); frequency 0 is silence
SOUND_TONES: Dict[str, List[Tuple[int, float]]] = {
    SOUND_FOCUS_START: [(660, 0.12), (0, 0.04), (880, 0.12)],
    SOUND_BREAK_START: [(784, 0.15), (0, 0.05), (587, 0.2)],
    SOUND_SESSION_COMPLETE: [(880, 0.1), (0, 0.05), (1046, 0.15)],
}


def generate_tone_sequence(
    tones: Sequence[Tuple[int, float]],
    sample_rate: int = SAMPLE_RATE,
    volume: float = 0.4,
) -> bytes:
    """
    Render a sequence of sine tones as mono 16-bit WAV data.

    Args:
        tones: (frequency, seconds) pairs; frequency 0 inserts silence.
        sample_rate: Sample rate (44100 is CD quality).
        volume: Volume level (0.0 to 1.0).

    Returns:
        WAV file data as bytes.
    """
    max_amplitude = 32767 * volume
    samples: List[int] = []

    for frequency, seconds in tones:
        count = int(sample_rate * seconds)
        if frequency <= 0:
            samples.extend([0] * count)
            continue
        # 10ms fade in/out to avoid clicks
        fade = max(1, int(sample_rate * 0.01))
        for i in range(count):
            value = max_amplitude * math.sin(2 * math.pi * frequency * i / sample_rate)
            if i < fade:
                value *= i / fade
            elif i > count - fade:
                value *= (count - i) / fade
            samples.append(int(value))

    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(struct.pack(f'<{len(samples)}h', *samples))
    return buffer.getvalue()


class SoundPlayer:
    """
    Cross-platform cue player.
    Renders each cue once to a temporary WAV file and plays it with the
    platform's command-line player.
    """

    def __init__(self):
        self.enabled = True
        self._files: Dict[str, str] = {}

    def _file_for(self, sound_id: str) -> Optional[str]:
        if sound_id not in self._files:
            tones = SOUND_TONES.get(sound_id)
            if tones is None:
                return None
            fd, path = tempfile.mkstemp(suffix='.wav', prefix=f'nudge-{sound_id}-')
            with os.fdopen(fd, 'wb') as f:
                f.write(generate_tone_sequence(tones))
            self._files[sound_id] = path
        return self._files[sound_id]

    def play(self, sound_id: str):
        if not self.enabled:
            return
        try:
            path = self._file_for(sound_id)
            if path:
                self._play_file(path)
        except OSError as e:
            logger.warning("Could not play sound %s: %s", sound_id, e)

    def _play_file(self, path: str):
        """Platform-specific sound playback."""
        system = sys.platform.lower()

        if system == 'darwin':
            subprocess.Popen(['afplay', path],
                             stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        elif system.startswith('linux'):
            # PulseAudio first, then ALSA
            for cmd in ['paplay', 'aplay']:
                try:
                    subprocess.Popen([cmd, path],
                                     stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
                    return
                except FileNotFoundError:
                    continue
            logger.warning("No audio player found (tried paplay, aplay)")
        elif system == 'win32':
            import winsound
            winsound.PlaySound(path, winsound.SND_FILENAME | winsound.SND_ASYNC)

    def cleanup(self):
        """Remove the rendered cue files."""
        for path in self._files.values():
            try:
                os.remove(path)
            except OSError:
                logger.debug("Could not remove %s", path)
        self._files.clear()


class NotificationManager(QObject):
    """
    Presentation-side listener for a TimerEngine.
    Plays requested cues and shows a desktop notification when a mode ends.
    """

    def __init__(
        self,
        settings: Optional[TimerSettings] = None,
        sound_player: Optional[SoundPlayer] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._sound_player = sound_player or SoundPlayer()
        self._tray_icon: Optional[QSystemTrayIcon] = None
        self.apply_settings(settings or TimerSettings())

    @Slot(TimerSettings)
    def apply_settings(self, settings: TimerSettings):
        self.sound_enabled = settings.sound_enabled
        self.notification_enabled = settings.notifications_enabled
        self._sound_player.enabled = settings.sound_enabled

    def set_tray_icon(self, tray_icon: QSystemTrayIcon):
        """Set the system tray icon for showing notifications."""
        self._tray_icon = tray_icon

    def attach(self, engine: TimerEngine):
        """Follow ``engine``'s settings and listen to its cue and completion signals."""
        self.apply_settings(engine.settings)
        engine.settings_changed.connect(self.apply_settings)
        engine.sound_requested.connect(self.on_sound_requested)
        engine.session_completed.connect(self.on_session_completed)

    @Slot(str)
    def on_sound_requested(self, sound_id: str):
        if self.sound_enabled:
            self._sound_player.play(sound_id)

    @Slot(TimerMode)
    def on_session_completed(self, mode: TimerMode):
        title, message = completion_notice(mode)
        self._show_notification(title, message)

    def _show_notification(self, title: str, message: str):
        """Show a desktop notification."""
        if not self.notification_enabled:
            return

        if self._tray_icon is not None and QSystemTrayIcon.isSystemTrayAvailable():
            self._tray_icon.showMessage(
                title, message, QSystemTrayIcon.MessageIcon.Information, 3000
            )
        else:
            self._show_native_notification(title, message)

    def _show_native_notification(self, title: str, message: str):
        """Show notification using native OS commands."""
        system = sys.platform.lower()

        try:
            if system == 'darwin':
                script = f'display notification "{message}" with title "{title}"'
                subprocess.run(['osascript', '-e', script], capture_output=True, timeout=5)
            elif system.startswith('linux'):
                subprocess.run(['notify-send', title, message], capture_output=True, timeout=5)
            # Windows notifications handled by tray icon
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Could not show notification: %s", e)

    def cleanup(self):
        """Clean up resources."""
        self._sound_player.cleanup()


def completion_notice(mode: TimerMode) -> Tuple[str, str]:
    """Title and body for the notification shown when ``mode`` ends."""
    if mode is TimerMode.FOCUS:
        return "🎉 Focus Session Complete!", "Great work! Time for a break."
    return "☕ Break Time Over!", "Ready to focus again?"
