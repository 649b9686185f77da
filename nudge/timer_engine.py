"""
Timer engine for the Nudge focus timer.
Implements the focus / short break / long break state machine.

The engine holds no rendering code: it emits Qt signals and a separate
presentation layer decides how to show them. It counts down in 1-second
ticks driven by a QTimer; tests can call ``tick()`` directly.
"""

import dataclasses
import logging
from concurrent.futures import Future
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal

from . import config
from .messages import (
    FALLBACK_MESSAGE, PAUSE_MESSAGE, SOURCE_FALLBACK,
    MessageClient, MessagePicker, adjustment_message, partial_credit_message,
)
from .models import MessageResult, TimerMode, TimerSettings, TimerState
from .stats_store import StatsStore
from .storage import TIMER_STATE_KEY, Storage

logger = logging.getLogger(__name__)

# Sound cue ids understood by the presentation layer
SOUND_FOCUS_START = "focus-start"
SOUND_BREAK_START = "break-start"
SOUND_SESSION_COMPLETE = "session-complete"


class TimerEngine(QObject):
    """
    Focus/break cycle state machine.

    Modes:
        FOCUS: focus session
        SHORT_BREAK: break after a focus session
        LONG_BREAK: break after every ``sessions_before_long_break`` focus sessions

    After a mode ends the engine moves to the next mode and waits; it never
    starts the next countdown on its own.

    Signals:
        ticked: (remaining_seconds, total_seconds, mode) after every change of the countdown
        mode_changed: (new_mode, session_index) after a transition or reset
        session_completed: (mode) when a countdown runs out
        motivational_message: (text) short line to show the user
        ai_message: (MessageResult) resolved encouragement for the task label
        sound_requested: (sound_id) cue to play
        state_changed: running/paused flags changed
        settings_changed: (TimerSettings) after update_settings was applied
    """

    ticked = Signal(int, int, TimerMode)
    mode_changed = Signal(TimerMode, int)
    session_completed = Signal(TimerMode)
    motivational_message = Signal(str)
    ai_message = Signal(MessageResult)
    sound_requested = Signal(str)
    state_changed = Signal()
    settings_changed = Signal(TimerSettings)

    def __init__(
        self,
        storage: Storage,
        stats: StatsStore,
        message_client: Optional[MessageClient] = None,
        picker: Optional[MessagePicker] = None,
        transition_delay_ms: int = config.TRANSITION_DELAY_MS,
        new_day: bool = False,
        parent: Optional[QObject] = None,
    ):
        """
        Initialize the timer engine.

        Args:
            storage: Storage holding settings and the timer snapshot.
            stats: StatsStore credited with focus time.
            message_client: Source of AI encouragement; None disables it.
            picker: Local message pools.
            transition_delay_ms: Pause between completion and the next
                mode. 0 transitions immediately.
            new_day: True on the first load of a new day; the snapshot is
                then ignored and the cycle starts over.
            parent: Optional Qt parent object.
        """
        super().__init__(parent)

        self.storage = storage
        self.stats = stats
        self.message_client = message_client
        self.picker = picker or MessagePicker()
        self.settings: TimerSettings = storage.get_settings()

        self._state = self._fresh_state()

        # Countdown driver
        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(config.TICK_INTERVAL_MS)
        self._qt_timer.timeout.connect(self.tick)

        # Delay between completion and the next mode
        self._transition_delay_ms = transition_delay_ms
        self._transition_timer = QTimer(self)
        self._transition_timer.setSingleShot(True)
        self._transition_timer.timeout.connect(self.transition_to_next_mode)

        self._restore_state(new_day)

    # ==================== Read-only view ====================

    @property
    def state(self) -> TimerState:
        """Copy of the current state."""
        return dataclasses.replace(self._state)

    @property
    def mode(self) -> TimerMode:
        return self._state.mode

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def is_paused(self) -> bool:
        return self._state.is_paused

    @property
    def time_remaining(self) -> int:
        return self._state.time_remaining_seconds

    @property
    def total_seconds(self) -> int:
        return self._state.total_seconds

    @property
    def task_label(self) -> str:
        return self._state.task_label

    @property
    def transition_pending(self) -> bool:
        return self._transition_timer.isActive()

    def session_label(self) -> str:
        return (f"Session {self._state.current_session_index} "
                f"of {self.settings.sessions_before_long_break}")

    def title_text(self) -> str:
        """Window title for the current state."""
        if self._state.is_paused:
            return f"Paused - {config.APP_NAME}"
        icon = "🎯" if self._state.mode is TimerMode.FOCUS else "☕"
        return f"{self._state.format_remaining()} {icon} {config.APP_NAME}"

    # ==================== Controls ====================

    def start(self):
        """Start or resume the countdown. Ignored while already running."""
        if self._state.is_running or self.transition_pending:
            return

        self._state.is_running = True
        self._state.is_paused = False

        self.sound_requested.emit(SOUND_FOCUS_START)
        self.motivational_message.emit(self.picker.start())
        self._request_ai_message()

        self._qt_timer.start()
        self._persist()
        self.state_changed.emit()
        self._emit_tick()

    def pause(self):
        """Pause the countdown. Ignored unless running."""
        if not self._state.is_running:
            return

        self._qt_timer.stop()
        self._state.is_running = False
        self._state.is_paused = True

        self.motivational_message.emit(PAUSE_MESSAGE)
        self._persist()
        self.state_changed.emit()

    def tick(self):
        """Advance the countdown by one second; completes the mode once it is at zero."""
        if not self._state.is_running:
            return

        if self._state.time_remaining_seconds > 0:
            self._state.time_remaining_seconds -= 1
            self._emit_tick()

            remaining = self._state.time_remaining_seconds
            if remaining > 0 and remaining % config.ENCOURAGEMENT_INTERVAL_SECONDS == 0:
                self.motivational_message.emit(self.picker.encouragement())
        else:
            self.complete()

    def complete(self):
        """
        Finish the current mode.
        A finished focus session is credited with its full configured
        length, whatever the countdown was adjusted to.
        """
        self._qt_timer.stop()
        self._state.is_running = False
        self._state.is_paused = False

        finished = self._state.mode
        if finished is TimerMode.FOCUS:
            self._state.completed_focus_sessions += 1
            self.stats.add_focus_time(self.settings.focus_minutes)
            self.stats.increment_sessions()

        self.sound_requested.emit(SOUND_SESSION_COMPLETE)
        self.motivational_message.emit(self.picker.completion())
        self.session_completed.emit(finished)
        self._persist()
        self.state_changed.emit()
        logger.debug("Completed %s (%d focus sessions so far)",
                     finished.value, self._state.completed_focus_sessions)

        if self._transition_delay_ms > 0:
            self._transition_timer.start(self._transition_delay_ms)
        else:
            self.transition_to_next_mode()

    def transition_to_next_mode(self):
        """Move to the next mode and wait there, stopped."""
        self._transition_timer.stop()

        if self._state.mode is TimerMode.FOCUS:
            completed = self._state.completed_focus_sessions
            if completed > 0 and completed % self.settings.sessions_before_long_break == 0:
                next_mode = TimerMode.LONG_BREAK
            else:
                next_mode = TimerMode.SHORT_BREAK
        else:
            self._state.current_session_index += 1
            next_mode = TimerMode.FOCUS

        self._set_mode(next_mode)
        logger.debug("Transitioned to %s", next_mode.value)

        self.sound_requested.emit(
            SOUND_FOCUS_START if next_mode is TimerMode.FOCUS else SOUND_BREAK_START
        )
        self.mode_changed.emit(next_mode, self._state.current_session_index)
        self._emit_tick()
        self._persist()
        self.state_changed.emit()

    def skip(self):
        """
        Abandon the current mode and move on.
        A running focus session is credited with its whole elapsed minutes.
        """
        if self._state.mode is TimerMode.FOCUS and self._state.is_running:
            minutes = (self._state.total_seconds - self._state.time_remaining_seconds) // 60
            if minutes > 0:
                self.stats.add_focus_time(minutes)
                self.motivational_message.emit(partial_credit_message(minutes))

        self._qt_timer.stop()
        self._state.is_running = False
        self._state.is_paused = False
        self.transition_to_next_mode()

    def adjust_time(self, delta_minutes: int) -> bool:
        """
        Add (or remove) minutes from the live countdown.

        The result must stay within 1..60 minutes and no transition may be
        pending; otherwise nothing changes. The total only ever grows, so
        progress stays <= 1.

        Returns:
            True if the adjustment was applied.
        """
        if self.transition_pending:
            return False

        new_remaining = self._state.time_remaining_seconds + delta_minutes * 60
        if not config.MIN_ADJUSTED_SECONDS <= new_remaining <= config.MAX_ADJUSTED_SECONDS:
            return False

        self._state.time_remaining_seconds = new_remaining
        self._state.total_seconds = max(self._state.total_seconds, new_remaining)

        self._emit_tick()
        self.motivational_message.emit(adjustment_message(delta_minutes))
        self._persist()
        return True

    def reset(self):
        """Stop everything and go back to session 1 of a fresh focus cycle."""
        self._qt_timer.stop()
        self._transition_timer.stop()

        task_label = self._state.task_label
        self._state = self._fresh_state()
        self._state.task_label = task_label

        self._persist()
        self.mode_changed.emit(self._state.mode, self._state.current_session_index)
        self._emit_tick()
        self.state_changed.emit()

    def set_task_label(self, text: str):
        """Remember what the user is working on."""
        self._state.task_label = text or ""
        self._persist()

    def update_settings(self, settings: TimerSettings) -> bool:
        """
        Adopt new settings between sessions.
        An untouched countdown picks up the new duration at once.

        Returns:
            False if a session is running or paused.
        """
        if self._state.is_running or self._state.is_paused:
            return False

        untouched = self._state.time_remaining_seconds == self._state.total_seconds
        self.settings = settings
        if untouched and not self.transition_pending:
            self._set_mode(self._state.mode)
            self._emit_tick()
            self._persist()
        self.settings_changed.emit(settings)
        return True

    def cleanup(self):
        """Stop timers and save state. Call before application exit."""
        self._qt_timer.stop()
        self._transition_timer.stop()
        self._persist()

    # ==================== Internals ====================

    def _fresh_state(self) -> TimerState:
        seconds = self.settings.focus_minutes * 60
        return TimerState(time_remaining_seconds=seconds, total_seconds=seconds)

    def _set_mode(self, mode: TimerMode):
        seconds = self.settings.duration_for(mode) * 60
        self._state.mode = mode
        self._state.time_remaining_seconds = seconds
        self._state.total_seconds = seconds

    def _restore_state(self, new_day: bool):
        """
        Recover continuity from the last snapshot.

        Only the session index, the completed count and the task label come
        back, and only if the snapshot was not mid-countdown: the real time
        that passed since then is unknown.
        """
        if new_day:
            self._persist()
            return

        data = self.storage.get(TIMER_STATE_KEY)
        if not isinstance(data, dict):
            return
        if data.get("is_running"):
            logger.info("Previous session was still running; starting fresh")
            return

        try:
            snapshot = TimerState.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Stored timer state is unreadable; starting fresh")
            return

        self._state.current_session_index = max(1, snapshot.current_session_index)
        self._state.completed_focus_sessions = max(0, snapshot.completed_focus_sessions)
        self._state.task_label = snapshot.task_label

    def _persist(self):
        self.storage.set(TIMER_STATE_KEY, self._state.to_dict())

    def _emit_tick(self):
        self.ticked.emit(
            self._state.time_remaining_seconds,
            self._state.total_seconds,
            self._state.mode,
        )

    def _request_ai_message(self):
        if self.message_client is None:
            return
        future = self.message_client.fetch_message(self._state.task_label)
        future.add_done_callback(self._deliver_ai_message)

    def _deliver_ai_message(self, future: "Future[MessageResult]"):
        # Runs on the worker thread; Qt queues the signal to receivers.
        try:
            result = future.result()
        except Exception as e:
            logger.warning("Encouragement request failed: %s", e)
            result = MessageResult(FALLBACK_MESSAGE, SOURCE_FALLBACK)
        self.ai_message.emit(result)
