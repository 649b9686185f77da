"""
Data models for the Nudge focus timer.
Uses dataclasses for clean, type-annotated data structures.

Every persisted record converts to and from a plain dict so it can be
stored as JSON. ``from_dict`` raises KeyError/TypeError/ValueError on
malformed input; callers treat that as "no prior state".
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from . import config


class TimerMode(Enum):
    """Modes of the focus/break cycle."""
    FOCUS = "focus"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @property
    def is_break(self) -> bool:
        return self is not TimerMode.FOCUS

    @property
    def label(self) -> str:
        return _MODE_LABELS[self]


_MODE_LABELS = {
    TimerMode.FOCUS: "Focus Time",
    TimerMode.SHORT_BREAK: "Short Break",
    TimerMode.LONG_BREAK: "Long Break",
}


@dataclass
class TimerSettings:
    """
    Durations for the focus/break cycle, plus presentation toggles.
    Edited between sessions only.
    """
    focus_minutes: int = config.DEFAULT_FOCUS_MINUTES
    short_break_minutes: int = config.DEFAULT_SHORT_BREAK_MINUTES
    long_break_minutes: int = config.DEFAULT_LONG_BREAK_MINUTES
    sessions_before_long_break: int = config.DEFAULT_SESSIONS_BEFORE_LONG_BREAK
    sound_enabled: bool = True
    notifications_enabled: bool = True

    def __post_init__(self):
        """Clamp durations to positive integers."""
        self.focus_minutes = max(1, int(self.focus_minutes))
        self.short_break_minutes = max(1, int(self.short_break_minutes))
        self.long_break_minutes = max(1, int(self.long_break_minutes))
        self.sessions_before_long_break = max(1, int(self.sessions_before_long_break))

    def duration_for(self, mode: TimerMode) -> int:
        """Return the configured duration of ``mode`` in minutes."""
        if mode is TimerMode.FOCUS:
            return self.focus_minutes
        if mode is TimerMode.SHORT_BREAK:
            return self.short_break_minutes
        return self.long_break_minutes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "focus_minutes": self.focus_minutes,
            "short_break_minutes": self.short_break_minutes,
            "long_break_minutes": self.long_break_minutes,
            "sessions_before_long_break": self.sessions_before_long_break,
            "sound_enabled": self.sound_enabled,
            "notifications_enabled": self.notifications_enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimerSettings":
        defaults = cls()
        return cls(
            focus_minutes=data.get("focus_minutes", defaults.focus_minutes),
            short_break_minutes=data.get("short_break_minutes", defaults.short_break_minutes),
            long_break_minutes=data.get("long_break_minutes", defaults.long_break_minutes),
            sessions_before_long_break=data.get(
                "sessions_before_long_break", defaults.sessions_before_long_break
            ),
            sound_enabled=bool(data.get("sound_enabled", True)),
            notifications_enabled=bool(data.get("notifications_enabled", True)),
        )


@dataclass
class TimerState:
    """
    Current state of the focus/break cycle.
    Owned by TimerEngine; everything else gets a read-only view.
    """
    mode: TimerMode = TimerMode.FOCUS
    is_running: bool = False
    is_paused: bool = False
    time_remaining_seconds: int = config.DEFAULT_FOCUS_MINUTES * 60
    total_seconds: int = config.DEFAULT_FOCUS_MINUTES * 60
    current_session_index: int = 1
    completed_focus_sessions: int = 0
    task_label: str = ""

    @property
    def elapsed_seconds(self) -> int:
        return self.total_seconds - self.time_remaining_seconds

    @property
    def progress(self) -> float:
        """Fraction of the current mode still remaining (1.0 = untouched)."""
        if self.total_seconds == 0:
            return 0.0
        return self.time_remaining_seconds / self.total_seconds

    def format_remaining(self) -> str:
        """Format remaining time as MM:SS."""
        minutes = self.time_remaining_seconds // 60
        seconds = self.time_remaining_seconds % 60
        return f"{minutes:02d}:{seconds:02d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "is_running": self.is_running,
            "is_paused": self.is_paused,
            "time_remaining_seconds": self.time_remaining_seconds,
            "total_seconds": self.total_seconds,
            "current_session_index": self.current_session_index,
            "completed_focus_sessions": self.completed_focus_sessions,
            "task_label": self.task_label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimerState":
        return cls(
            mode=TimerMode(data.get("mode", TimerMode.FOCUS.value)),
            is_running=bool(data.get("is_running", False)),
            is_paused=bool(data.get("is_paused", False)),
            time_remaining_seconds=int(data["time_remaining_seconds"]),
            total_seconds=int(data["total_seconds"]),
            current_session_index=int(data.get("current_session_index") or 1),
            completed_focus_sessions=int(data.get("completed_focus_sessions") or 0),
            task_label=str(data.get("task_label") or ""),
        )


@dataclass
class DayStats:
    """Focus totals for one archived calendar day."""
    focus_minutes: int = 0
    sessions: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"focus_minutes": self.focus_minutes, "sessions": self.sessions}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DayStats":
        return cls(
            focus_minutes=int(data.get("focus_minutes", 0)),
            sessions=int(data.get("sessions", 0)),
        )


@dataclass
class StatsRecord:
    """
    Lifetime and per-day focus aggregates.
    ``weekly_history`` holds at most WEEKLY_HISTORY_DAYS archived days.
    """
    last_active_date: date
    total_focus_minutes: int = 0
    total_sessions: int = 0
    all_time_sessions: int = 0
    today_focus_minutes: int = 0
    today_sessions: int = 0
    weekly_history: Dict[date, DayStats] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_focus_minutes": self.total_focus_minutes,
            "total_sessions": self.total_sessions,
            "all_time_sessions": self.all_time_sessions,
            "today_focus_minutes": self.today_focus_minutes,
            "today_sessions": self.today_sessions,
            "last_active_date": self.last_active_date.isoformat(),
            "weekly_history": {
                day.isoformat(): stats.to_dict()
                for day, stats in sorted(self.weekly_history.items())
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatsRecord":
        return cls(
            last_active_date=date.fromisoformat(data["last_active_date"]),
            total_focus_minutes=int(data.get("total_focus_minutes", 0)),
            total_sessions=int(data.get("total_sessions", 0)),
            all_time_sessions=int(data.get("all_time_sessions", 0)),
            today_focus_minutes=int(data.get("today_focus_minutes", 0)),
            today_sessions=int(data.get("today_sessions", 0)),
            weekly_history={
                date.fromisoformat(day): DayStats.from_dict(stats)
                for day, stats in (data.get("weekly_history") or {}).items()
            },
        )


@dataclass
class StreakRecord:
    """Consecutive active days."""
    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_active_date": (
                self.last_active_date.isoformat() if self.last_active_date else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreakRecord":
        last = data.get("last_active_date")
        return cls(
            current_streak=int(data.get("current_streak", 0)),
            longest_streak=int(data.get("longest_streak", 0)),
            last_active_date=date.fromisoformat(last) if last else None,
        )


@dataclass
class ProStatus:
    """Subscription flag written by the payment flow."""
    is_pro: bool = False
    plan: Optional[str] = None
    expires_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_pro": self.is_pro,
            "plan": self.plan,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProStatus":
        expires = data.get("expires_at")
        return cls(
            is_pro=bool(data.get("is_pro", False)),
            plan=data.get("plan"),
            expires_at=datetime.fromisoformat(expires) if expires else None,
        )


@dataclass(frozen=True)
class WeeklyEntry:
    """One row of the weekly report."""
    date: date
    focus_minutes: int
    sessions: int


@dataclass(frozen=True)
class MessageResult:
    """Encouragement text and where it came from: "ai", "fallback" or "default"."""
    message: str
    source: str
