"""
Stats and streak aggregation for the Nudge focus timer.

StatsStore owns the persisted focus totals, the 7-day history, the streak
record and the pro-status gate. It never calls back into the timer; the
engine calls ``add_focus_time`` / ``increment_sessions`` on it.

All dates are device-local calendar dates taken from the injected clock.
A clock moved backward is not defended against.
"""

import csv
import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterator, Optional

from . import config
from .models import (
    DayStats, ProStatus, StatsRecord, StreakRecord, TimerSettings, WeeklyEntry
)
from .storage import (
    ALL_KEYS, PRO_STATUS_KEY, SETTINGS_KEY, STATS_KEY, STREAK_KEY, Storage
)

logger = logging.getLogger(__name__)


class WeeklyReport:
    """
    The last seven days (today included), oldest first.

    Iterating re-reads the store each time, so the same report object can
    be walked again after more focus time has been recorded.
    """

    def __init__(self, store: "StatsStore"):
        self._store = store

    def __iter__(self) -> Iterator[WeeklyEntry]:
        stats = self._store.get_stats()
        today = self._store.today()
        for offset in range(config.WEEKLY_HISTORY_DAYS - 1, -1, -1):
            day = today - timedelta(days=offset)
            if day == today:
                yield WeeklyEntry(day, stats.today_focus_minutes, stats.today_sessions)
            else:
                archived = stats.weekly_history.get(day, DayStats())
                yield WeeklyEntry(day, archived.focus_minutes, archived.sessions)

    def __len__(self) -> int:
        return config.WEEKLY_HISTORY_DAYS


class StatsStore:
    """
    Persisted focus aggregates, streaks and pro status.

    Args:
        storage: Key-value storage the records live in.
        clock: Returns the current local datetime. Defaults to datetime.now.
    """

    def __init__(self, storage: Storage, clock: Optional[Callable[[], datetime]] = None):
        self.storage = storage
        self._clock = clock or datetime.now

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    def init(self) -> bool:
        """
        Create the default records on first use, then run the day check.

        Returns:
            True if this load rolled the stats over to a new day.
        """
        if self._load_stats() is None:
            self._save_stats(StatsRecord(last_active_date=self.today()))
        return self.check_new_day()

    # ==================== Stats ====================

    def _load_stats(self) -> Optional[StatsRecord]:
        data = self.storage.get(STATS_KEY)
        if data is None:
            return None
        try:
            return StatsRecord.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError):
            logger.warning("Stored stats are unreadable; starting fresh")
            return None

    def _save_stats(self, stats: StatsRecord):
        self.storage.set(STATS_KEY, stats.to_dict())

    def get_stats(self) -> StatsRecord:
        """Current stats, or zeroed defaults dated today when none are stored."""
        return self._load_stats() or StatsRecord(last_active_date=self.today())

    def check_new_day(self) -> bool:
        """
        Roll the daily counters over when the calendar date has changed.

        The closed day is archived into the weekly history (keeping the
        newest WEEKLY_HISTORY_DAYS dates) and decides the streak. Calling it
        again on the same day changes nothing.

        Returns:
            True if a rollover happened.
        """
        stats = self.get_stats()
        today = self.today()
        if stats.last_active_date == today:
            return False

        closed_day = stats.last_active_date
        stats.weekly_history[closed_day] = DayStats(
            focus_minutes=stats.today_focus_minutes,
            sessions=stats.today_sessions,
        )
        dates = sorted(stats.weekly_history)
        while len(dates) > config.WEEKLY_HISTORY_DAYS:
            del stats.weekly_history[dates.pop(0)]

        self.update_streak(stats.today_focus_minutes > 0)

        stats.today_focus_minutes = 0
        stats.today_sessions = 0
        stats.last_active_date = today
        self._save_stats(stats)
        logger.info("Rolled stats over from %s to %s", closed_day, today)
        return True

    def add_focus_time(self, minutes: int):
        """Add focused minutes to today's and the lifetime totals."""
        stats = self.get_stats()
        stats.total_focus_minutes += minutes
        stats.today_focus_minutes += minutes
        self._save_stats(stats)

    # Alias kept for callers that think in terms of activity.
    record_activity = add_focus_time

    def increment_sessions(self):
        """Count one completed focus session."""
        stats = self.get_stats()
        stats.total_sessions += 1
        stats.today_sessions += 1
        stats.all_time_sessions += 1
        self._save_stats(stats)

    # ==================== Streak ====================

    def get_streak(self) -> StreakRecord:
        data = self.storage.get(STREAK_KEY)
        if data is None:
            return StreakRecord()
        try:
            return StreakRecord.from_dict(data)
        except (AttributeError, TypeError, ValueError):
            logger.warning("Stored streak is unreadable; starting fresh")
            return StreakRecord()

    def _save_streak(self, streak: StreakRecord):
        self.storage.set(STREAK_KEY, streak.to_dict())

    def update_streak(self, was_active: bool) -> StreakRecord:
        """
        Apply one closed day to the streak.

        An inactive day breaks the streak. An active day extends it when the
        previous active date was exactly one day before today, and restarts
        it at 1 after a longer gap. A zero (or negative) gap leaves the
        counter alone.
        """
        streak = self.get_streak()
        today = self.today()

        if was_active:
            if streak.last_active_date is None:
                streak.current_streak = 1
            else:
                gap = (today - streak.last_active_date).days
                if gap == 1:
                    streak.current_streak += 1
                elif gap > 1:
                    streak.current_streak = 1
            streak.last_active_date = today
        else:
            streak.current_streak = 0

        streak.longest_streak = max(streak.longest_streak, streak.current_streak)
        self._save_streak(streak)
        logger.info("Streak is now %d (longest %d)",
                    streak.current_streak, streak.longest_streak)
        return streak

    def check_streak(self) -> StreakRecord:
        """Streak for display; zeroed if more than a day has passed since it was last extended."""
        streak = self.get_streak()
        if streak.last_active_date is not None and streak.current_streak:
            if (self.today() - streak.last_active_date).days > 1:
                streak.current_streak = 0
                self._save_streak(streak)
        return streak

    # ==================== Reports ====================

    def get_weekly_report(self) -> WeeklyReport:
        return WeeklyReport(self)

    def export_weekly_csv(self, filepath: str) -> int:
        """
        Export the weekly report to a CSV file.

        Returns:
            Number of day rows written.
        """
        rows = list(self.get_weekly_report())
        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(['Date', 'Focus (min)', 'Sessions'])
            for entry in rows:
                writer.writerow([entry.date.isoformat(), entry.focus_minutes, entry.sessions])
        return len(rows)

    # ==================== Pro status ====================

    def get_pro_status(self) -> ProStatus:
        data = self.storage.get(PRO_STATUS_KEY)
        if data is None:
            return ProStatus()
        try:
            return ProStatus.from_dict(data)
        except (AttributeError, TypeError, ValueError):
            logger.warning("Stored pro status is unreadable; treating as free")
            return ProStatus()

    def set_pro_status(self, status: ProStatus):
        self.storage.set(PRO_STATUS_KEY, status.to_dict())

    def is_pro(self) -> bool:
        """
        True while the pro flag is set and not expired.
        An expired record is cleared on the spot.
        """
        status = self.get_pro_status()
        if not status.is_pro:
            return False
        if status.expires_at is not None:
            now = self.now()
            if status.expires_at.tzinfo is not None:
                now = now.astimezone()
            if status.expires_at < now:
                logger.info("Pro plan %r expired at %s", status.plan, status.expires_at)
                self.set_pro_status(ProStatus())
                return False
        return True

    # ==================== Backup ====================

    def export_data(self) -> Dict[str, Any]:
        """Snapshot of stats, streak and settings for backup."""
        return {
            "stats": self.get_stats().to_dict(),
            "streak": self.get_streak().to_dict(),
            "settings": self.storage.get_settings().to_dict(),
            "exported_at": self.now().isoformat(),
        }

    def import_data(self, data: Dict[str, Any]):
        """
        Restore whichever records a backup contains.
        Records are validated before anything is written.
        """
        records = {}
        if data.get("stats"):
            records[STATS_KEY] = StatsRecord.from_dict(data["stats"]).to_dict()
        if data.get("streak"):
            records[STREAK_KEY] = StreakRecord.from_dict(data["streak"]).to_dict()
        if data.get("settings"):
            records[SETTINGS_KEY] = TimerSettings.from_dict(data["settings"]).to_dict()
        for key, value in records.items():
            self.storage.set(key, value)

    def clear_all(self):
        """Remove every persisted record and start over with defaults."""
        for key in ALL_KEYS:
            self.storage.remove(key)
        self.init()
