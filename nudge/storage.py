"""
SQLite storage module for the Nudge focus timer.
A small durable key-value store: each key holds one JSON-serialized record,
and every write fully replaces the previous value for that key.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, List, Optional

from . import config
from .models import TimerSettings

logger = logging.getLogger(__name__)

# Keys of the persisted records
STATS_KEY = "stats"
STREAK_KEY = "streak"
SETTINGS_KEY = "settings"
PRO_STATUS_KEY = "pro_status"
TIMER_STATE_KEY = "timer_state"

ALL_KEYS = (STATS_KEY, STREAK_KEY, SETTINGS_KEY, PRO_STATUS_KEY, TIMER_STATE_KEY)


def get_app_data_dir() -> Path:
    """
    Get the appropriate application data directory based on OS.
    Creates the directory if it doesn't exist.
    """
    override = os.environ.get(config.DATA_DIR_ENV)
    if override:
        app_dir = Path(override)
        app_dir.mkdir(parents=True, exist_ok=True)
        return app_dir

    if os.name == 'nt':  # Windows
        base = Path(os.environ.get('APPDATA', Path.home()))
    elif os.name == 'posix':
        # macOS uses ~/Library/Application Support, Linux uses ~/.local/share
        if os.uname().sysname == 'Darwin':
            base = Path.home() / 'Library' / 'Application Support'
        else:
            base = Path(os.environ.get('XDG_DATA_HOME', Path.home() / '.local' / 'share'))
    else:
        base = Path.home()

    app_dir = base / config.APP_NAME
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


class Storage:
    """
    Key-value storage manager.
    Values are JSON documents; unreadable values behave as if absent.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize storage with database path.

        Args:
            db_path: Optional custom path for database file.
                    If None, uses default app data directory.
        """
        if db_path is None:
            db_path = str(get_app_data_dir() / config.DB_FILENAME)

        self.db_path = db_path
        self._init_database()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Initialize database schema if the table doesn't exist."""
        with self._get_connection() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            ''')

    def get(self, key: str) -> Optional[Any]:
        """
        Read and decode the value stored under ``key``.

        Returns:
            The decoded JSON value, or None if the key is missing or its
            value cannot be decoded.
        """
        with self._get_connection() as conn:
            row = conn.execute('SELECT value FROM kv WHERE key = ?', (key,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row['value'])
        except ValueError:
            logger.warning("Ignoring corrupt value stored under %r", key)
            return None

    def set(self, key: str, value: Any):
        """Serialize ``value`` and overwrite whatever ``key`` held."""
        payload = json.dumps(value)
        with self._get_connection() as conn:
            conn.execute(
                'INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)',
                (key, payload)
            )

    def remove(self, key: str) -> bool:
        """Delete ``key``. Returns True if something was removed."""
        with self._get_connection() as conn:
            cursor = conn.execute('DELETE FROM kv WHERE key = ?', (key,))
            return cursor.rowcount > 0

    def keys(self) -> List[str]:
        """All stored keys in sorted order."""
        with self._get_connection() as conn:
            rows = conn.execute('SELECT key FROM kv ORDER BY key').fetchall()
        return [row['key'] for row in rows]

    # ==================== Settings ====================

    def get_settings(self) -> TimerSettings:
        """Get timer settings, falling back to defaults."""
        data = self.get(SETTINGS_KEY)
        if not isinstance(data, dict):
            return TimerSettings()
        try:
            return TimerSettings.from_dict(data)
        except (TypeError, ValueError):
            logger.warning("Stored settings are invalid; using defaults")
            return TimerSettings()

    def save_settings(self, settings: TimerSettings):
        """Save timer settings."""
        self.set(SETTINGS_KEY, settings.to_dict())
