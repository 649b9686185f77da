"""
Configuration for the Nudge focus timer.
Constants plus the few values read from the environment / a .env file.
"""

import os

from dotenv import load_dotenv

load_dotenv()

APP_NAME = "Nudge"

# ── Storage ───────────────────────────────────────────────────────────────────
DATA_DIR_ENV = "NUDGE_DATA_DIR"     # overrides the OS app-data directory
DB_FILENAME = "nudge.db"

# ── Timer ─────────────────────────────────────────────────────────────────────
TICK_INTERVAL_MS = 1000
TRANSITION_DELAY_MS = 2000          # lets the completion message be seen
ENCOURAGEMENT_INTERVAL_SECONDS = 300
MIN_ADJUSTED_SECONDS = 60
MAX_ADJUSTED_SECONDS = 3600

DEFAULT_FOCUS_MINUTES = 25
DEFAULT_SHORT_BREAK_MINUTES = 5
DEFAULT_LONG_BREAK_MINUTES = 15
DEFAULT_SESSIONS_BEFORE_LONG_BREAK = 4

# ── Stats ─────────────────────────────────────────────────────────────────────
WEEKLY_HISTORY_DAYS = 7
DAY_CHECK_INTERVAL_MS = 60 * 1000  # how often a long-running process looks for midnight

# ── Message endpoints ─────────────────────────────────────────────────────────
API_BASE_URL = os.getenv("NUDGE_API_BASE_URL", "").rstrip("/")
MESSAGE_PATH = "/api/generate-message"
UNSTUCK_PATH = "/api/get-unstuck"
MESSAGE_TIMEOUT_SECONDS = float(os.getenv("NUDGE_MESSAGE_TIMEOUT", "8"))
MESSAGE_WORKERS = 1               # requests.Session is not thread-safe
