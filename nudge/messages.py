"""
Motivational messages for the Nudge focus timer.

Two sources:
    - fixed local pools picked at random (start, encouragement, completion...)
    - the encouragement-text endpoint, asked for a line tailored to the
      user's task. Every failure resolves to a fallback line; nothing here
      ever raises into the timer.
"""

import logging
import random
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import requests

from . import config
from .models import MessageResult

logger = logging.getLogger(__name__)

START_MESSAGES = [
    "You've got this! One moment at a time. 💪",
    "Let's do this! Your future self will thank you. 🚀",
    "Starting is the hardest part. You did it! ⭐",
    "Focus mode: activated. You're amazing! 🌟",
    "Here we go! Small steps, big progress. 🎯",
]

ENCOURAGEMENT_MESSAGES = [
    "You're doing great! Keep it up! 🌈",
    "Still going strong! Proud of you! 💜",
    "Halfway there! You've got momentum! 🔥",
    "Your brain is working hard. Respect! 🧠",
    "Look at you, focusing! Amazing! ✨",
]

COMPLETION_MESSAGES = [
    "You did it! Time for a well-deserved break! 🎉",
    "Session complete! Your brain thanks you! 🧠💜",
    "Amazing work! Every session makes you stronger! 💪",
    "Fantastic! You showed up and that's what counts! ⭐",
    "Completed! Progress over perfection, always! 🌟",
]

PAUSE_MESSAGE = "Taking a breather? That's okay! Resume when ready. 🌱"

DEFAULT_MESSAGE = "One step at a time! 🌱"
NOT_CONFIGURED_MESSAGE = "You got this! ✨"
FALLBACK_MESSAGE = "Just try for 1 minute! 🌱"
UNSTUCK_FALLBACK_MESSAGE = "Just open the file. 📂"

SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"
SOURCE_DEFAULT = "default"


def partial_credit_message(minutes: int) -> str:
    return f"Great job on {minutes} minutes! Every bit counts. 🌟"


def adjustment_message(minutes: int) -> str:
    action = "Added" if minutes > 0 else "Removed"
    count = abs(minutes)
    plural = "s" if count > 1 else ""
    return f"{action} {count} minute{plural}. You're in control! ✨"


class MessagePicker:
    """Random choice from the local pools."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def start(self) -> str:
        return self._rng.choice(START_MESSAGES)

    def encouragement(self) -> str:
        return self._rng.choice(ENCOURAGEMENT_MESSAGES)

    def completion(self) -> str:
        return self._rng.choice(COMPLETION_MESSAGES)


class MessageClient:
    """
    Client for the encouragement-text and unstuck endpoints.

    Args:
        base_url: Endpoint base URL; empty means no endpoint is configured.
        timeout: Default request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = config.API_BASE_URL,
        timeout: float = config.MESSAGE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def generate(self, task_label: str, timeout: Optional[float] = None) -> MessageResult:
        """
        Ask for an encouragement line for ``task_label``.
        Blocks for at most ``timeout`` seconds and never raises.
        """
        task_label = (task_label or "").strip()
        if not task_label:
            return MessageResult(DEFAULT_MESSAGE, SOURCE_DEFAULT)
        if not self.configured:
            return MessageResult(NOT_CONFIGURED_MESSAGE, SOURCE_FALLBACK)

        data = self._post(config.MESSAGE_PATH, task_label, timeout)
        message = _clean(data.get("message")) if data else ""
        if not message:
            return MessageResult(FALLBACK_MESSAGE, SOURCE_FALLBACK)

        source = data.get("source") or SOURCE_AI
        if source not in (SOURCE_FALLBACK, SOURCE_DEFAULT):
            # The endpoint names its model ("gemini"); callers only care that it is generated.
            source = SOURCE_AI
        return MessageResult(message, source)

    def get_unstuck(self, task_label: str, timeout: Optional[float] = None) -> MessageResult:
        """Ask for a tiny first step for a task the user can't start."""
        if not self.configured:
            return MessageResult(UNSTUCK_FALLBACK_MESSAGE, SOURCE_FALLBACK)

        data = self._post(config.UNSTUCK_PATH, (task_label or "").strip(), timeout)
        message = _clean(data.get("message")) if data else ""
        if not message:
            return MessageResult(UNSTUCK_FALLBACK_MESSAGE, SOURCE_FALLBACK)
        source = SOURCE_FALLBACK if data.get("source") == SOURCE_FALLBACK else SOURCE_AI
        return MessageResult(message, source)

    def fetch_message(self, task_label: str, timeout: Optional[float] = None) -> "Future[MessageResult]":
        """Run ``generate`` on a worker thread and return its future."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=config.MESSAGE_WORKERS,
                thread_name_prefix="nudge-messages",
            )
        return self._executor.submit(self.generate, task_label, timeout)

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self._session.close()

    def _post(self, path: str, task_label: str, timeout: Optional[float]) -> Optional[dict]:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.post(
                url,
                json={"taskName": task_label},
                timeout=timeout if timeout is not None else self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Message request to %s failed: %s", url, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Unexpected message payload from %s", url)
            return None
        return data


def _clean(message) -> str:
    if not isinstance(message, str):
        return ""
    return message.strip().strip('"「』」『').strip()
