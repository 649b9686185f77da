"""
Application wiring for the Nudge focus timer.
Builds every service once at start-up and hands them to whoever needs them.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from PySide6.QtCore import QObject, Qt, QTimer, Slot
from PySide6.QtGui import QAction, QColor, QIcon, QPainter, QPixmap
from PySide6.QtWidgets import QApplication, QMenu, QSystemTrayIcon

from . import config
from .messages import MessageClient
from .models import MessageResult, TimerMode
from .notifications import NotificationManager
from .stats_store import StatsStore
from .storage import Storage
from .timer_engine import TimerEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-lifetime service instances."""
    storage: Storage
    stats: StatsStore
    messages: MessageClient
    engine: TimerEngine


def build_services(db_path: Optional[str] = None) -> Services:
    """
    Create storage, stats and the engine.
    Runs the day check first so a new day starts a fresh cycle.
    """
    storage = Storage(db_path)
    stats = StatsStore(storage)
    new_day = stats.init()
    messages = MessageClient()
    engine = TimerEngine(storage, stats, message_client=messages, new_day=new_day)
    return Services(storage=storage, stats=stats, messages=messages, engine=engine)


class DayWatcher(QObject):
    """
    Runs the stats day check for a process that stays up past midnight.

    Checks on a timer and again right before a session starts. When the
    day has changed and the engine is idle, the cycle starts over from
    session 1, as on the first load of a new day. A running or paused
    session is left alone and credits the new day when it finishes.
    """

    def __init__(
        self,
        stats: StatsStore,
        engine: TimerEngine,
        interval_ms: int = config.DAY_CHECK_INTERVAL_MS,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.stats = stats
        self.engine = engine

        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self.check)
        self._timer.start()

    @Slot()
    def check(self) -> bool:
        """Returns True if the stats rolled over to a new day."""
        if not self.stats.check_new_day():
            return False
        if not (self.engine.is_running or self.engine.is_paused):
            self.engine.reset()
        return True

    @Slot()
    def start_session(self):
        """Day check, then start (or resume) the countdown."""
        self.check()
        self.engine.start()

    def stop(self):
        self._timer.stop()


def create_app_icon() -> QIcon:
    """Create a simple app icon programmatically."""
    icon = QIcon()

    for size in [16, 32, 48, 64]:
        pixmap = QPixmap(size, size)
        pixmap.fill(Qt.GlobalColor.transparent)

        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setPen(Qt.PenStyle.NoPen)

        # Outer ring
        painter.setBrush(QColor("#7C5CFF"))
        margin = size // 8
        painter.drawEllipse(margin, margin, size - 2 * margin, size - 2 * margin)

        # Inner face
        inner = size // 4
        painter.setBrush(QColor("white"))
        painter.drawEllipse(inner, inner, size - 2 * inner, size - 2 * inner)

        painter.end()
        icon.addPixmap(pixmap)

    return icon


class TrayController(QObject):
    """
    Minimal presentation layer: a tray menu driving the engine, with the
    countdown echoed to the tooltip and the log.
    """

    def __init__(self, services: Services, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.services = services
        self.engine = services.engine

        self.notifications = NotificationManager(self.engine.settings, parent=self)
        self.notifications.attach(self.engine)
        self.day_watcher = DayWatcher(services.stats, self.engine, parent=self)

        self.tray_icon: Optional[QSystemTrayIcon] = None
        if QSystemTrayIcon.isSystemTrayAvailable():
            self._setup_tray()

        self.engine.ticked.connect(self._on_tick)
        self.engine.mode_changed.connect(self._on_mode_changed)
        self.engine.motivational_message.connect(self._on_message)
        self.engine.ai_message.connect(self._on_ai_message)
        self.engine.state_changed.connect(self._on_state_changed)

    def _setup_tray(self):
        """Set up system tray icon and menu."""
        self.tray_icon = QSystemTrayIcon(create_app_icon(), self)
        self.tray_icon.setToolTip(config.APP_NAME)

        menu = QMenu()
        self._menu = menu
        self.start_action = self._add_action(menu, "Start", self.day_watcher.start_session)
        self.pause_action = self._add_action(menu, "Pause", self.engine.pause)
        self._add_action(menu, "Skip", self.engine.skip)
        menu.addSeparator()
        self._add_action(menu, "+5 min", lambda: self.engine.adjust_time(5))
        self._add_action(menu, "-5 min", lambda: self.engine.adjust_time(-5))
        menu.addSeparator()
        self._add_action(menu, "Reset", self.engine.reset)
        self._add_action(menu, "Quit", self.quit)

        self.tray_icon.setContextMenu(menu)
        self.tray_icon.show()
        self.notifications.set_tray_icon(self.tray_icon)
        self._on_state_changed()

    def _add_action(self, menu: QMenu, text: str, handler) -> QAction:
        action = QAction(text, self)
        action.triggered.connect(handler)
        menu.addAction(action)
        return action

    @Slot(int, int, TimerMode)
    def _on_tick(self, remaining: int, total: int, mode: TimerMode):
        if self.tray_icon is not None:
            self.tray_icon.setToolTip(f"{self.engine.title_text()}\n{self.engine.session_label()}")

    @Slot(TimerMode, int)
    def _on_mode_changed(self, mode: TimerMode, session_index: int):
        logger.info("%s ready (%s)", mode.label, self.engine.session_label())

    @Slot(str)
    def _on_message(self, text: str):
        logger.info("%s", text)

    @Slot(MessageResult)
    def _on_ai_message(self, result: MessageResult):
        logger.info("🤖 %s", result.message)

    @Slot()
    def _on_state_changed(self):
        if self.tray_icon is None:
            return
        self.start_action.setEnabled(not self.engine.is_running)
        self.start_action.setText("Resume" if self.engine.is_paused else "Start")
        self.pause_action.setEnabled(self.engine.is_running)

    @Slot()
    def quit(self):
        self.cleanup()
        QApplication.quit()

    def cleanup(self):
        """Clean up resources before exit."""
        self.day_watcher.stop()
        self.engine.cleanup()
        self.notifications.cleanup()
        self.services.messages.close()
        if self.tray_icon is not None:
            self.tray_icon.hide()
