# Core package for the Nudge focus timer
from .models import TimerMode, TimerSettings, TimerState
from .stats_store import StatsStore
from .storage import Storage

__all__ = ['TimerMode', 'TimerSettings', 'TimerState', 'StatsStore', 'Storage']
