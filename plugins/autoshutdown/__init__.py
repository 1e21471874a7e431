"""
plugins/autoshutdown/__init__.py

Automatic server shutdown plugin for Rosey.

Provides:
- Daily, every-N-days or weekly shutdown/restart at a fixed time-of-day
- Pre-announcement broadcast a configurable lead time ahead
- Auxiliary events started when a shutdown is armed
- Tick-driven cooperative scheduling, re-armed on every config reload
"""

from .errors import AutoShutdownError, ConfigError, ConfigParseError, ConfigRangeError
from .plan import ShutdownPlan, build_plan, format_duration
from .plugin import AutoShutdownPlugin, ShutdownEvent, ShutdownState
from .recurrence import RecurrenceMode, next_periodic, next_weekday
from .scheduler import ScheduledTask, TaskScheduler
from .settings import ShutdownAction, ShutdownConfig, load_settings

__all__ = [
    "AutoShutdownError",
    "AutoShutdownPlugin",
    "ConfigError",
    "ConfigParseError",
    "ConfigRangeError",
    "RecurrenceMode",
    "ScheduledTask",
    "ShutdownAction",
    "ShutdownConfig",
    "ShutdownEvent",
    "ShutdownPlan",
    "ShutdownState",
    "TaskScheduler",
    "build_plan",
    "format_duration",
    "load_settings",
    "next_periodic",
    "next_weekday",
]
