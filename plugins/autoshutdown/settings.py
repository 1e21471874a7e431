"""
plugins/autoshutdown/settings.py

Configuration model and validation for the auto-shutdown plugin.

Provides:
- ShutdownAction: shutdown vs. restart (host shutdown mask)
- ShutdownConfig: validated scheduling options
- parse_time_of_day(): "HH:MM:SS" parsing
- load_settings(): build a ShutdownConfig from the plugin config dict
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

try:
    from .errors import ConfigParseError, ConfigRangeError
    from .recurrence import RecurrenceMode, describe
except ImportError:
    from errors import ConfigParseError, ConfigRangeError
    from recurrence import RecurrenceMode, describe


logger = logging.getLogger(__name__)

DAY = 86400
HOUR = 3600

MAX_EVERY_DAYS = 365
MAX_PRE_ANNOUNCE_SECONDS = DAY
# Replacement lead time when the configured one exceeds a day
CLAMPED_PRE_ANNOUNCE_SECONDS = HOUR

# Time tokens must fit in an unsigned byte before range checks apply
MAX_TIME_TOKEN = 255

DEFAULT_TIME = "04:00:00"
DEFAULT_MESSAGE = "[SERVER]: Automated server restart(shutdown) in {}"

_DIGITS = re.compile(r'[0-9]+')
_INTEGER = re.compile(r'-?[0-9]+')


class ShutdownAction(Enum):
    """What the host does when the countdown ends."""
    SHUTDOWN = "shutdown"
    RESTART = "restart"

    @property
    def mask(self) -> str:
        """Host shutdown mask name."""
        return "idle" if self is ShutdownAction.SHUTDOWN else "restart"


@dataclass
class ShutdownConfig:
    """
    Validated auto-shutdown options.

    Attributes:
        enabled: Master switch.
        hour: Target hour (0-23).
        minute: Target minute (0-59).
        second: Target second (0-59).
        weekday: Target weekday (0=Sunday) or None for periodic mode.
        every_days: Periodic interval in days (1-365).
        pre_announce_seconds: Lead time of the announcement (<= 1 day).
        pre_announce_message: Template with one "{}" placeholder.
        action: Shutdown or restart.
        start_events: Auxiliary event ids started when armed.
        pre_announce_clamped: True if the configured lead time was clamped.
    """
    enabled: bool = False
    hour: int = 4
    minute: int = 0
    second: int = 0
    weekday: Optional[int] = None
    every_days: int = 1
    pre_announce_seconds: int = HOUR
    pre_announce_message: str = DEFAULT_MESSAGE
    action: ShutdownAction = ShutdownAction.RESTART
    start_events: List[int] = field(default_factory=list)
    pre_announce_clamped: bool = False

    @property
    def mode(self) -> RecurrenceMode:
        """Weekly mode wins whenever a weekday is set."""
        if self.weekday is not None:
            return RecurrenceMode.WEEKLY
        return RecurrenceMode.PERIODIC

    @property
    def time_str(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"

    def describe(self) -> str:
        """Human-readable recurrence, e.g. "Every Monday at 04:00:00"."""
        return describe(
            self.mode, self.hour, self.minute, self.second,
            weekday=self.weekday if self.weekday is not None else -1,
            every_days=self.every_days
        )

    def format_message(self, duration: str) -> str:
        return self.pre_announce_message.format(duration)


def parse_time_of_day(value: Any) -> Tuple[int, int, int]:
    """
    Parse "HH:MM:SS" into (hour, minute, second).

    Empty tokens are ignored, so "04::00:00" reads as "04:00:00". Range
    checks (hour <= 23 etc.) are left to the caller.

    Args:
        value: Configured time string.

    Returns:
        Tuple of (hour, minute, second).

    Raises:
        ConfigParseError: Wrong token count or a token that is not an
            unsigned 8-bit integer.
    """
    text = str(value)
    tokens = [token for token in text.split(":") if token]

    if len(tokens) != 3:
        raise ConfigParseError(
            f"Incorrect time in config option 'time' - '{text}'", key="time"
        )

    parts = []
    for token in tokens:
        if not _DIGITS.fullmatch(token) or int(token) > MAX_TIME_TOKEN:
            raise ConfigParseError(
                f"Incorrect time in config option 'time' - '{text}'", key="time"
            )
        parts.append(int(token))

    return parts[0], parts[1], parts[2]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        raise ConfigParseError(f"Config option '{key}' must be an integer - '{value}'", key=key)
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not _INTEGER.fullmatch(text):
        raise ConfigParseError(f"Config option '{key}' must be an integer - '{value}'", key=key)
    return int(text)


def _parse_start_events(value: Any) -> List[int]:
    """Parse "1 2 3" or [1, 2, 3] into event ids, skipping blank entries."""
    if value is None:
        return []
    tokens = value.split() if isinstance(value, str) else list(value)

    events = []
    for token in tokens:
        if token is None or (isinstance(token, str) and not token.strip()):
            logger.debug("Skipping blank entry in 'start_events'")
            continue
        event_id = _as_int(token, "start_events")
        if event_id < 0:
            raise ConfigRangeError(
                f"Incorrect event id in config option 'start_events' - '{token}'",
                key="start_events"
            )
        events.append(event_id)
    return events


def load_settings(config: Optional[Dict[str, Any]] = None) -> ShutdownConfig:
    """
    Build a validated ShutdownConfig from the plugin configuration dict.

    A disabled config is returned without validating the other options.

    Args:
        config: The "autoshutdown" section of the config file.

    Returns:
        ShutdownConfig instance.

    Raises:
        ConfigParseError: An option could not be parsed.
        ConfigRangeError: An option is outside its allowed bounds.
    """
    config = config or {}

    if not _as_bool(config.get("enabled", False)):
        return ShutdownConfig(enabled=False)

    time_value = config.get("time", DEFAULT_TIME)
    hour, minute, second = parse_time_of_day(time_value)

    weekday = _as_int(config.get("weekday", -1), "weekday")
    every_days = _as_int(config.get("every_days", 1), "every_days")

    if every_days < 1 or every_days > MAX_EVERY_DAYS:
        raise ConfigRangeError(
            f"Incorrect day in config option 'every_days' - '{every_days}'",
            key="every_days"
        )
    if hour > 23:
        raise ConfigRangeError(
            f"Incorrect hour in config option 'time' - '{time_value}'", key="time"
        )
    if minute >= 60:
        raise ConfigRangeError(
            f"Incorrect minute in config option 'time' - '{time_value}'", key="time"
        )
    if second >= 60:
        raise ConfigRangeError(
            f"Incorrect second in config option 'time' - '{time_value}'", key="time"
        )

    pre_announce = config.get("pre_announce") or {}
    pre_announce_seconds = _as_int(
        pre_announce.get("seconds", HOUR), "pre_announce.seconds"
    )
    if pre_announce_seconds < 0:
        raise ConfigRangeError(
            f"Incorrect value in config option 'pre_announce.seconds' - "
            f"'{pre_announce_seconds}'",
            key="pre_announce.seconds"
        )

    clamped = False
    if pre_announce_seconds > MAX_PRE_ANNOUNCE_SECONDS:
        logger.warning(
            f"Pre-announce time set to more than 1 day ({pre_announce_seconds}). "
            f"Changed to 1 hour ({CLAMPED_PRE_ANNOUNCE_SECONDS})"
        )
        pre_announce_seconds = CLAMPED_PRE_ANNOUNCE_SECONDS
        clamped = True

    message = str(pre_announce.get("message", DEFAULT_MESSAGE))
    try:
        message.format("1 hour")
    except (IndexError, KeyError, ValueError) as e:
        raise ConfigParseError(
            f"Incorrect template in config option 'pre_announce.message' - "
            f"'{message}' ({e})",
            key="pre_announce.message"
        ) from e

    action_value = str(config.get("action", "restart")).strip().lower()
    if action_value == ShutdownAction.SHUTDOWN.value:
        action = ShutdownAction.SHUTDOWN
    else:
        if action_value != ShutdownAction.RESTART.value:
            logger.warning(f"Unknown action '{action_value}', using 'restart'")
        action = ShutdownAction.RESTART

    return ShutdownConfig(
        enabled=True,
        hour=hour,
        minute=minute,
        second=second,
        weekday=weekday if 0 <= weekday <= 6 else None,
        every_days=every_days,
        pre_announce_seconds=pre_announce_seconds,
        pre_announce_message=message,
        action=action,
        start_events=_parse_start_events(config.get("start_events", "")),
        pre_announce_clamped=clamped,
    )
