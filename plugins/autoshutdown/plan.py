"""
plugins/autoshutdown/plan.py

Shutdown plan model and builder.

Provides:
- ShutdownPlan dataclass (pre-announce at T1, shutdown at T2)
- build_plan() turning a validated config and "now" into a plan
- Human-readable duration formatting
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

try:
    from .recurrence import RecurrenceMode, next_periodic, next_weekday, period_of
    from .settings import ShutdownConfig
except ImportError:
    from recurrence import RecurrenceMode, next_periodic, next_weekday, period_of
    from settings import ShutdownConfig


# Occurrences closer than this are treated as already consumed
MIN_SECONDS_UNTIL_SHUTDOWN = 10

# Delay of a collapsed pre-announce
IMMEDIATE_PRE_ANNOUNCE_SECONDS = 1

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


# =============================================================================
# Duration Formatting
# =============================================================================

def format_duration(total_seconds: int, short: bool = False) -> str:
    """
    Format a number of seconds as a human-readable string.

    Args:
        total_seconds: Duration in seconds.
        short: If True, use abbreviated format (e.g., "1d 4h 30m 5s").

    Returns:
        Human-readable duration, e.g. "1 hour, 30 minutes".
    """
    total_seconds = max(0, int(total_seconds))

    days = total_seconds // 86400
    hours = (total_seconds % 86400) // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60

    if short:
        parts = []
        if days > 0:
            parts.append(f"{days}d")
        if hours > 0:
            parts.append(f"{hours}h")
        if minutes > 0:
            parts.append(f"{minutes}m")
        if seconds > 0 or not parts:
            parts.append(f"{seconds}s")
        return " ".join(parts)

    parts = []
    if days > 0:
        parts.append(f"{days} day{'s' if days != 1 else ''}")
    if hours > 0:
        parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
    if minutes > 0:
        parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
    if seconds > 0 or not parts:
        parts.append(f"{seconds} second{'s' if seconds != 1 else ''}")
    return ", ".join(parts)


# =============================================================================
# Plan Model
# =============================================================================

@dataclass(frozen=True)
class ShutdownPlan:
    """
    A concrete two-event plan.

    Attributes:
        mode: Recurrence mode that produced the shutdown time.
        now: Reference time the plan was built for (whole seconds).
        next_shutdown_at: When the host should go down.
        next_pre_announce_at: When the announcement is broadcast.
        seconds_until_shutdown: next_shutdown_at - now.
        seconds_until_pre_announce: next_pre_announce_at - now.
        effective_pre_announce_seconds: Countdown handed to the host at
            pre-announce time. Never more than seconds_until_shutdown.
        pre_announce_collapsed: True if there was not enough runway for
            the full lead time and the announcement fires right away.
        period_skipped: True if the naive occurrence was too close and the
            plan moved one full period ahead.
    """
    mode: RecurrenceMode
    now: datetime
    next_shutdown_at: datetime
    next_pre_announce_at: datetime
    seconds_until_shutdown: int
    seconds_until_pre_announce: int
    effective_pre_announce_seconds: int
    pre_announce_collapsed: bool = False
    period_skipped: bool = False

    def to_dict(self) -> dict:
        """
        Convert plan to dictionary for JSON replies and events.

        Returns:
            Dictionary with ISO timestamps and second counts.
        """
        return {
            "mode": self.mode.value,
            "next_shutdown_at": self.next_shutdown_at.isoformat(),
            "next_pre_announce_at": self.next_pre_announce_at.isoformat(),
            "seconds_until_shutdown": self.seconds_until_shutdown,
            "seconds_until_pre_announce": self.seconds_until_pre_announce,
            "effective_pre_announce_seconds": self.effective_pre_announce_seconds,
            "pre_announce_collapsed": self.pre_announce_collapsed,
            "period_skipped": self.period_skipped,
        }


def _seconds_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds())


def build_plan(config: ShutdownConfig, now: Optional[datetime] = None) -> ShutdownPlan:
    """
    Build the shutdown plan for a validated config.

    Args:
        config: Validated configuration.
        now: Reference time (default: local now). Truncated to whole seconds.

    Returns:
        ShutdownPlan for the next occurrence.
    """
    if now is None:
        now = datetime.now()
    now = now.replace(microsecond=0)

    mode = config.mode
    if mode == RecurrenceMode.WEEKLY:
        shutdown_at = next_weekday(
            now, config.weekday, config.hour, config.minute, config.second
        )
    else:
        shutdown_at = next_periodic(
            now, config.every_days, config.hour, config.minute, config.second
        )

    skipped = False
    until_shutdown = _seconds_between(now, shutdown_at)
    if until_shutdown < MIN_SECONDS_UNTIL_SHUTDOWN:
        skipped = True
        shutdown_at += period_of(mode, config.every_days)
        until_shutdown = _seconds_between(now, shutdown_at)

    lead = config.pre_announce_seconds
    collapsed = False
    pre_announce_at = shutdown_at - timedelta(seconds=lead)
    until_pre_announce = _seconds_between(now, pre_announce_at)

    if until_shutdown < lead:
        pre_announce_at = now + timedelta(seconds=IMMEDIATE_PRE_ANNOUNCE_SECONDS)
        until_pre_announce = IMMEDIATE_PRE_ANNOUNCE_SECONDS
        lead = until_shutdown
        collapsed = True

    return ShutdownPlan(
        mode=mode,
        now=now,
        next_shutdown_at=shutdown_at,
        next_pre_announce_at=pre_announce_at,
        seconds_until_shutdown=until_shutdown,
        seconds_until_pre_announce=until_pre_announce,
        effective_pre_announce_seconds=lead,
        pre_announce_collapsed=collapsed,
        period_skipped=skipped,
    )
