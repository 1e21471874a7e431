"""
Next-occurrence calculation for the auto-shutdown plugin.

Two recurrence modes are supported:
- periodic: "every N days at HH:MM:SS"
- weekly:   "every <weekday> at HH:MM:SS"

Weekdays are numbered Sunday=0 .. Saturday=6. All datetimes are wall-clock
(local calendar) values; the functions here never read the current time
themselves, so results are reproducible for a given "now".
"""

from datetime import datetime, timedelta
from enum import Enum


class RecurrenceMode(Enum):
    """Which rule picks the next shutdown date."""
    PERIODIC = "periodic"
    WEEKLY = "weekly"


# Day names for display, Sunday first
DAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']

DAYS_PER_WEEK = 7


def weekday_of(moment: datetime) -> int:
    """Weekday of a datetime with Sunday=0."""
    return moment.isoweekday() % DAYS_PER_WEEK


def _at_time_of_day(moment: datetime, hour: int, minute: int, second: int) -> datetime:
    return moment.replace(hour=hour, minute=minute, second=second, microsecond=0)


def next_periodic(
    now: datetime,
    period_days: int,
    hour: int,
    minute: int,
    second: int
) -> datetime:
    """
    Calculate the next "every N days" occurrence.

    A one-day period lands today if the target time is still ahead,
    otherwise tomorrow. Longer periods always land ``period_days`` days
    after today, even if today's target time has not passed yet.

    Args:
        now: Reference time.
        period_days: Interval in days (>= 1).
        hour: Target hour (0-23).
        minute: Target minute (0-59).
        second: Target second (0-59).

    Returns:
        Next occurrence at exactly hour:minute:second.
    """
    candidate = _at_time_of_day(now, hour, minute, second)

    if period_days > 1 or candidate <= now:
        candidate += timedelta(days=period_days)

    return candidate


def next_weekday(
    now: datetime,
    weekday: int,
    hour: int,
    minute: int,
    second: int
) -> datetime:
    """
    Calculate the next weekly occurrence.

    If ``weekday`` is today, today's slot is used only while the target
    time is still ahead. Hours and minutes compare strictly, seconds
    compare "at or past", so a target of exactly ``now`` rolls over to
    next week.

    Args:
        now: Reference time.
        weekday: Target weekday (0=Sunday, 6=Saturday).
        hour: Target hour (0-23).
        minute: Target minute (0-59).
        second: Target second (0-59).

    Returns:
        Next occurrence, at most 7 days after ``now``.
    """
    days_until = (weekday - weekday_of(now) + DAYS_PER_WEEK) % DAYS_PER_WEEK

    if days_until == 0:
        if (now.hour > hour or
                (now.hour == hour and now.minute > minute) or
                (now.hour == hour and now.minute == minute and now.second >= second)):
            days_until = DAYS_PER_WEEK

    return _at_time_of_day(now, hour, minute, second) + timedelta(days=days_until)


def period_of(mode: RecurrenceMode, every_days: int) -> timedelta:
    """Length of one full recurrence period."""
    if mode == RecurrenceMode.WEEKLY:
        return timedelta(days=DAYS_PER_WEEK)
    return timedelta(days=every_days)


def describe(
    mode: RecurrenceMode,
    hour: int,
    minute: int,
    second: int,
    weekday: int = -1,
    every_days: int = 1
) -> str:
    """
    Human-readable description of a recurrence.

    Returns:
        Description like "Every Monday at 04:00:00" or "Every 3 days at 04:00:00"
    """
    time_str = f"{hour:02d}:{minute:02d}:{second:02d}"

    if mode == RecurrenceMode.WEEKLY:
        day_name = DAY_NAMES[weekday] if 0 <= weekday < DAYS_PER_WEEK else "?"
        return f"Every {day_name} at {time_str}"
    if every_days == 1:
        return f"Every day at {time_str}"
    return f"Every {every_days} days at {time_str}"
