"""
plugins/autoshutdown/scheduler.py

Tick-driven cooperative task scheduler.

Tasks carry a remaining delay that is advanced by an external periodic
tick (update()). Nothing here reads the clock or starts background tasks;
the owner decides how often to tick and with what elapsed time.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, List, Optional


@dataclass(eq=False)
class ScheduledTask:
    """
    A pending task.

    Attributes:
        delay: Original delay, used to re-arm repeating tasks.
        remaining: Time left before the task fires.
        event: Tag handed back to the owner when the task fires.
        callback: Optional zero-argument callable run when the task fires.
        fires_once: If False, the task is re-armed with ``delay`` after firing.
    """
    delay: timedelta
    remaining: timedelta
    event: Any = None
    callback: Optional[Callable[[], Any]] = None
    fires_once: bool = True

    @property
    def is_due(self) -> bool:
        return self.remaining <= timedelta(0)


class TaskScheduler:
    """
    Single-threaded delay queue.

    Due tasks fire synchronously inside update(), in the order they were
    scheduled; callbacks run to completion before update() returns.

    Usage::

        scheduler = TaskScheduler()
        scheduler.schedule(timedelta(seconds=30), "announce")
        fired = scheduler.update(timedelta(milliseconds=50))
    """

    def __init__(self):
        self._pending: List[ScheduledTask] = []
        self.logger = logging.getLogger(f"{__name__}.scheduler")

    def schedule(
        self,
        delay: timedelta,
        event: Any = None,
        callback: Optional[Callable[[], Any]] = None,
        fires_once: bool = True
    ) -> ScheduledTask:
        """
        Add a task.

        Args:
            delay: Time until the task fires.
            event: Tag returned by update() when the task fires.
            callback: Optional zero-argument callable to run on fire.
            fires_once: False to re-arm the task after each fire.

        Returns:
            The scheduled task.

        Raises:
            ValueError: If a repeating task has a non-positive delay.
        """
        if not fires_once and delay <= timedelta(0):
            raise ValueError("Repeating tasks need a positive delay")

        task = ScheduledTask(
            delay=delay,
            remaining=delay,
            event=event,
            callback=callback,
            fires_once=fires_once,
        )
        self._pending.append(task)
        self.logger.debug(f"Scheduled task {event!r} in {delay}")
        return task

    def cancel_all(self) -> int:
        """
        Drop every pending task.

        Returns:
            Number of tasks dropped.
        """
        count = len(self._pending)
        self._pending.clear()
        if count:
            self.logger.debug(f"Cancelled {count} pending task(s)")
        return count

    def update(self, elapsed: timedelta) -> List[Any]:
        """
        Advance all pending tasks by ``elapsed`` and fire the due ones.

        Args:
            elapsed: Time since the previous update.

        Returns:
            Events of the tasks that fired, in firing order.

        Raises:
            ValueError: If elapsed is negative.
        """
        if elapsed < timedelta(0):
            raise ValueError("elapsed must not be negative")

        # Snapshot: callbacks may schedule or cancel tasks
        tasks = list(self._pending)
        for task in tasks:
            task.remaining -= elapsed

        fired = []
        for task in tasks:
            if not task.is_due or task not in self._pending:
                continue

            if task.fires_once:
                self._pending.remove(task)
            else:
                while task.remaining <= timedelta(0):
                    task.remaining += task.delay

            if task.callback is not None:
                task.callback()
            fired.append(task.event)
            self.logger.debug(f"Task {task.event!r} fired")

        return fired

    @property
    def pending_count(self) -> int:
        """Number of pending tasks."""
        return len(self._pending)

    def is_empty(self) -> bool:
        return not self._pending

    def next_due(self) -> Optional[timedelta]:
        """Smallest remaining delay, or None if nothing is pending."""
        if not self._pending:
            return None
        return min(task.remaining for task in self._pending)
