"""
plugins/autoshutdown/plugin.py

Recurring automatic shutdown/restart plugin using NATS-based architecture.

Computes the next shutdown time from the configured time-of-day (daily,
every N days, or a fixed weekday), broadcasts a pre-announcement a
configured lead time ahead, then hands the final countdown to the host.

NATS Subjects:
    Command Handlers:
        rosey.command.autoshutdown.reload - Re-read config and re-arm
        rosey.command.autoshutdown.status - Report state and next shutdown

    Events (Published):
        rosey.event.autoshutdown.armed - A new shutdown plan was armed
        rosey.event.autoshutdown.disabled - Plugin disabled (config off or invalid)
        rosey.event.autoshutdown.pre_announce - Pre-announcement sent

    Host API (via NATS, see host.py):
        rosey.chat.broadcast.send
        rosey.command.server.shutdown
        rosey.command.server.shutdown.cancel
        rosey.command.events.start
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from nats.aio.client import Client as NATS

try:
    from .errors import ConfigError
    from .host import SHUTDOWN_EXIT_CODE, ServerControl
    from .plan import TIMESTAMP_FORMAT, ShutdownPlan, build_plan, format_duration
    from .scheduler import TaskScheduler
    from .settings import ShutdownConfig, load_settings
except ImportError:
    from errors import ConfigError
    from host import SHUTDOWN_EXIT_CODE, ServerControl
    from plan import TIMESTAMP_FORMAT, ShutdownPlan, build_plan, format_duration
    from scheduler import TaskScheduler
    from settings import ShutdownConfig, load_settings


class ShutdownState(Enum):
    """Plugin state."""
    DISABLED = "disabled"
    ARMED = "armed"


class ShutdownEvent(Enum):
    """Tags of scheduled tasks, dispatched by the plugin when they fire."""
    PRE_ANNOUNCE = "pre_announce"


class AutoShutdownPlugin:
    """
    Automatic server shutdown plugin.

    Holds exactly one scheduled shutdown at a time. Every reload() cancels
    whatever was pending and arms a fresh plan, so a config reload never
    leaves a stale shutdown alongside a new one.

    Lifecycle:
        1. initialize() - reload(), subscribe, start the tick loop
        2. tick loop calls update(diff_ms) every tick_interval seconds
        3. PRE_ANNOUNCE fires: broadcast, then host shutdown countdown
        4. shutdown() - stop ticking, unsubscribe

    Args:
        nats_client: Connected NATS client for messaging.
        config: The "autoshutdown" section of the configuration.
        clock: Returns the current local time (injectable for tests).
    """

    # Plugin metadata
    NAMESPACE = "autoshutdown"
    VERSION = "1.0.0"
    DESCRIPTION = "Recurring automatic server shutdown/restart"

    # NATS subjects - Commands
    SUBJECT_RELOAD = "rosey.command.autoshutdown.reload"
    SUBJECT_STATUS = "rosey.command.autoshutdown.status"

    # NATS subjects - Events
    EVENT_ARMED = "rosey.event.autoshutdown.armed"
    EVENT_DISABLED = "rosey.event.autoshutdown.disabled"
    EVENT_PRE_ANNOUNCE = "rosey.event.autoshutdown.pre_announce"

    DEFAULT_TICK_INTERVAL = 1.0  # seconds

    def __init__(
        self,
        nats_client: NATS,
        config: Optional[Dict[str, Any]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.nats = nats_client
        self.config = config or {}
        self.logger = logging.getLogger(f"plugin.{self.NAMESPACE}")
        self.clock = clock or datetime.now

        # Runtime options (not part of the shutdown schedule)
        self.tick_interval = float(
            self.config.get("tick_interval", self.DEFAULT_TICK_INTERVAL)
        )
        self.emit_events = self.config.get("emit_events", True)

        self.host = ServerControl(
            nats_client, request_timeout=self.config.get("request_timeout", 2.0)
        )
        self.scheduler = TaskScheduler()

        self.state = ShutdownState.DISABLED
        self.settings: Optional[ShutdownConfig] = None
        self.plan: Optional[ShutdownPlan] = None
        self.last_error: Optional[str] = None

        # Serializes reload(): only one pre-announce task may ever be pending
        self._reload_lock = asyncio.Lock()

        self._subscriptions: List[Any] = []
        self._tick_task: Optional[asyncio.Task] = None
        self._running = False
        self._initialized = False

    @property
    def is_armed(self) -> bool:
        return self.state == ShutdownState.ARMED

    async def initialize(self) -> None:
        """
        Initialize the plugin.

        - Arms the first shutdown plan
        - Subscribes to NATS subjects
        - Starts the tick loop
        """
        self.logger.info(f"Initializing {self.NAMESPACE} plugin v{self.VERSION}")

        await self.reload()

        sub = await self.nats.subscribe(self.SUBJECT_RELOAD, cb=self._handle_reload)
        self._subscriptions.append(sub)

        sub = await self.nats.subscribe(self.SUBJECT_STATUS, cb=self._handle_status)
        self._subscriptions.append(sub)

        self._running = True
        self._tick_task = asyncio.create_task(self._tick_loop())

        self._initialized = True
        self.logger.info(
            f"{self.NAMESPACE} plugin loaded ({self.state.value}, "
            f"tick interval: {self.tick_interval}s)"
        )

    async def shutdown(self) -> None:
        """
        Shutdown the plugin.

        - Stops the tick loop
        - Drops pending tasks
        - Unsubscribes from NATS subjects
        """
        self._running = False

        if self._tick_task:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None

        self.scheduler.cancel_all()

        for sub in self._subscriptions:
            await sub.unsubscribe()
        self._subscriptions.clear()

        self._initialized = False
        self.logger.info(f"{self.NAMESPACE} plugin unloaded")

    # =========================================================================
    # Arming
    # =========================================================================

    async def reload(
        self,
        config: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> Optional[ShutdownPlan]:
        """
        Validate the configuration and (re)arm the shutdown.

        Validation and planning happen before any side effect. On failure,
        or when the plugin is disabled in config, pending tasks are dropped
        and the plugin stays DISABLED; the host keeps running normally.

        Concurrent calls (SIGHUP plus a reload command, or two quick
        SIGHUPs) run one after another.

        Args:
            config: Replacement configuration (default: keep the current one).
            now: Reference time (default: clock() once the reload starts).

        Returns:
            The armed plan, or None if the plugin is disabled.
        """
        async with self._reload_lock:
            return await self._reload(config, now)

    async def _reload(
        self,
        config: Optional[Dict[str, Any]],
        now: Optional[datetime]
    ) -> Optional[ShutdownPlan]:
        if config is not None:
            self.config = config
        if now is None:
            now = self.clock()

        try:
            settings = load_settings(self.config)
            plan = build_plan(settings, now) if settings.enabled else None
        except ConfigError as e:
            self.logger.error(str(e))
            await self._disable(str(e))
            return None

        if plan is None:
            self.logger.info("Auto-shutdown disabled in config")
            await self._disable(None)
            return None

        self.logger.info("System loading")

        # Only one shutdown may be pending, here or on the host
        self.scheduler.cancel_all()
        await self.host.cancel_shutdown()

        self.settings = settings
        self.plan = plan
        self.last_error = None
        self._log_plan(settings, plan)

        # Delay is relative to now: schedule before any event request
        self.scheduler.schedule(
            timedelta(seconds=plan.seconds_until_pre_announce),
            ShutdownEvent.PRE_ANNOUNCE
        )
        self.state = ShutdownState.ARMED

        await self._start_events(settings.start_events)

        if self.emit_events:
            await self._emit_event(self.EVENT_ARMED, {
                "schedule": settings.describe(),
                "action": settings.action.value,
                "plan": plan.to_dict(),
            })

        return plan

    async def _disable(self, reason: Optional[str]) -> None:
        """Drop pending tasks and go to DISABLED."""
        was_armed = self.is_armed
        self.scheduler.cancel_all()
        self.state = ShutdownState.DISABLED
        self.settings = None
        self.plan = None
        self.last_error = reason

        if self.emit_events:
            await self._emit_event(self.EVENT_DISABLED, {
                "reason": reason or "disabled in config",
                "was_armed": was_armed,
            })

    def _log_plan(self, settings: ShutdownConfig, plan: ShutdownPlan) -> None:
        if plan.period_skipped:
            self.logger.warning("Next time to shutdown < 10 seconds, set next period")

        self.logger.info(f"Schedule - {settings.describe()} ({settings.action.value})")
        self.logger.info(
            f"Next time to shutdown - {plan.next_shutdown_at.strftime(TIMESTAMP_FORMAT)}"
        )
        self.logger.info(
            f"Remaining time to shutdown - {format_duration(plan.seconds_until_shutdown, short=True)}"
        )
        self.logger.info(
            f"Next time to pre announce - {plan.next_pre_announce_at.strftime(TIMESTAMP_FORMAT)}"
        )
        self.logger.info(
            f"Remaining time to pre announce - "
            f"{format_duration(plan.seconds_until_pre_announce, short=True)}"
        )

    async def _start_events(self, event_ids: List[int]) -> None:
        """Start configured auxiliary events; failures are logged and skipped."""
        for event_id in event_ids:
            description = await self.host.start_event(event_id)
            if description is None:
                continue
            self.logger.info(f"Starting event {description} ({event_id}).")

    # =========================================================================
    # Ticking
    # =========================================================================

    async def update(self, diff_ms: int) -> None:
        """
        Advance the scheduler by diff_ms milliseconds.

        Every task that comes due is dispatched before this returns.
        No-op while DISABLED.
        """
        if not self.is_armed:
            return

        for event in self.scheduler.update(timedelta(milliseconds=diff_ms)):
            await self._dispatch(event)

    async def _dispatch(self, event: ShutdownEvent) -> None:
        if event == ShutdownEvent.PRE_ANNOUNCE:
            await self._pre_announce()
        else:
            self.logger.warning(f"Unknown scheduled event: {event!r}")

    async def _pre_announce(self) -> None:
        """
        Broadcast the countdown message and start the host's countdown.

        From here on the host owns the final countdown and termination.
        """
        settings, plan = self.settings, self.plan
        if settings is None or plan is None:
            return

        seconds = plan.effective_pre_announce_seconds
        message = settings.format_message(format_duration(seconds))

        self.logger.info(message)

        await self.host.broadcast(message, "autoshutdown_pre_announce")
        await self.host.shutdown(seconds, settings.action, SHUTDOWN_EXIT_CODE)

        if self.emit_events:
            await self._emit_event(self.EVENT_PRE_ANNOUNCE, {
                "message": message,
                "seconds": seconds,
                "action": settings.action.value,
            })

    async def _tick_loop(self) -> None:
        """
        Periodic tick driving update().

        Elapsed time is measured with the monotonic clock; the remainder
        below one millisecond carries over to the next tick.
        """
        self.logger.debug("Tick loop started")
        last = time.monotonic()

        while self._running:
            try:
                await asyncio.sleep(self.tick_interval)
                diff_ms = int((time.monotonic() - last) * 1000)
                last += diff_ms / 1000.0
                await self.update(diff_ms)

            except asyncio.CancelledError:
                self.logger.debug("Tick loop cancelled")
                raise
            except Exception as e:
                self.logger.exception(f"Error in tick loop: {e}")

        self.logger.debug("Tick loop ended")

    # =========================================================================
    # Command Handlers
    # =========================================================================

    def status(self) -> Dict[str, Any]:
        """
        Current state and plan.

        Returns:
            Dictionary suitable for a JSON reply.
        """
        result: Dict[str, Any] = {
            "state": self.state.value,
            "plan": None,
        }
        if self.last_error:
            result["error"] = self.last_error

        if self.is_armed and self.settings and self.plan:
            remaining = int((self.plan.next_shutdown_at - self.clock()).total_seconds())
            result.update({
                "schedule": self.settings.describe(),
                "action": self.settings.action.value,
                "plan": self.plan.to_dict(),
                "remaining": format_duration(remaining),
            })
        return result

    async def _handle_reload(self, msg) -> None:
        """
        Handle a reload request.

        Message format:
        {
            "config": {...},            # optional replacement config
            "reply_to": "rosey.reply.xyz"
        }
        """
        reply_to = None
        try:
            data = json.loads(msg.data.decode()) if msg.data else {}
            reply_to = data.get("reply_to") or msg.reply

            new_config = data.get("config")
            if new_config is not None and not isinstance(new_config, dict):
                await self._send_reply(reply_to, {
                    "success": False,
                    "error": "'config' must be an object"
                })
                return

            plan = await self.reload(config=new_config)

            response: Dict[str, Any] = {
                "success": plan is not None or self.last_error is None,
                "result": self.status(),
            }
            if self.last_error:
                response["error"] = self.last_error
            await self._send_reply(reply_to, response)

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in reload request: {e}")
        except Exception as e:
            self.logger.exception(f"Error handling reload: {e}")
            if reply_to:
                await self._send_reply(reply_to, {
                    "success": False,
                    "error": "An error occurred reloading auto-shutdown."
                })

    async def _handle_status(self, msg) -> None:
        """Handle a status request."""
        try:
            data = json.loads(msg.data.decode()) if msg.data else {}
            reply_to = data.get("reply_to") or msg.reply

            await self._send_reply(reply_to, {
                "success": True,
                "result": self.status(),
            })

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in status request: {e}")
        except Exception as e:
            self.logger.exception(f"Error handling status: {e}")

    # =========================================================================
    # Utility Methods
    # =========================================================================

    async def _send_reply(self, reply_to: Optional[str], response: dict) -> None:
        if reply_to:
            await self.nats.publish(reply_to, json.dumps(response).encode())

    async def _emit_event(self, event_type: str, data: dict) -> None:
        """
        Emit an event via NATS.

        Args:
            event_type: The event subject.
            data: Event data.
        """
        event = {
            "event": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **data
        }
        await self.nats.publish(event_type, json.dumps(event).encode())
