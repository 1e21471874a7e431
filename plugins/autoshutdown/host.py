"""
plugins/autoshutdown/host.py

Host collaborators reached over NATS.

The server process that owns chat broadcast, auxiliary events and process
termination listens on these subjects:

    Publish:
        rosey.chat.broadcast.send - Server-wide chat message
        rosey.command.server.shutdown - Begin host shutdown/restart countdown
        rosey.command.server.shutdown.cancel - Cancel a countdown in progress
    Request/Reply:
        rosey.command.events.start - Start an auxiliary event by id
"""

import asyncio
import json
import logging
from typing import Any, Optional

from nats.errors import NoRespondersError

try:
    from .settings import ShutdownAction
except ImportError:
    from settings import ShutdownAction


# Exit code handed to the host for both shutdown and restart
SHUTDOWN_EXIT_CODE = 0


class ServerControl:
    """
    Thin NATS wrapper around the host's broadcast, event and shutdown APIs.

    Args:
        nats_client: Connected NATS client.
        request_timeout: Seconds to wait for request/reply calls.
    """

    SUBJECT_BROADCAST = "rosey.chat.broadcast.send"
    SUBJECT_SHUTDOWN = "rosey.command.server.shutdown"
    SUBJECT_SHUTDOWN_CANCEL = "rosey.command.server.shutdown.cancel"
    SUBJECT_EVENT_START = "rosey.command.events.start"

    def __init__(self, nats_client: Any, request_timeout: float = 2.0):
        self.nats = nats_client
        self.request_timeout = request_timeout
        self.logger = logging.getLogger(f"{__name__}.ServerControl")

    async def broadcast(self, message: str, message_type: str = "autoshutdown") -> None:
        """Send a server-wide chat message."""
        await self.nats.publish(
            self.SUBJECT_BROADCAST,
            json.dumps({
                "message": message,
                "type": message_type,
            }).encode()
        )

    async def shutdown(
        self,
        delay: int,
        action: ShutdownAction,
        exit_code: int = SHUTDOWN_EXIT_CODE
    ) -> None:
        """
        Ask the host to begin its own shutdown countdown.

        Args:
            delay: Seconds until the host terminates.
            action: Shutdown (idle mask) or restart.
            exit_code: Process exit code.
        """
        await self.nats.publish(
            self.SUBJECT_SHUTDOWN,
            json.dumps({
                "delay": int(delay),
                "mask": action.mask,
                "exit_code": exit_code,
            }).encode()
        )
        self.logger.debug(f"Requested host {action.mask} in {delay}s")

    async def cancel_shutdown(self) -> None:
        """Cancel any host shutdown already in progress."""
        await self.nats.publish(self.SUBJECT_SHUTDOWN_CANCEL, b"{}")

    async def start_event(self, event_id: int) -> Optional[str]:
        """
        Start an auxiliary event.

        Args:
            event_id: Host event id.

        Returns:
            Event description reported by the host, or None if the host
            did not answer or refused.
        """
        try:
            response = await self.nats.request(
                self.SUBJECT_EVENT_START,
                json.dumps({"event_id": event_id}).encode(),
                timeout=self.request_timeout
            )
            result = json.loads(response.data.decode())

        except (asyncio.TimeoutError, NoRespondersError):
            self.logger.error(f"NATS timeout starting event {event_id}")
            return None
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON starting event {event_id}: {e}")
            return None

        if not result.get("success"):
            self.logger.error(
                f"Host refused to start event {event_id}: "
                f"{result.get('error', 'unknown')}"
            )
            return None

        return result.get("description") or ""
