"""Pytest configuration and fixtures for auto-shutdown plugin tests."""

import sys
from pathlib import Path

# Add plugin directory to path for local imports
PLUGIN_DIR = Path(__file__).parent.parent
if str(PLUGIN_DIR) not in sys.path:
    sys.path.insert(0, str(PLUGIN_DIR))

import json
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock


# Monday Jan 13, 2025
MONDAY = datetime(2025, 1, 13)


class FakeClock:
    """Settable clock for the plugin."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    """Clock frozen at Monday 2025-01-13 00:00:00."""
    return FakeClock(MONDAY)


@pytest.fixture
def mock_nats():
    """Create a mock NATS client for testing."""
    nats = AsyncMock()
    nats.publish = AsyncMock()

    # Track subscriptions
    nats._subscriptions = []

    async def mock_subscribe(subject, cb=None):
        sub = MagicMock()
        sub.subject = subject
        sub.callback = cb
        sub.unsubscribe = AsyncMock()
        nats._subscriptions.append(sub)
        return sub

    nats.subscribe = mock_subscribe

    # Host answers every event start with a description
    async def mock_request(subject, data, timeout=2.0):
        response = MagicMock()
        payload = json.loads(data.decode())
        response.data = json.dumps({
            "success": True,
            "description": f"Event {payload.get('event_id')}",
        }).encode()
        return response

    nats.request = AsyncMock(side_effect=mock_request)

    return nats


@pytest.fixture
def mock_message():
    """Factory for creating mock NATS messages."""
    def _make_message(data: dict, reply_to: str = None):
        msg = MagicMock()
        msg.data = json.dumps(data).encode()
        msg.reply = reply_to
        return msg
    return _make_message


@pytest.fixture
def plugin_config():
    """Enabled daily restart at 04:00:00 with a one hour lead time."""
    return {
        "enabled": True,
        "time": "04:00:00",
        "every_days": 1,
        "pre_announce": {
            "seconds": 3600,
            "message": "[SERVER]: Automated server restart in {}",
        },
        "action": "restart",
        "start_events": "",
        "tick_interval": 0.01,
    }


@pytest.fixture
def published():
    """Decoded payloads published to a subject."""
    def _published(nats, subject):
        return [
            json.loads(call.args[1].decode())
            for call in nats.publish.call_args_list
            if call.args[0] == subject
        ]
    return _published
