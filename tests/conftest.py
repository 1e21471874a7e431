"""
Global pytest configuration and fixtures for the auto-shutdown runner tests

Provides:
- Mock NATS client
- Config file writer
"""

import json
import pytest
from unittest.mock import AsyncMock, MagicMock

import yaml


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")


# ============================================================================
# Mock NATS
# ============================================================================

@pytest.fixture
def mock_nc():
    """Mock connected NATS client"""
    nc = AsyncMock()
    nc.publish = AsyncMock()
    nc.close = AsyncMock()

    sub = MagicMock()
    sub.unsubscribe = AsyncMock()
    nc.subscribe = AsyncMock(return_value=sub)
    return nc


# ============================================================================
# Config Files
# ============================================================================

@pytest.fixture
def sample_conf():
    """Full runner configuration with auto-shutdown disabled"""
    return {
        "nats": {"url": "nats://testhost:4222"},
        "logging": {"level": "debug"},
        "autoshutdown": {
            "enabled": False,
            "time": "04:00:00",
        },
    }


@pytest.fixture
def write_config(tmp_path):
    """Write a config dict as JSON or YAML and return the path"""
    def _write(conf, name="config.json"):
        path = tmp_path / name
        with open(path, "w", encoding="utf-8") as fp:
            if name.endswith((".yaml", ".yml")):
                yaml.safe_dump(conf, fp)
            else:
                json.dump(conf, fp)
        return str(path)
    return _write
