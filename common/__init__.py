"""Common utilities for the auto-shutdown runner."""
from .config import configure_logger, get_config, get_nats_url, load_config

__all__ = ['get_config', 'get_nats_url', 'load_config', 'configure_logger']
