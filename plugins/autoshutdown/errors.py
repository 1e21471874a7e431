"""
plugins/autoshutdown/errors.py

Auto-shutdown exceptions.
"""


class AutoShutdownError(Exception):
    """Base exception for auto-shutdown errors."""
    pass


class ConfigError(AutoShutdownError):
    """Plugin configuration invalid; the plugin stays disabled."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class ConfigParseError(ConfigError):
    """Option could not be parsed (e.g. malformed time string)."""
    pass


class ConfigRangeError(ConfigError):
    """Option parsed but is outside its allowed bounds."""
    pass
