"""Configuration failures."""

from filedrap.errors import FiledrapError


class ConfigError(FiledrapError):
    """Raised when a configuration file, override, or value is invalid."""
