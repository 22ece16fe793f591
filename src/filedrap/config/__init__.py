"""Configuration management for FileDrap."""

from .exceptions import ConfigError
from .manager import CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH, ConfigManager, parse_env_overrides
from .models import FiledrapConfig
from .resolver import ENV_PREFIX, assign_dotted, flatten_for_env, resolve_with_precedence

__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "CONFIG_PATH_ENV",
    "ENV_PREFIX",
    "FiledrapConfig",
    "resolve_with_precedence",
    "parse_env_overrides",
    "flatten_for_env",
    "assign_dotted",
    "ConfigError",
]
