"""Configuration package exports."""

from .loader import ConfigError, load_config
from .models import SyncConfig, parse_duration

__all__ = [
    "ConfigError",
    "SyncConfig",
    "load_config",
    "parse_duration",
]
