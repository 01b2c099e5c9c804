"""Configuration management for the notification worker."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config
from .models import (
    AppConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    SessionConfig,
    SettingsCacheConfig,
    WorkerConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "WorkerConfig",
    "SessionConfig",
    "SettingsCacheConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
