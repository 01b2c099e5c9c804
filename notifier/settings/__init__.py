"""Notification settings from the content service, cached with a TTL."""

from .cache import SettingsCache
from .client import SettingsClient
from .exceptions import SettingsFetchError

__all__ = ["SettingsCache", "SettingsClient", "SettingsFetchError"]
