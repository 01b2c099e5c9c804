"""Time-to-live cache in front of the settings client."""

from datetime import datetime, timedelta
from typing import Callable, Optional

from notifier.domain.models import NotificationSettings
from notifier.logging import get_logger
from notifier.utils.timestamps import utc_now

from .client import SettingsClient

logger = get_logger(__name__, component="settings")

DEFAULT_TTL_SECONDS = 300


class SettingsCache:
    """Memoizes the last successful settings fetch for ttl_seconds.

    Fetch errors propagate and leave the cache untouched; an expired value is
    not served in their place. A "not configured" answer is not cached, so the
    next call asks again. Refresh is not serialized: concurrent misses may both
    hit the service.

    Args:
        client: Object with a ``fetch()`` method returning settings or None
        ttl_seconds: Lifetime of a cached value
        clock: Source of the current UTC time
    """

    def __init__(
        self,
        client: SettingsClient,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

        self._value: Optional[NotificationSettings] = None
        self._expires_at: Optional[datetime] = None

    def get_notification_settings(self) -> Optional[NotificationSettings]:
        """Return cached settings, fetching when missing or expired.

        Raises:
            SettingsFetchError: If a fetch is needed and fails
        """
        now = self.clock()
        value, expires_at = self._value, self._expires_at
        if value is not None and expires_at is not None and now < expires_at:
            return value

        settings = self.client.fetch()
        if settings is None:
            return None

        self._value = settings
        self._expires_at = now + self.ttl

        logger.debug(
            "Notification settings cached",
            extra={"event": "settings.cache.refreshed", "expires_at": self._expires_at.isoformat()},
        )
        return settings

    def invalidate(self) -> None:
        """Drop the cached value so the next call fetches."""
        self._value = None
        self._expires_at = None
