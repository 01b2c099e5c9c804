"""HTTP client for the notification settings endpoint of the content service."""

import logging
from typing import Any, Dict, Optional

import requests

from notifier.domain.models import NotificationSettings
from notifier.logging import get_logger

from .exceptions import SettingsFetchError

logger = get_logger(__name__, component="settings")

SETTINGS_PATH = "/api/notification-setting"


class SettingsClient:
    """Fetches NotificationSettings from the content service.

    A 404, or a body without a ``data`` member, means the operator has not
    configured notifications yet and yields None. Any other failure raises
    SettingsFetchError.
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout: int = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = base_url.rstrip("/") + SETTINGS_PATH
        self.timeout = timeout

        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if api_token:
            self._session.headers.update({"Authorization": f"Bearer {api_token}"})

    def fetch(self) -> Optional[NotificationSettings]:
        """Fetch the current settings.

        Returns:
            NotificationSettings, or None when not configured

        Raises:
            SettingsFetchError: On transport errors, non-404 error statuses or invalid JSON
        """
        logger.debug(
            f"HTTP GET request to {self.url}",
            extra={"event": "settings.fetch.request", "url": self.url, "timeout": self.timeout},
        )

        try:
            response = self._session.get(self.url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error(
                f"Settings request timed out after {self.timeout}s",
                extra={"event": "settings.fetch.failed", "error_type": "Timeout", "url": self.url},
            )
            raise SettingsFetchError(f"Settings request timed out: {e}", url=self.url) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Settings request failed: {e}",
                extra={
                    "event": "settings.fetch.failed",
                    "error_type": type(e).__name__,
                    "url": self.url,
                },
            )
            raise SettingsFetchError(f"Settings request failed: {e}", url=self.url) from e

        if response.status_code == 404:
            logger.info(
                "Notification settings not configured",
                extra={"event": "settings.fetch.not_configured", "url": self.url},
            )
            return None

        if response.status_code >= 400:
            log_level = logging.ERROR if response.status_code >= 500 else logging.WARNING
            logger.log(
                log_level,
                f"HTTP {response.status_code} error from {self.url}",
                extra={
                    "event": "settings.fetch.failed",
                    "status_code": response.status_code,
                    "url": self.url,
                },
            )
            raise SettingsFetchError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=self.url,
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(
                f"Failed to parse JSON response from {self.url}",
                extra={"event": "settings.fetch.failed", "error_type": "JSONDecodeError"},
            )
            raise SettingsFetchError(
                f"Failed to parse settings response: {e}",
                status_code=response.status_code,
                url=self.url,
            ) from e

        attributes = _extract_attributes(body)
        if attributes is None:
            logger.info(
                "Settings response has no data",
                extra={"event": "settings.fetch.not_configured", "url": self.url},
            )
            return None

        logger.debug(
            "Notification settings fetched",
            extra={"event": "settings.fetch.succeeded", "status_code": response.status_code},
        )
        return NotificationSettings.from_payload(attributes)

    def close(self) -> None:
        self._session.close()


def _extract_attributes(body: Any) -> Optional[Dict[str, Any]]:
    """Return the settings fields, unwrapping the ``data.attributes`` nesting when present."""
    if not isinstance(body, dict):
        return None

    data = body.get("data")
    if not isinstance(data, dict):
        return None

    attributes = data.get("attributes")
    if isinstance(attributes, dict):
        return attributes

    return data
