"""Environment variable loading and validation."""

import os
from typing import Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import ConfigurationError

DEFAULT_TIMEZONE = "America/Sao_Paulo"
DEFAULT_SESSION_AUTH_DIR = "./session-auth"
DEFAULT_BRIDGE_URL = "http://127.0.0.1:8085"


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        database_url: str,
        settings_api_url: str,
        settings_api_token: str,
        session_auth_dir: Optional[str] = None,
        business_timezone: Optional[str] = None,
        transport_bridge_url: Optional[str] = None,
        log_level: Optional[str] = None,
    ):
        self.database_url = database_url
        self.settings_api_url = settings_api_url
        self.settings_api_token = settings_api_token
        self.session_auth_dir = session_auth_dir or DEFAULT_SESSION_AUTH_DIR
        self.business_timezone = business_timezone or DEFAULT_TIMEZONE
        self.transport_bridge_url = transport_bridge_url or DEFAULT_BRIDGE_URL
        self.log_level = log_level


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required environment variables:
    - DATABASE_URL: Database holding appointments, events and the job queue
    - SETTINGS_API_URL: Base URL of the content/settings service
    - SETTINGS_API_TOKEN: Bearer token for the settings service

    Optional environment variables:
    - SESSION_AUTH_DIR: Directory where transport credentials are persisted
    - BUSINESS_TIMEZONE: IANA zone used to format appointment times
    - TRANSPORT_BRIDGE_URL: Base URL of the messaging bridge
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors = []

    database_url = os.getenv("DATABASE_URL")
    settings_api_url = os.getenv("SETTINGS_API_URL")
    settings_api_token = os.getenv("SETTINGS_API_TOKEN")

    session_auth_dir = os.getenv("SESSION_AUTH_DIR")
    business_timezone = os.getenv("BUSINESS_TIMEZONE")
    transport_bridge_url = os.getenv("TRANSPORT_BRIDGE_URL")
    log_level = os.getenv("LOG_LEVEL")

    if not database_url:
        errors.append("Missing required environment variable: DATABASE_URL")

    if not settings_api_url:
        errors.append("Missing required environment variable: SETTINGS_API_URL")
    elif not _is_http_url(settings_api_url):
        errors.append(
            f"Invalid SETTINGS_API_URL: '{settings_api_url}'. Must be an http(s) URL."
        )

    if not settings_api_token:
        errors.append("Missing required environment variable: SETTINGS_API_TOKEN")

    if transport_bridge_url and not _is_http_url(transport_bridge_url):
        errors.append(
            f"Invalid TRANSPORT_BRIDGE_URL: '{transport_bridge_url}'. Must be an http(s) URL."
        )

    if business_timezone:
        try:
            ZoneInfo(business_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(
                f"Invalid BUSINESS_TIMEZONE: '{business_timezone}'. Must be an IANA zone name."
            )

    if log_level:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Ensure all required environment variables are set",
                f"Use an IANA timezone such as {DEFAULT_TIMEZONE}",
            ],
        )

    return EnvironmentConfig(
        database_url=database_url,
        settings_api_url=settings_api_url,
        settings_api_token=settings_api_token,
        session_auth_dir=session_auth_dir,
        business_timezone=business_timezone,
        transport_bridge_url=transport_bridge_url,
        log_level=log_level,
    )


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
