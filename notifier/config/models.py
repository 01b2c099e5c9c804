"""Configuration schema models using Pydantic."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _check_duration(value: str, label: str, min_seconds: int, max_seconds: int) -> str:
    """Validate a duration string and its range, re-raising as ValueError for pydantic."""
    try:
        seconds = parse_duration(value)
        validate_duration_range(
            seconds, min_seconds=min_seconds, max_seconds=max_seconds, label=label
        )
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return value


class WorkerConfig(BaseModel):
    """Queue polling and retry policy."""

    poll_interval: str = Field("2s", description="How often each job kind polls the queue")
    job_lease: str = Field(
        "5m", description="How long a claimed job stays invisible before it expires back to pending"
    )
    retry_limit: int = Field(
        5, ge=0, le=50, description="Retries for jobs that fail with an infrastructure error"
    )
    retry_delay: str = Field("30s", description="Base delay before a failed job is retried")
    retry_backoff: bool = Field(True, description="Double the retry delay on every attempt")

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: str) -> str:
        return _check_duration(v, "Poll interval", 1, 300)

    @field_validator("job_lease")
    @classmethod
    def validate_job_lease(cls, v: str) -> str:
        return _check_duration(v, "Job lease", 10, 86400)

    @field_validator("retry_delay")
    @classmethod
    def validate_retry_delay(cls, v: str) -> str:
        return _check_duration(v, "Retry delay", 1, 86400)

    @property
    def poll_interval_seconds(self) -> int:
        return parse_duration(self.poll_interval)

    @property
    def job_lease_seconds(self) -> int:
        return parse_duration(self.job_lease)

    @property
    def retry_delay_seconds(self) -> int:
        return parse_duration(self.retry_delay)


class SessionConfig(BaseModel):
    """Messaging session settings."""

    reconnect_delay: str = Field("3s", description="Fixed delay before reconnecting")
    session_name: str = Field(
        "notifier", min_length=1, description="Session name registered with the bridge"
    )
    status_poll_interval: str = Field(
        "2s", description="How often the bridge session status is polled"
    )
    request_timeout: int = Field(
        30, ge=1, le=300, description="Timeout for bridge HTTP calls (seconds)"
    )

    @field_validator("reconnect_delay")
    @classmethod
    def validate_reconnect_delay(cls, v: str) -> str:
        return _check_duration(v, "Reconnect delay", 1, 3600)

    @field_validator("status_poll_interval")
    @classmethod
    def validate_status_poll_interval(cls, v: str) -> str:
        return _check_duration(v, "Status poll interval", 1, 300)

    @field_validator("session_name")
    @classmethod
    def strip_session_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("session_name cannot be empty")
        return stripped

    @property
    def reconnect_delay_seconds(self) -> int:
        return parse_duration(self.reconnect_delay)

    @property
    def status_poll_interval_seconds(self) -> int:
        return parse_duration(self.status_poll_interval)


class SettingsCacheConfig(BaseModel):
    """Settings service caching and HTTP behaviour."""

    ttl: str = Field("5m", description="How long fetched settings are reused")
    request_timeout: int = Field(
        15, ge=1, le=300, description="Timeout for settings service requests (seconds)"
    )

    @field_validator("ttl")
    @classmethod
    def validate_ttl(cls, v: str) -> str:
        return _check_duration(v, "Settings TTL", 1, 86400)

    @property
    def ttl_seconds(self) -> int:
        return parse_duration(self.ttl)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the notification worker."""

    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    settings_cache: SettingsCacheConfig = Field(default_factory=SettingsCacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
