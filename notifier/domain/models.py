"""Core domain models for appointments, delivery events, settings and queue jobs.

This module defines the data structures shared across the worker:
- Appointment / AppointmentUser: read-only view of a booking and its client
- AppointmentEvent: append-only audit record of a delivered notification
- NotificationSettings: operator-authored templates and business metadata
- Job: one unit of work claimed from the durable queue
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from notifier.utils.timestamps import ensure_utc


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment."""

    BOOKED = "BOOKED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class AppointmentEventType(str, Enum):
    """Kinds of audit events recorded against an appointment."""

    CONFIRMATION_SENT = "CONFIRMATION_SENT"
    REMINDER_SENT = "REMINDER_SENT"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["AppointmentEventType"]:
        """Return the member named by value, or None if it is not a known type."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


class JobKind(str, Enum):
    """Job kinds handled by the worker. Values are the queue names."""

    APPOINTMENT_REMINDER = "appointment-reminder"
    SEND_WHATSAPP = "send-whatsapp"


class JobState(str, Enum):
    """Queue job states."""

    CREATED = "created"
    RETRY = "retry"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class AppointmentUser(BaseModel):
    """Client who booked an appointment."""

    id: str
    name: str = ""
    phone: str = ""


class Appointment(BaseModel):
    """Appointment joined with its client.

    The worker only reads appointments; cancellation is checked when a
    reminder job runs, not when it is scheduled.
    """

    id: str = Field(..., description="Appointment identifier")
    start_at: datetime = Field(..., description="Start instant (UTC)")
    end_at: Optional[datetime] = Field(None, description="End instant (UTC)")
    status: AppointmentStatus = Field(AppointmentStatus.BOOKED)
    service_name: str = Field("", description="Display name of the booked service")
    user: AppointmentUser

    @field_validator("start_at", "end_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED


class AppointmentEvent(BaseModel):
    """Append-only delivery/audit record."""

    id: str
    appointment_id: str
    type: AppointmentEventType
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class NotificationSettings(BaseModel):
    """Notification templates and business metadata from the settings service.

    A missing reminder template means reminders are switched off.
    """

    confirmation_message_template: str = ""
    reminder_message_template: Optional[str] = None
    business_name: str = ""
    business_latitude: Optional[float] = None
    business_longitude: Optional[float] = None

    @classmethod
    def from_payload(cls, attributes: Dict[str, Any]) -> "NotificationSettings":
        """Build settings from a settings-service payload with permissive coercion.

        Missing strings become "", an empty reminder template becomes None,
        and numbers that are missing or unparseable become None.
        """
        reminder = attributes.get("reminderMessageTemplate")
        return cls(
            confirmation_message_template=_coerce_str(attributes.get("confirmationMessageTemplate")),
            reminder_message_template=str(reminder) if reminder else None,
            business_name=_coerce_str(attributes.get("businessName")),
            business_latitude=_coerce_float(attributes.get("businessLatitude")),
            business_longitude=_coerce_float(attributes.get("businessLongitude")),
        )


class Job(BaseModel):
    """A job claimed from the queue."""

    id: str
    name: str
    data: Dict[str, Any] = Field(default_factory=dict)
    state: JobState = JobState.CREATED
    retry_count: int = 0
    retry_limit: int = 0
    start_after: Optional[datetime] = None
    started_on: Optional[datetime] = None
    expire_at: Optional[datetime] = None
    created_on: Optional[datetime] = None
    last_error: Optional[str] = None


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
