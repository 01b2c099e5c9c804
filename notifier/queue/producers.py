"""Helpers used by the booking application to enqueue notification jobs."""

from datetime import datetime, timedelta
from typing import Optional, Union

from notifier.domain.models import AppointmentEventType, JobKind
from notifier.logging import get_logger
from notifier.utils.timestamps import ensure_utc, utc_now

from .service import JobQueue

logger = get_logger(__name__, component="queue")

DEFAULT_REMINDER_LEAD_SECONDS = 24 * 60 * 60


def queue_whatsapp_message(
    queue: JobQueue,
    phone: str,
    message: str,
    appointment_id: Optional[str] = None,
    event_type: Optional[Union[AppointmentEventType, str]] = None,
) -> str:
    """Enqueue an immediate ``send-whatsapp`` job.

    When both appointment_id and event_type are given, a successful delivery
    is recorded as an event of that type.

    Returns:
        The job id
    """
    data = {"phone": phone, "message": message}
    if appointment_id:
        data["appointmentId"] = appointment_id
    if event_type:
        data["eventType"] = (
            event_type.value if isinstance(event_type, AppointmentEventType) else str(event_type)
        )

    return queue.send(JobKind.SEND_WHATSAPP.value, data)


def schedule_appointment_reminder(
    queue: JobQueue,
    appointment_id: str,
    start_at: datetime,
    lead_seconds: int = DEFAULT_REMINDER_LEAD_SECONDS,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Schedule an ``appointment-reminder`` job ahead of the appointment.

    Nothing is queued when the reminder time has already passed, which is the
    case for appointments booked less than lead_seconds before they start.

    Returns:
        The job id, or None when no reminder was scheduled
    """
    remind_at = ensure_utc(start_at) - timedelta(seconds=lead_seconds)
    current = ensure_utc(now) if now else utc_now()

    if remind_at <= current:
        logger.info(
            f"Reminder for appointment {appointment_id} not scheduled; reminder time has passed",
            extra={
                "event": "reminder.schedule.skipped",
                "appointment_id": appointment_id,
                "remind_at": remind_at.isoformat(),
            },
        )
        return None

    return queue.send(
        JobKind.APPOINTMENT_REMINDER.value,
        {"appointmentId": appointment_id},
        start_after=remind_at,
    )
