"""Handler for scheduled ``appointment-reminder`` jobs."""

import logging
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from notifier.domain.models import AppointmentEventType, Job, JobKind
from notifier.logging import get_logger
from notifier.logging.context import log_context
from notifier.messaging.models import SendFailure
from notifier.messaging.session import SessionManager
from notifier.notifications.composer import build_reminder_fields, compose
from notifier.persistence.database import get_session
from notifier.persistence.repositories import AppointmentRepository
from notifier.settings.cache import SettingsCache

from .events import record_delivery
from .models import HandlerResult
from .payload import payload_str

logger = get_logger(__name__, component="jobs")


class ReminderHandler:
    """Sends the reminder for one appointment.

    The appointment is re-read when the job runs, so a cancellation made after
    the reminder was scheduled still suppresses it. Business outcomes are
    returned as results; PersistenceError and SettingsFetchError propagate so
    the queue retries the job.
    """

    kind = JobKind.APPOINTMENT_REMINDER.value

    def __init__(
        self,
        session_manager: SessionManager,
        settings_cache: SettingsCache,
        timezone: str = "America/Sao_Paulo",
        session_factory: Callable[[], ContextManager[Session]] = get_session,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.session_manager = session_manager
        self.settings_cache = settings_cache
        self.timezone = timezone
        self.session_factory = session_factory
        self.logger = logger_instance or logger

    def handle(self, job: Job) -> HandlerResult:
        appointment_id = payload_str(job.data, "appointmentId")

        with log_context(job_id=job.id, job_kind=self.kind, appointment_id=appointment_id):
            if not appointment_id:
                self.logger.info(
                    "Reminder job has no appointmentId, skipping",
                    extra={"event": "job.skipped", "reason": "missing_appointment_id"},
                )
                return HandlerResult.skipped(job.id, self.kind, "missing_appointment_id")

            with self.session_factory() as session:
                appointment = AppointmentRepository(session).find_by_id(appointment_id)

            if appointment is None:
                self.logger.info(
                    f"Appointment {appointment_id} not found, skipping reminder",
                    extra={"event": "job.skipped", "reason": "appointment_not_found"},
                )
                return HandlerResult.skipped(job.id, self.kind, "appointment_not_found")

            if appointment.is_cancelled:
                self.logger.info(
                    f"Appointment {appointment_id} is cancelled, skipping reminder",
                    extra={"event": "job.skipped", "reason": "appointment_cancelled"},
                )
                return HandlerResult.skipped(job.id, self.kind, "appointment_cancelled")

            settings = self.settings_cache.get_notification_settings()
            if settings is None or not settings.reminder_message_template:
                self.logger.info(
                    "No reminder template configured, skipping",
                    extra={"event": "job.skipped", "reason": "reminders_disabled"},
                )
                return HandlerResult.skipped(job.id, self.kind, "reminders_disabled")

            message = compose(
                settings.reminder_message_template,
                build_reminder_fields(appointment, self.timezone),
            )

            result = self.session_manager.send(appointment.user.phone, message)
            if isinstance(result, SendFailure):
                self.logger.warning(
                    f"Reminder not delivered (reason: {result.reason}), skipping",
                    extra={"event": "job.delivery_failed", "reason": result.reason},
                )
                return HandlerResult.failed(job.id, self.kind, result.reason)

            record_delivery(
                self.session_factory, appointment.id, AppointmentEventType.REMINDER_SENT, self.logger
            )

            self.logger.info(
                f"Reminder sent for appointment {appointment_id}",
                extra={"event": "job.sent", "message_id": result.message_id},
            )
            return HandlerResult.sent(job.id, self.kind, result.message_id)
