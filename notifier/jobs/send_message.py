"""Handler for immediate ``send-whatsapp`` jobs (confirmations and other direct messages)."""

import logging
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from notifier.domain.models import AppointmentEventType, Job, JobKind
from notifier.logging import get_logger
from notifier.logging.context import log_context
from notifier.messaging.models import SendFailure
from notifier.messaging.session import SessionManager
from notifier.persistence.database import get_session

from .events import record_delivery
from .models import HandlerResult
from .payload import payload_str

logger = get_logger(__name__, component="jobs")


class SendMessageHandler:
    """Delivers a pre-composed message and optionally records it against an appointment."""

    kind = JobKind.SEND_WHATSAPP.value

    def __init__(
        self,
        session_manager: SessionManager,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.session_manager = session_manager
        self.session_factory = session_factory
        self.logger = logger_instance or logger

    def handle(self, job: Job) -> HandlerResult:
        phone = payload_str(job.data, "phone")
        message = job.data.get("message") if job.data else None
        appointment_id = payload_str(job.data, "appointmentId")
        event_name = payload_str(job.data, "eventType")

        with log_context(job_id=job.id, job_kind=self.kind, appointment_id=appointment_id):
            if not phone or not isinstance(message, str) or not message:
                self.logger.info(
                    "Send job is missing phone or message, skipping",
                    extra={"event": "job.skipped", "reason": "missing_phone_or_message"},
                )
                return HandlerResult.skipped(job.id, self.kind, "missing_phone_or_message")

            result = self.session_manager.send(phone, message)
            if isinstance(result, SendFailure):
                self.logger.warning(
                    f"Message to {phone} not delivered (reason: {result.reason})",
                    extra={"event": "job.delivery_failed", "reason": result.reason},
                )
                return HandlerResult.failed(job.id, self.kind, result.reason)

            if appointment_id and event_name:
                event_type = AppointmentEventType.parse(event_name)
                if event_type is None:
                    self.logger.warning(
                        f"Unknown event type {event_name!r}; delivery not recorded",
                        extra={"event": "job.unknown_event_type", "event_type": event_name},
                    )
                else:
                    record_delivery(self.session_factory, appointment_id, event_type, self.logger)

            self.logger.info(
                f"Message sent to {phone}",
                extra={
                    "event": "job.sent",
                    "message_id": result.message_id,
                    "event_type": event_name,
                },
            )
            return HandlerResult.sent(job.id, self.kind, result.message_id)
