"""Delivery event recording shared by the handlers."""

import logging
from typing import Callable, ContextManager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notifier.domain.models import AppointmentEventType
from notifier.persistence.exceptions import PersistenceError
from notifier.persistence.repositories import AppointmentEventRepository


def record_delivery(
    session_factory: Callable[[], ContextManager[Session]],
    appointment_id: str,
    event_type: AppointmentEventType,
    logger: logging.Logger,
) -> bool:
    """Append the event for a message that has already been delivered.

    The message is out, so a storage error here must not send the job back to
    the queue. It is logged and reported as ``False``.

    Returns:
        True if the event was stored
    """
    try:
        with session_factory() as session:
            AppointmentEventRepository(session).create(appointment_id, event_type)
    except (PersistenceError, SQLAlchemyError) as e:
        logger.warning(
            f"Message delivered but {event_type.value} event for appointment "
            f"{appointment_id} was not recorded: {e}",
            extra={
                "event": "job.event_not_recorded",
                "event_type": event_type.value,
                "error_type": type(e).__name__,
            },
        )
        return False
    return True
