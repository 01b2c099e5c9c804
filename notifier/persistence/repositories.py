"""Data access layer for appointments and their delivery events.

Repositories wrap a SQLAlchemy session and return domain models. The worker
only reads appointments; ``AppointmentRepository.add`` exists for seeding and
tests. Events are append-only.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from notifier.domain.models import Appointment, AppointmentEvent, AppointmentEventType
from notifier.utils.timestamps import format_timestamp, utc_now

from .exceptions import DataIntegrityError, PersistenceError
from .schema import AppointmentEventModel, AppointmentModel, UserModel

logger = logging.getLogger(__name__)


class AppointmentRepository:
    """Read access to appointments joined with their client."""

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        """Load an appointment and its user.

        Args:
            appointment_id: Appointment identifier

        Returns:
            Appointment domain model if found, None otherwise

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(AppointmentModel, appointment_id)
            if model is None:
                return None
            return model.to_domain()

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving appointment {appointment_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve appointment: {e}") from e

    def add(self, appointment: Appointment) -> Appointment:
        """Insert an appointment, creating or refreshing its user row.

        Raises:
            DataIntegrityError: If the appointment id already exists
            PersistenceError: If database error occurs
        """
        try:
            user = self.session.get(UserModel, appointment.user.id)
            if user is None:
                user = UserModel(id=appointment.user.id)
                self.session.add(user)
            user.name = appointment.user.name
            user.phone = appointment.user.phone

            model = AppointmentModel(
                id=appointment.id,
                user_id=appointment.user.id,
                service_name=appointment.service_name,
                start_at=format_timestamp(appointment.start_at),
                end_at=format_timestamp(appointment.end_at),
                status=appointment.status.value,
            )
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(f"Integrity error adding appointment {appointment.id}: {e}", exc_info=True)
            raise DataIntegrityError(
                f"Failed to add appointment due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Error adding appointment {appointment.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to add appointment: {e}") from e


class AppointmentEventRepository:
    """Append-only access to appointment_events."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        appointment_id: str,
        event_type: AppointmentEventType,
        created_at: Optional[datetime] = None,
    ) -> AppointmentEvent:
        """Record one delivery event.

        Args:
            appointment_id: Appointment the event belongs to
            event_type: What was delivered
            created_at: Event time (defaults to now, UTC)

        Returns:
            The persisted AppointmentEvent

        Raises:
            DataIntegrityError: If the appointment does not exist
            PersistenceError: If database error occurs
        """
        try:
            model = AppointmentEventModel(
                id=uuid.uuid4().hex,
                appointment_id=appointment_id,
                type=AppointmentEventType(event_type).value,
                created_at=format_timestamp(created_at or utc_now()),
            )
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(
                f"Integrity error recording event for appointment {appointment_id}: {e}",
                exc_info=True,
            )
            raise DataIntegrityError(
                f"Failed to record appointment event due to constraint violation: {e}"
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                f"Error recording event for appointment {appointment_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to record appointment event: {e}") from e

    def list_for_appointment(self, appointment_id: str) -> List[AppointmentEvent]:
        """Events for one appointment, oldest first."""
        try:
            stmt = (
                select(AppointmentEventModel)
                .where(AppointmentEventModel.appointment_id == appointment_id)
                .order_by(AppointmentEventModel.created_at.asc())
            )
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]

        except SQLAlchemyError as e:
            logger.error(
                f"Error listing events for appointment {appointment_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to list appointment events: {e}") from e
