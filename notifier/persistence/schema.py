"""Database schema definition and ORM models.

Appointments and their clients are owned by the booking application; this
worker reads them and appends delivery events. The ``jobs`` table backs the
durable queue and lives in the same database.

Timestamps are stored as fixed-width ISO 8601 UTC strings so that string
comparison matches chronological order on every backend.
"""

import logging

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from notifier.domain.models import (
    Appointment,
    AppointmentEvent,
    AppointmentEventType,
    AppointmentStatus,
    AppointmentUser,
    Job,
    JobState,
)
from notifier.utils.timestamps import parse_iso_datetime

logger = logging.getLogger(__name__)

Base = declarative_base()


class UserModel(Base):
    """ORM model for users table."""

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, nullable=False)
    name = Column(String(255), nullable=False, default="")
    phone = Column(String(32), nullable=False, default="")

    def to_domain(self) -> AppointmentUser:
        return AppointmentUser(id=self.id, name=self.name or "", phone=self.phone or "")


class AppointmentModel(Base):
    """ORM model for appointments table."""

    __tablename__ = "appointments"

    id = Column(String(64), primary_key=True, nullable=False)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False)
    service_name = Column(String(255), nullable=False, default="")
    start_at = Column(String(50), nullable=False)
    end_at = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=AppointmentStatus.BOOKED.value)

    user = relationship(UserModel, lazy="joined")

    __table_args__ = (Index("idx_appointments_start_at", "start_at"),)

    def to_domain(self) -> Appointment:
        """Convert ORM model (with its joined user) to domain model."""
        return Appointment(
            id=self.id,
            start_at=parse_iso_datetime(self.start_at),
            end_at=parse_iso_datetime(self.end_at),
            status=AppointmentStatus(self.status),
            service_name=self.service_name or "",
            user=self.user.to_domain(),
        )


class AppointmentEventModel(Base):
    """ORM model for appointment_events table (append-only)."""

    __tablename__ = "appointment_events"

    id = Column(String(64), primary_key=True, nullable=False)
    appointment_id = Column(String(64), ForeignKey("appointments.id"), nullable=False)
    type = Column(String(40), nullable=False)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_appointment_events_appointment", "appointment_id"),)

    def to_domain(self) -> AppointmentEvent:
        return AppointmentEvent(
            id=self.id,
            appointment_id=self.appointment_id,
            type=AppointmentEventType(self.type),
            created_at=parse_iso_datetime(self.created_at),
        )


class JobRecordModel(Base):
    """ORM model for the durable job queue."""

    __tablename__ = "jobs"

    id = Column(String(64), primary_key=True, nullable=False)
    name = Column(String(100), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    state = Column(String(20), nullable=False, default=JobState.CREATED.value)

    # Retry policy
    retry_count = Column(Integer, nullable=False, default=0)
    retry_limit = Column(Integer, nullable=False, default=0)
    retry_delay_seconds = Column(Integer, nullable=False, default=0)
    retry_backoff = Column(Boolean, nullable=False, default=False)

    # Scheduling and lease
    start_after = Column(String(50), nullable=False)
    started_on = Column(String(50), nullable=True)
    expire_at = Column(String(50), nullable=True)
    completed_on = Column(String(50), nullable=True)
    created_on = Column(String(50), nullable=False)

    last_error = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_jobs_fetch", "name", "state", "start_after"),
        Index("idx_jobs_expire", "name", "state", "expire_at"),
    )

    def to_domain(self) -> Job:
        return Job(
            id=self.id,
            name=self.name,
            data=dict(self.data or {}),
            state=JobState(self.state),
            retry_count=self.retry_count,
            retry_limit=self.retry_limit,
            start_after=parse_iso_datetime(self.start_after),
            started_on=parse_iso_datetime(self.started_on),
            expire_at=parse_iso_datetime(self.expire_at),
            created_on=parse_iso_datetime(self.created_on),
            last_error=self.last_error,
        )


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)

        from sqlalchemy import inspect

        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(sorted(tables))}")

    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
