"""Tests for database initialisation and repositories."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import inspect

from notifier.domain.models import AppointmentEventType, AppointmentStatus
from notifier.persistence import (
    AppointmentEventRepository,
    AppointmentRepository,
    DatabaseConnectionError,
    DataIntegrityError,
    close_database,
    get_engine,
    get_session,
    init_database,
)
from notifier.persistence.database import _normalize_url, _redact_url
from tests.helpers import add_appointment, make_appointment


class TestDatabaseInitialisation:
    def test_in_memory_database_creates_tables(self, database):
        tables = set(inspect(get_engine()).get_table_names())

        assert {"users", "appointments", "appointment_events", "jobs"} <= tables

    def test_file_database_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "notifier.db"
        try:
            init_database(f"sqlite:///{db_path}")
            assert db_path.parent.exists()
            assert db_path.exists()
        finally:
            close_database()

    def test_init_is_idempotent_for_existing_schema(self, tmp_path):
        db_url = f"sqlite:///{tmp_path / 'notifier.db'}"
        try:
            init_database(db_url)
            add_appointment(make_appointment())
            init_database(db_url)

            with get_session() as session:
                assert AppointmentRepository(session).find_by_id("A1") is not None
        finally:
            close_database()

    def test_empty_url_rejected(self):
        with pytest.raises(DatabaseConnectionError):
            init_database("")

    def test_invalid_url_rejected(self):
        with pytest.raises(DatabaseConnectionError):
            init_database("not a url")

    def test_session_before_init(self):
        close_database()
        with pytest.raises(DatabaseConnectionError, match="not initialized"):
            with get_session():
                pass

    def test_engine_before_init(self):
        close_database()
        with pytest.raises(DatabaseConnectionError):
            get_engine()

    def test_postgres_scheme_normalised(self):
        assert _normalize_url("postgres://u:p@db/app") == "postgresql://u:p@db/app"

    def test_password_redacted(self):
        redacted = _redact_url("postgresql://notifier:secret@db:5432/app")
        assert "secret" not in redacted
        assert "notifier" in redacted


class TestSessionScope:
    def test_rolls_back_on_error(self, database):
        with pytest.raises(RuntimeError):
            with get_session() as session:
                AppointmentRepository(session).add(make_appointment("A9"))
                raise RuntimeError("boom")

        with get_session() as session:
            assert AppointmentRepository(session).find_by_id("A9") is None


class TestAppointmentRepository:
    def test_find_by_id_returns_appointment_with_user(self, database):
        add_appointment(make_appointment("A1", name="Ana", phone="5527999999999"))

        with get_session() as session:
            appointment = AppointmentRepository(session).find_by_id("A1")

        assert appointment.id == "A1"
        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.start_at == datetime(2026, 2, 9, 15, 0, tzinfo=timezone.utc)
        assert appointment.service_name == "Corte feminino"
        assert appointment.user.name == "Ana"
        assert appointment.user.phone == "5527999999999"

    def test_find_missing_returns_none(self, database):
        with get_session() as session:
            assert AppointmentRepository(session).find_by_id("missing") is None

    def test_duplicate_id_raises_integrity_error(self, database):
        add_appointment(make_appointment("A1"))

        with pytest.raises(DataIntegrityError):
            add_appointment(make_appointment("A1"))

    def test_user_row_is_shared_and_refreshed(self, database):
        first = make_appointment("A1", name="Ana")
        second = make_appointment("A2", name="Ana Paula").model_copy(
            update={"user": first.user.model_copy(update={"name": "Ana Paula"})}
        )
        add_appointment(first)
        add_appointment(second)

        with get_session() as session:
            repo = AppointmentRepository(session)
            assert repo.find_by_id("A1").user.name == "Ana Paula"
            assert repo.find_by_id("A2").user.id == first.user.id


class TestAppointmentEventRepository:
    def test_create_and_list(self, database):
        add_appointment(make_appointment("A1"))
        earlier = datetime(2026, 2, 8, 15, 0, tzinfo=timezone.utc)
        later = datetime(2026, 2, 9, 15, 0, tzinfo=timezone.utc)

        with get_session() as session:
            repo = AppointmentEventRepository(session)
            repo.create("A1", AppointmentEventType.REMINDER_SENT, created_at=later)
            repo.create("A1", AppointmentEventType.CONFIRMATION_SENT, created_at=earlier)

        with get_session() as session:
            events = AppointmentEventRepository(session).list_for_appointment("A1")

        assert [e.type for e in events] == [
            AppointmentEventType.CONFIRMATION_SENT,
            AppointmentEventType.REMINDER_SENT,
        ]
        assert events[0].created_at == earlier
        assert events[0].id != events[1].id

    def test_create_defaults_to_now(self, database):
        add_appointment(make_appointment("A1"))

        with get_session() as session:
            event = AppointmentEventRepository(session).create(
                "A1", AppointmentEventType.CANCELLED
            )

        assert event.created_at.tzinfo == timezone.utc
        assert event.appointment_id == "A1"

    def test_event_for_unknown_appointment_violates_foreign_key(self, database):
        with pytest.raises(DataIntegrityError):
            with get_session() as session:
                AppointmentEventRepository(session).create(
                    "missing", AppointmentEventType.REMINDER_SENT
                )

    def test_list_empty(self, database):
        with get_session() as session:
            assert AppointmentEventRepository(session).list_for_appointment("A1") == []
