"""Unit tests for domain models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from notifier.domain.models import (
    Appointment,
    AppointmentEventType,
    AppointmentStatus,
    AppointmentUser,
    Job,
    JobKind,
    JobState,
    NotificationSettings,
)


class TestAppointment:
    def test_timestamps_normalised_to_utc(self):
        brt = timezone(timedelta(hours=-3))
        appointment = Appointment(
            id="A1",
            start_at=datetime(2026, 2, 9, 12, 0, tzinfo=brt),
            user=AppointmentUser(id="U1", name="Ana", phone="5527999999999"),
        )

        assert appointment.start_at == datetime(2026, 2, 9, 15, 0, tzinfo=timezone.utc)
        assert appointment.end_at is None
        assert appointment.status == AppointmentStatus.BOOKED

    def test_is_cancelled(self):
        user = AppointmentUser(id="U1")
        start = datetime(2026, 2, 9, 15, 0, tzinfo=timezone.utc)

        cancelled = Appointment(id="A1", start_at=start, status="CANCELLED", user=user)
        confirmed = Appointment(id="A2", start_at=start, status="CONFIRMED", user=user)

        assert cancelled.is_cancelled is True
        assert confirmed.is_cancelled is False

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            Appointment(
                id="A1",
                start_at=datetime(2026, 2, 9, 15, 0, tzinfo=timezone.utc),
                status="POSTPONED",
                user=AppointmentUser(id="U1"),
            )

    def test_user_defaults(self):
        user = AppointmentUser(id="U1")
        assert user.name == ""
        assert user.phone == ""


class TestAppointmentEventType:
    def test_parse_known_values(self):
        assert AppointmentEventType.parse("REMINDER_SENT") == AppointmentEventType.REMINDER_SENT
        assert (
            AppointmentEventType.parse(" confirmation_sent ")
            == AppointmentEventType.CONFIRMATION_SENT
        )

    def test_parse_unknown_or_empty(self):
        assert AppointmentEventType.parse("DELIVERED") is None
        assert AppointmentEventType.parse("") is None
        assert AppointmentEventType.parse(None) is None


class TestNotificationSettings:
    def test_from_payload(self):
        settings = NotificationSettings.from_payload(
            {
                "confirmationMessageTemplate": "Olá {{name}}, confirmado!",
                "reminderMessageTemplate": "Lembrete: {{service}} amanhã às {{time}}",
                "businessName": "Studio Bella",
                "businessLatitude": "-20.3155",
                "businessLongitude": -40.3128,
            }
        )

        assert settings.confirmation_message_template == "Olá {{name}}, confirmado!"
        assert settings.reminder_message_template == "Lembrete: {{service}} amanhã às {{time}}"
        assert settings.business_name == "Studio Bella"
        assert settings.business_latitude == pytest.approx(-20.3155)
        assert settings.business_longitude == pytest.approx(-40.3128)

    def test_from_payload_missing_fields(self):
        settings = NotificationSettings.from_payload({})

        assert settings.confirmation_message_template == ""
        assert settings.reminder_message_template is None
        assert settings.business_name == ""
        assert settings.business_latitude is None
        assert settings.business_longitude is None

    def test_empty_reminder_template_means_disabled(self):
        settings = NotificationSettings.from_payload({"reminderMessageTemplate": ""})
        assert settings.reminder_message_template is None

    def test_unparseable_coordinates_become_none(self):
        settings = NotificationSettings.from_payload(
            {"businessLatitude": "north", "businessLongitude": True}
        )
        assert settings.business_latitude is None
        assert settings.business_longitude is None

    def test_non_finite_coordinates_become_none(self):
        settings = NotificationSettings.from_payload(
            {"businessLatitude": "nan", "businessLongitude": float("inf")}
        )
        assert settings.business_latitude is None
        assert settings.business_longitude is None


class TestJob:
    def test_defaults(self):
        job = Job(id="j1", name=JobKind.SEND_WHATSAPP.value)

        assert job.data == {}
        assert job.state == JobState.CREATED
        assert job.retry_count == 0
        assert job.last_error is None

    def test_job_kind_values_are_queue_names(self):
        assert JobKind.APPOINTMENT_REMINDER.value == "appointment-reminder"
        assert JobKind.SEND_WHATSAPP.value == "send-whatsapp"
