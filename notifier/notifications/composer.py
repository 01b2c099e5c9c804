"""Message composition from operator-authored templates.

Templates use ``{{name}}``, ``{{services}}``, ``{{date}}`` and ``{{time}}``
placeholders. Substitution is literal: every occurrence is replaced, nothing
is escaped, and unknown placeholders are left as they are.
"""

from datetime import tzinfo
from typing import Mapping, Union

from notifier.domain.models import Appointment
from notifier.utils.timestamps import format_in_timezone

PLACEHOLDERS = ("name", "services", "date", "time")

DATE_FORMAT = "%d/%m/%Y"
TIME_FORMAT = "%H:%M"


def compose(template: str, fields: Mapping[str, str]) -> str:
    """Substitute placeholders in a template.

    Args:
        template: Template text
        fields: Values for name, services, date and time; missing ones render as ""

    Returns:
        The final message

    Example:
        >>> compose("{{name}} {{name}}", {"name": "Ana"})
        'Ana Ana'
    """
    message = template
    for placeholder in PLACEHOLDERS:
        message = message.replace("{{" + placeholder + "}}", str(fields.get(placeholder) or ""))
    return message


def build_reminder_fields(appointment: Appointment, timezone: Union[str, tzinfo]) -> dict:
    """Template fields for an appointment, with date and time in the business timezone.

    Example:
        >>> fields = build_reminder_fields(appointment, "America/Sao_Paulo")
        >>> fields["date"], fields["time"]
        ('09/02/2026', '12:00')
    """
    return {
        "name": appointment.user.name,
        "services": appointment.service_name,
        "date": format_in_timezone(appointment.start_at, timezone, DATE_FORMAT),
        "time": format_in_timezone(appointment.start_at, timezone, TIME_FORMAT),
    }
