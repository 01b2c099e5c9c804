"""Message composition for appointment notifications."""

from .composer import build_reminder_fields, compose

__all__ = ["compose", "build_reminder_fields"]
