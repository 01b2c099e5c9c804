"""Durable job queue backed by the relational store."""

from .exceptions import JobNotFoundError, QueueError
from .producers import queue_whatsapp_message, schedule_appointment_reminder
from .service import JobQueue

__all__ = [
    "JobQueue",
    "QueueError",
    "JobNotFoundError",
    "queue_whatsapp_message",
    "schedule_appointment_reminder",
]
