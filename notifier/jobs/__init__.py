"""Job handlers, one per job kind."""

from typing import Dict

from notifier.messaging.session import SessionManager
from notifier.settings.cache import SettingsCache

from .models import STATUS_ERROR, STATUS_FAILED, STATUS_SENT, STATUS_SKIPPED, HandlerResult
from .reminder import ReminderHandler
from .send_message import SendMessageHandler


def build_handlers(
    session_manager: SessionManager,
    settings_cache: SettingsCache,
    timezone: str = "America/Sao_Paulo",
    **kwargs,
) -> Dict[str, object]:
    """Map every job kind to its handler.

    Extra keyword arguments (session_factory, logger_instance) are passed to
    each handler.
    """
    reminder = ReminderHandler(session_manager, settings_cache, timezone=timezone, **kwargs)
    send_message = SendMessageHandler(session_manager, **kwargs)
    return {reminder.kind: reminder, send_message.kind: send_message}


__all__ = [
    "HandlerResult",
    "ReminderHandler",
    "SendMessageHandler",
    "STATUS_ERROR",
    "STATUS_FAILED",
    "STATUS_SENT",
    "STATUS_SKIPPED",
    "build_handlers",
]
