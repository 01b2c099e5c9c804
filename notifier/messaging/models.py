"""Result types and session states for the messaging layer."""

from dataclasses import dataclass
from enum import Enum
from typing import Union

NOT_CONNECTED = "not_connected"


class SessionState(str, Enum):
    """States of the messaging session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    LOGGED_OUT = "logged_out"


@dataclass(frozen=True)
class SendSuccess:
    """The transport accepted the message."""

    message_id: str


@dataclass(frozen=True)
class SendFailure:
    """The message was not sent.

    reason is ``not_connected`` when the session was not ready, otherwise the
    transport's error text.
    """

    reason: str


SendResult = Union[SendSuccess, SendFailure]
