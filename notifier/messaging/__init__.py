"""Messaging session: transport abstraction, credential storage and the session manager."""

from .bridge import BridgeTransport
from .credentials import CredentialStore
from .exceptions import (
    CredentialStoreError,
    TransportConnectionError,
    TransportError,
    TransportSendError,
)
from .models import NOT_CONNECTED, SendFailure, SendResult, SendSuccess, SessionState
from .session import SessionManager, to_jid
from .transport import Connection, ConnectionUpdate, DisconnectReason, Transport

__all__ = [
    "BridgeTransport",
    "Connection",
    "ConnectionUpdate",
    "CredentialStore",
    "CredentialStoreError",
    "DisconnectReason",
    "NOT_CONNECTED",
    "SendFailure",
    "SendResult",
    "SendSuccess",
    "SessionManager",
    "SessionState",
    "Transport",
    "TransportConnectionError",
    "TransportError",
    "TransportSendError",
    "to_jid",
]
