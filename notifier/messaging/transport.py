"""Abstract messaging transport.

A Transport opens Connections. A Connection reports its lifecycle through
ConnectionUpdate callbacks and hands out refreshed credentials through a
credentials callback; both may be invoked from transport-owned threads.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, Dict, Optional

CONNECTION_CONNECTING = "connecting"
CONNECTION_OPEN = "open"
CONNECTION_CLOSE = "close"


class DisconnectReason(IntEnum):
    """Status codes reported when a multi-device session closes."""

    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    TIMED_OUT = 408
    CONNECTION_REPLACED = 440
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    FORBIDDEN = 403
    UNAVAILABLE_SERVICE = 503


@dataclass(frozen=True)
class ConnectionUpdate:
    """A change in connection state.

    Attributes:
        connection: "connecting", "open" or "close"; None for updates that only carry a pairing code
        status_code: Close reason (see DisconnectReason) when connection is "close"
        qr: Pairing code to show the operator, when the transport needs pairing
        error: Human-readable close reason
    """

    connection: Optional[str] = None
    status_code: Optional[int] = None
    qr: Optional[str] = None
    error: Optional[str] = None


UpdateCallback = Callable[[ConnectionUpdate], None]
CredentialsCallback = Callable[[Dict[str, Any]], None]


class Connection(ABC):
    """One authenticated session with the chat network."""

    @abstractmethod
    def send_text(self, jid: str, text: str) -> Optional[str]:
        """Send a text message.

        Returns:
            The message id assigned by the network, if any

        Raises:
            TransportError: If the message cannot be sent
        """

    @abstractmethod
    def logout(self) -> None:
        """End the session server-side; stored credentials become invalid."""

    @abstractmethod
    def close(self) -> None:
        """Drop the connection without logging out. Must not emit further updates."""


class Transport(ABC):
    """Factory for connections."""

    @abstractmethod
    def connect(
        self,
        credentials: Optional[Dict[str, Any]],
        on_update: UpdateCallback,
        on_credentials: CredentialsCallback,
    ) -> Connection:
        """Start a connection attempt.

        Returns once the attempt is under way; the outcome arrives through
        on_update.

        Args:
            credentials: Previously stored credentials, or None to pair afresh
            on_update: Receives ConnectionUpdate events
            on_credentials: Receives credential material that must be persisted

        Raises:
            TransportError: If the attempt cannot be started
        """
