"""Messaging transport exceptions.

None of these cross the SessionManager boundary: send errors are turned into
SendFailure results and connect errors trigger a scheduled reconnect.
"""

from typing import Optional


class TransportError(Exception):
    """Base exception for messaging transport errors.

    Attributes:
        status_code: Status reported by the transport (HTTP or disconnect code), if any
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportConnectionError(TransportError):
    """The transport could not open or resume a session."""

    pass


class TransportSendError(TransportError):
    """The transport rejected or failed to deliver a message."""

    pass


class CredentialStoreError(TransportError):
    """Stored credentials could not be read or written."""

    pass
