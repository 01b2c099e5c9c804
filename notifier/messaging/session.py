"""Lifecycle owner of the messaging session.

SessionManager is the only component that opens, watches and closes the
transport connection. Job handlers see two operations: ``is_ready()`` and
``send()``. ``send`` never raises; every outcome comes back as a SendSuccess
or SendFailure.

State transitions::

    DISCONNECTED --initialize/reconnect--> CONNECTING
    CONNECTING   --open-->                 READY
    CONNECTING   --close (not logged out)--> DISCONNECTED (reconnect scheduled)
    READY        --close (not logged out)--> DISCONNECTED (reconnect scheduled)
    READY        --credential save fails--> DISCONNECTED (reconnect scheduled)
    any          --close (logged out)-->   LOGGED_OUT (terminal)

Connection events can arrive on transport threads. Each connection attempt
gets a generation number; events from an older generation are dropped.
"""

import re
import threading
from datetime import timedelta, timezone
from typing import Any, Dict, Optional, TextIO

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from notifier.logging import get_logger
from notifier.utils.timestamps import utc_now

from .credentials import CredentialStore
from .exceptions import CredentialStoreError, TransportConnectionError
from .models import NOT_CONNECTED, SendFailure, SendResult, SendSuccess, SessionState
from .pairing import print_pairing_code
from .transport import (
    CONNECTION_CLOSE,
    CONNECTION_CONNECTING,
    CONNECTION_OPEN,
    Connection,
    ConnectionUpdate,
    DisconnectReason,
    Transport,
)

logger = get_logger(__name__, component="session")

RECONNECT_JOB_ID = "session-reconnect"
JID_SUFFIX = "@s.whatsapp.net"


def to_jid(recipient: str) -> Optional[str]:
    """Convert a phone number to a user JID. Values that already are JIDs pass through.

    Example:
        >>> to_jid("+55 (27) 99999-9999")
        '5527999999999@s.whatsapp.net'
    """
    if "@" in recipient:
        return recipient
    digits = re.sub(r"\D", "", recipient)
    if not digits:
        return None
    return f"{digits}{JID_SUFFIX}"


class SessionManager:
    """Owns the single messaging connection and keeps it alive.

    Args:
        transport: Opens connections
        credential_store: Where credential material is persisted
        reconnect_delay_seconds: Fixed delay between a disconnect and the next attempt
        scheduler: APScheduler scheduler used for delayed reconnects; a private
            BackgroundScheduler is created when omitted
        pairing_output: Stream the pairing QR code is printed to (stdout by default)
    """

    def __init__(
        self,
        transport: Transport,
        credential_store: CredentialStore,
        reconnect_delay_seconds: int = 3,
        scheduler: Optional[BackgroundScheduler] = None,
        pairing_output: Optional[TextIO] = None,
    ):
        self.transport = transport
        self.credential_store = credential_store
        self.reconnect_delay_seconds = reconnect_delay_seconds
        self.pairing_output = pairing_output

        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone.utc)

        self._lock = threading.RLock()
        self._ready = threading.Event()
        self._state = SessionState.DISCONNECTED
        self._connection: Optional[Connection] = None
        self._generation = 0
        self._initialized = False
        self._closed = False

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def is_ready(self) -> bool:
        with self._lock:
            return self._state == SessionState.READY and self._connection is not None

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the session is ready or timeout seconds pass.

        Returns:
            True if the session is ready
        """
        self._ready.wait(timeout)
        return self.is_ready()

    def initialize(self) -> None:
        """Start the session. Calling it again has no effect."""
        with self._lock:
            if self._initialized or self._closed:
                return
            self._initialized = True

        if self._owns_scheduler and not self._scheduler.running:
            self._scheduler.start()

        logger.info(
            "Initializing messaging session",
            extra={
                "event": "session.initializing",
                "credentials_present": self.credential_store.exists(),
            },
        )
        self._connect()

    def send(self, recipient: str, text: str) -> SendResult:
        """Send a text message through the current connection.

        Returns:
            SendSuccess with the message id, or SendFailure with
            ``not_connected`` (no I/O attempted) or the transport's error text
        """
        with self._lock:
            connection = self._connection
            ready = self._state == SessionState.READY and connection is not None

        if not ready:
            return SendFailure(reason=NOT_CONNECTED)

        jid = to_jid(recipient)
        if jid is None:
            return SendFailure(reason="invalid_recipient")

        try:
            message_id = connection.send_text(jid, text)
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.warning(
                f"Send to {recipient} failed: {reason}",
                extra={"event": "session.send.failed", "error_type": type(e).__name__},
            )
            return SendFailure(reason=reason)

        return SendSuccess(message_id=message_id or "unknown")

    def logout(self) -> None:
        """Log out server-side, discard stored credentials and stay logged out."""
        with self._lock:
            connection = self._connection
            self._connection = None
            self._generation += 1
            self._set_state(SessionState.LOGGED_OUT)

        self._cancel_reconnect()

        if connection is not None:
            try:
                connection.logout()
            except Exception as e:
                logger.warning(
                    f"Transport logout failed: {e}",
                    extra={"event": "session.logout.failed", "error_type": type(e).__name__},
                )
            self._close_connection(connection)

        try:
            self.credential_store.clear()
        except CredentialStoreError as e:
            logger.error(str(e), extra={"event": "session.credentials.clear_failed"})

        logger.warning(
            "Messaging session logged out; pairing is required before sending again",
            extra={"event": "session.logged_out"},
        )

    def close(self) -> None:
        """Stop reconnecting and drop the connection. Credentials are kept."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            connection = self._connection
            self._connection = None
            self._generation += 1
            if self._state != SessionState.LOGGED_OUT:
                self._set_state(SessionState.DISCONNECTED)

        self._cancel_reconnect()

        if connection is not None:
            self._close_connection(connection)

        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        logger.info("Messaging session closed", extra={"event": "session.closed"})

    def _connect(self) -> None:
        with self._lock:
            if self._closed or self._state in (SessionState.LOGGED_OUT, SessionState.CONNECTING):
                return
            self._generation += 1
            generation = self._generation
            self._set_state(SessionState.CONNECTING)

        try:
            credentials = self.credential_store.load()
        except CredentialStoreError as e:
            logger.error(
                f"{e}; starting without stored credentials",
                extra={"event": "session.credentials.load_failed"},
            )
            credentials = None

        logger.info(
            "Connecting messaging session",
            extra={
                "event": "session.connecting",
                "generation": generation,
                "resume": credentials is not None,
            },
        )

        try:
            connection = self.transport.connect(
                credentials,
                on_update=lambda update: self._handle_update(generation, update),
                on_credentials=lambda creds: self._handle_credentials(generation, creds),
            )
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            logger.error(
                f"Messaging connection attempt failed: {e}",
                extra={
                    "event": "session.connect.failed",
                    "status_code": status_code,
                    "error_type": type(e).__name__,
                },
            )
            logged_out = (
                isinstance(e, TransportConnectionError)
                and status_code == DisconnectReason.LOGGED_OUT
            )
            self._handle_closed(generation, status_code, logged_out)
            return

        with self._lock:
            current = generation == self._generation and not self._closed
            if current:
                self._connection = connection
                if self._state == SessionState.READY:
                    self._ready.set()

        if not current:
            # Superseded while connecting (closed, logged out or already reconnecting)
            self._close_connection(connection)

    def _handle_update(self, generation: int, update: ConnectionUpdate) -> None:
        with self._lock:
            if generation != self._generation or self._closed:
                logger.debug(
                    "Ignoring update from superseded connection",
                    extra={"event": "session.update.stale", "generation": generation},
                )
                return

            if update.qr:
                logger.warning(
                    "Messaging session needs pairing; link this device from the phone "
                    "(Settings > Linked Devices > Link a Device)",
                    extra={"event": "session.pairing_required"},
                )
                print_pairing_code(update.qr, self.pairing_output)

            if update.connection == CONNECTION_OPEN:
                self._set_state(SessionState.READY)
                logger.info("Messaging session ready", extra={"event": "session.ready"})
                return

            if update.connection == CONNECTION_CONNECTING:
                self._set_state(SessionState.CONNECTING)
                return

            if update.connection != CONNECTION_CLOSE:
                return

            connection = self._connection
            self._connection = None

        if connection is not None:
            self._close_connection(connection)

        logger.warning(
            f"Messaging connection closed (status: {update.status_code})",
            extra={
                "event": "session.disconnected",
                "status_code": update.status_code,
                "error": update.error,
            },
        )
        self._handle_closed(
            generation, update.status_code, update.status_code == DisconnectReason.LOGGED_OUT
        )

    def _handle_closed(self, generation: int, status_code: Optional[int], logged_out: bool) -> None:
        with self._lock:
            if generation != self._generation or self._closed:
                return
            # Later events from this connection are stale
            self._generation += 1

            if logged_out:
                self._set_state(SessionState.LOGGED_OUT)
            else:
                self._set_state(SessionState.DISCONNECTED)

        if logged_out:
            logger.error(
                "Messaging session logged out by the server. Delete the session auth "
                "directory and restart to pair again",
                extra={"event": "session.logged_out", "status_code": status_code},
            )
            return

        self._schedule_reconnect()

    def _handle_credentials(self, generation: int, credentials: Dict[str, Any]) -> None:
        with self._lock:
            if generation != self._generation or self._closed:
                return
            # Saved under the lock so nothing else touches the session mid-write
            try:
                self.credential_store.save(credentials)
                return
            except CredentialStoreError as e:
                logger.error(
                    f"{e}; dropping the connection until credentials can be saved",
                    extra={"event": "session.credentials.save_failed"},
                )
            connection = self._connection
            self._connection = None

        # No traffic continues on credentials that are not on disk
        if connection is not None:
            self._close_connection(connection)
        self._handle_closed(generation, None, logged_out=False)

    def _schedule_reconnect(self) -> None:
        run_date = utc_now() + timedelta(seconds=self.reconnect_delay_seconds)
        self._scheduler.add_job(
            self._reconnect,
            trigger="date",
            run_date=run_date,
            id=RECONNECT_JOB_ID,
            name="Messaging session reconnect",
            replace_existing=True,
        )
        logger.info(
            f"Reconnecting in {self.reconnect_delay_seconds}s",
            extra={
                "event": "session.reconnect_scheduled",
                "delay_seconds": self.reconnect_delay_seconds,
            },
        )

    def _reconnect(self) -> None:
        with self._lock:
            if self._closed or self._state != SessionState.DISCONNECTED:
                return
        self._connect()

    def _cancel_reconnect(self) -> None:
        try:
            self._scheduler.remove_job(RECONNECT_JOB_ID)
        except JobLookupError:
            pass

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        if state == SessionState.READY and self._connection is not None:
            self._ready.set()
        else:
            self._ready.clear()

    def _close_connection(self, connection: Connection) -> None:
        try:
            connection.close()
        except Exception as e:
            logger.debug(
                f"Error closing connection: {e}",
                extra={"event": "session.connection.close_failed"},
            )
