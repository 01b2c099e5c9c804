"""Transport that drives a local multi-device bridge over HTTP.

The bridge is a sidecar process holding the actual chat-network socket. This
module speaks its small JSON API:

    POST {base}/sessions/{name}/start     {"credentials": {...} | null}
    GET  {base}/sessions/{name}/status    -> {"status", "statusCode", "qr",
                                              "error", "credentials",
                                              "credentialsVersion"}
    POST {base}/sessions/{name}/messages  {"jid", "text"} -> {"id"}
    POST {base}/sessions/{name}/logout

Status is polled on a daemon thread and translated into ConnectionUpdate and
credential callbacks.
"""

import threading
from typing import Any, Dict, Optional

import requests

from notifier.logging import get_logger

from .exceptions import TransportConnectionError, TransportError, TransportSendError
from .transport import (
    CONNECTION_CLOSE,
    CONNECTION_CONNECTING,
    CONNECTION_OPEN,
    Connection,
    ConnectionUpdate,
    CredentialsCallback,
    DisconnectReason,
    Transport,
    UpdateCallback,
)

logger = get_logger(__name__, component="transport")

# Bridge statuses that mean "waiting for the operator to scan a pairing code"
PAIRING_STATUSES = ("qr", "pairing")


class BridgeClient:
    """Thin requests wrapper around the bridge API for one named session."""

    def __init__(
        self,
        base_url: str,
        session_name: str,
        timeout: int = 30,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session_name = session_name
        self.timeout = timeout
        self._http = http or requests.Session()
        self._http.headers.update({"Accept": "application/json"})

    def start(self, credentials: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return self._request("POST", "start", {"credentials": credentials})

    def status(self) -> Dict[str, Any]:
        return self._request("GET", "status")

    def send_message(self, jid: str, text: str) -> Dict[str, Any]:
        return self._request("POST", "messages", {"jid": jid, "text": text})

    def logout(self) -> Dict[str, Any]:
        return self._request("POST", "logout")

    def _request(
        self, method: str, action: str, json_data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Call the bridge and return the decoded JSON body.

        Raises:
            TransportError: On connection errors, timeouts, error statuses or invalid JSON.
                The status_code attribute is set for HTTP errors.
        """
        url = f"{self.base_url}/sessions/{self.session_name}/{action}"

        try:
            response = self._http.request(method, url, json=json_data, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Bridge request timed out: {method} {url}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Bridge request failed: {e}") from e

        if response.status_code >= 400:
            raise TransportError(
                f"Bridge returned HTTP {response.status_code} for {action}: {_error_text(response)}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from bridge for {action}: {e}") from e

        return body if isinstance(body, dict) else {}

    def close(self) -> None:
        self._http.close()


class BridgeConnection(Connection):
    """A started bridge session, watched by a status-polling thread."""

    def __init__(
        self,
        client: BridgeClient,
        on_update: UpdateCallback,
        on_credentials: CredentialsCallback,
        poll_interval_seconds: float = 2.0,
    ) -> None:
        self.client = client
        self.on_update = on_update
        self.on_credentials = on_credentials
        self.poll_interval_seconds = poll_interval_seconds

        self._stop = threading.Event()
        self._last_status: Optional[str] = None
        self._last_qr: Optional[str] = None
        self._credentials_version: Any = None
        self._thread = threading.Thread(
            target=self._poll_loop,
            name=f"bridge-status-{client.session_name}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def send_text(self, jid: str, text: str) -> Optional[str]:
        try:
            body = self.client.send_message(jid, text)
        except TransportError as e:
            raise TransportSendError(str(e)) from e
        message_id = body.get("id")
        return str(message_id) if message_id else None

    def logout(self) -> None:
        self.client.logout()

    def close(self) -> None:
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=self.client.timeout)

    def poll_once(self) -> bool:
        """Fetch status once and emit whatever changed.

        Returns:
            False once the connection is closed and polling should stop
        """
        try:
            status = self.client.status()
        except TransportError as e:
            self._emit(
                ConnectionUpdate(
                    connection=CONNECTION_CLOSE,
                    status_code=e.status_code or DisconnectReason.CONNECTION_LOST,
                    error=str(e),
                )
            )
            return False

        self._publish_credentials(status)

        state = str(status.get("status") or "").lower()
        qr = status.get("qr") or None

        if qr and qr != self._last_qr:
            self._last_qr = qr
            self._last_status = CONNECTION_CONNECTING
            self._emit(ConnectionUpdate(connection=CONNECTION_CONNECTING, qr=qr))
            return True

        if state in PAIRING_STATUSES:
            state = CONNECTION_CONNECTING

        if state == self._last_status:
            return True

        if state == CONNECTION_OPEN:
            self._last_status = state
            self._emit(ConnectionUpdate(connection=CONNECTION_OPEN))
            return True

        if state == CONNECTION_CLOSE:
            self._last_status = state
            self._emit(
                ConnectionUpdate(
                    connection=CONNECTION_CLOSE,
                    status_code=_as_int(status.get("statusCode")),
                    error=status.get("error"),
                )
            )
            return False

        if state == CONNECTION_CONNECTING:
            self._last_status = state
            self._emit(ConnectionUpdate(connection=CONNECTION_CONNECTING))

        return True

    def _poll_loop(self) -> None:
        while not self._stop.is_set():
            try:
                if not self.poll_once():
                    return
            except Exception as e:
                logger.error(
                    f"Bridge status polling crashed: {e}",
                    exc_info=True,
                    extra={"event": "transport.poll.failed"},
                )
                self._emit(
                    ConnectionUpdate(
                        connection=CONNECTION_CLOSE,
                        status_code=DisconnectReason.CONNECTION_LOST,
                        error=str(e),
                    )
                )
                return
            self._stop.wait(self.poll_interval_seconds)

    def _publish_credentials(self, status: Dict[str, Any]) -> None:
        credentials = status.get("credentials")
        if not isinstance(credentials, dict):
            return
        version = status.get("credentialsVersion", credentials)
        if version == self._credentials_version:
            return
        self._credentials_version = version
        if not self._stop.is_set():
            self.on_credentials(credentials)

    def _emit(self, update: ConnectionUpdate) -> None:
        if not self._stop.is_set():
            self.on_update(update)


class BridgeTransport(Transport):
    """Opens sessions on a local bridge sidecar.

    Args:
        base_url: Bridge root URL, e.g. "http://127.0.0.1:8085"
        session_name: Name of the session on the bridge
        poll_interval_seconds: Status polling interval
        timeout: HTTP timeout for bridge calls (seconds)
    """

    def __init__(
        self,
        base_url: str,
        session_name: str = "notifier",
        poll_interval_seconds: float = 2.0,
        timeout: int = 30,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.client = BridgeClient(base_url, session_name, timeout=timeout, http=http)
        self.poll_interval_seconds = poll_interval_seconds

    def connect(
        self,
        credentials: Optional[Dict[str, Any]],
        on_update: UpdateCallback,
        on_credentials: CredentialsCallback,
    ) -> Connection:
        try:
            self.client.start(credentials)
        except TransportError as e:
            raise TransportConnectionError(
                f"Failed to start bridge session: {e}",
                status_code=e.status_code,
            ) from e

        logger.debug(
            "Bridge session started",
            extra={"event": "transport.session.started", "session_name": self.client.session_name},
        )

        connection = BridgeConnection(
            self.client, on_update, on_credentials, self.poll_interval_seconds
        )
        connection.start()
        return connection


def _error_text(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or ""
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason or ""


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
