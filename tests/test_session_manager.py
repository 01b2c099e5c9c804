"""Tests for the messaging session lifecycle, driven by synthetic connection events."""

import io
import logging
from unittest.mock import MagicMock

import pytest

from notifier.messaging import (
    ConnectionUpdate,
    CredentialStore,
    DisconnectReason,
    SendFailure,
    SendSuccess,
    SessionManager,
    SessionState,
    TransportConnectionError,
    TransportSendError,
    to_jid,
)
from notifier.messaging.pairing import render_pairing_code
from notifier.messaging.session import RECONNECT_JOB_ID


OPEN = ConnectionUpdate(connection="open")


def closed(status_code):
    return ConnectionUpdate(connection="close", status_code=status_code)


@pytest.fixture
def scheduler():
    return MagicMock()


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path / "auth")


@pytest.fixture
def pairing_output():
    return io.StringIO()


@pytest.fixture
def manager(fake_transport, store, scheduler, pairing_output):
    return SessionManager(
        fake_transport,
        store,
        reconnect_delay_seconds=3,
        scheduler=scheduler,
        pairing_output=pairing_output,
    )


def run_scheduled_reconnect(scheduler):
    """Invoke the function most recently handed to scheduler.add_job."""
    scheduled = scheduler.add_job.call_args
    scheduled.args[0]()


class TestToJid:
    def test_phone_number_is_normalised(self):
        assert to_jid("+55 (27) 99999-9999") == "5527999999999@s.whatsapp.net"

    def test_jid_passes_through(self):
        assert to_jid("120363025@g.us") == "120363025@g.us"

    def test_no_digits(self):
        assert to_jid("abc") is None


class TestConnecting:
    def test_initialize_starts_connecting(self, manager, fake_transport):
        manager.initialize()

        assert manager.state == SessionState.CONNECTING
        assert len(fake_transport.connections) == 1
        assert fake_transport.credentials_seen == [None]
        assert manager.is_ready() is False

    def test_initialize_is_idempotent(self, manager, fake_transport):
        manager.initialize()
        manager.initialize()

        assert len(fake_transport.connections) == 1

    def test_open_event_makes_session_ready(self, manager, fake_transport):
        manager.initialize()
        fake_transport.last.on_update(OPEN)

        assert manager.state == SessionState.READY
        assert manager.is_ready() is True
        assert manager.wait_until_ready(0) is True

    def test_wait_until_ready_times_out(self, manager):
        manager.initialize()

        assert manager.wait_until_ready(0.01) is False

    def test_stored_credentials_are_used(self, manager, fake_transport, store):
        store.save({"me": "5527999999999"})

        manager.initialize()

        assert fake_transport.credentials_seen == [{"me": "5527999999999"}]

    def test_corrupt_credentials_start_fresh(self, manager, fake_transport, tmp_path):
        (tmp_path / "auth").mkdir()
        (tmp_path / "auth" / "creds.json").write_text("{broken")

        manager.initialize()

        assert fake_transport.credentials_seen == [None]
        assert manager.state == SessionState.CONNECTING

    def test_credentials_update_is_persisted(self, manager, fake_transport, store):
        manager.initialize()
        fake_transport.last.on_credentials({"me": "5527999999999", "registered": True})

        assert store.load() == {"me": "5527999999999", "registered": True}

    def test_failed_credential_save_drops_connection(self, manager, fake_transport, scheduler):
        manager.initialize()
        first = fake_transport.last
        first.on_update(OPEN)

        first.on_credentials({"unserialisable": object()})

        assert manager.state == SessionState.DISCONNECTED
        assert manager.is_ready() is False
        assert first.closed is True
        assert scheduler.add_job.call_args.kwargs["id"] == RECONNECT_JOB_ID

        first.on_update(OPEN)
        assert manager.is_ready() is False

    def test_pairing_code_is_printed(self, manager, fake_transport, pairing_output, caplog):
        manager.initialize()

        with caplog.at_level(logging.WARNING, logger="notifier.messaging.session"):
            fake_transport.last.on_update(ConnectionUpdate(connection="connecting", qr="2@abc"))

        assert any(getattr(r, "event", None) == "session.pairing_required" for r in caplog.records)
        assert manager.state == SessionState.CONNECTING

        printed = pairing_output.getvalue()
        assert "Linked Devices" in printed
        assert render_pairing_code("2@abc") in printed

    def test_pairing_code_renders_as_blocks(self):
        rendered = render_pairing_code("2@abc,def,ghi")

        assert len(rendered.splitlines()) > 10
        assert "█" in rendered
        assert rendered == render_pairing_code("2@abc,def,ghi")


class TestSending:
    def test_send_when_not_ready_does_no_io(self, manager, fake_transport):
        manager.initialize()

        result = manager.send("5527999999999", "Olá")

        assert result == SendFailure(reason="not_connected")
        assert fake_transport.last.sent == []

    def test_send_before_initialize(self, manager):
        assert manager.send("5527999999999", "Olá") == SendFailure(reason="not_connected")

    def test_send_success(self, manager, fake_transport):
        manager.initialize()
        fake_transport.last.on_update(OPEN)

        result = manager.send("+55 27 99999-9999", "Olá Ana")

        assert result == SendSuccess(message_id="msg-1")
        assert fake_transport.last.sent == [("5527999999999@s.whatsapp.net", "Olá Ana")]

    def test_send_error_becomes_failure(self, manager, fake_transport):
        manager.initialize()
        fake_transport.last.on_update(OPEN)
        fake_transport.last.send_error = TransportSendError("socket closed")

        result = manager.send("5527999999999", "Olá")

        assert result == SendFailure(reason="socket closed")

    def test_invalid_recipient(self, manager, fake_transport):
        manager.initialize()
        fake_transport.last.on_update(OPEN)

        assert manager.send("no phone", "Olá") == SendFailure(reason="invalid_recipient")
        assert fake_transport.last.sent == []


class TestDisconnects:
    def test_close_schedules_reconnect(self, manager, fake_transport, scheduler):
        manager.initialize()
        first = fake_transport.last
        first.on_update(OPEN)

        first.on_update(closed(DisconnectReason.CONNECTION_LOST))

        assert manager.state == SessionState.DISCONNECTED
        assert manager.is_ready() is False
        assert first.closed is True
        kwargs = scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == RECONNECT_JOB_ID
        assert kwargs["replace_existing"] is True
        assert kwargs["trigger"] == "date"

    def test_reconnect_opens_new_connection(self, manager, fake_transport, scheduler):
        manager.initialize()
        fake_transport.last.on_update(closed(DisconnectReason.CONNECTION_CLOSED))

        run_scheduled_reconnect(scheduler)

        assert len(fake_transport.connections) == 2
        assert manager.state == SessionState.CONNECTING

        fake_transport.last.on_update(OPEN)
        assert manager.is_ready() is True

    def test_repeated_failures_keep_rescheduling(self, manager, fake_transport, scheduler):
        manager.initialize()
        for _ in range(3):
            fake_transport.last.on_update(closed(DisconnectReason.UNAVAILABLE_SERVICE))
            run_scheduled_reconnect(scheduler)

        assert scheduler.add_job.call_count == 3
        assert len(fake_transport.connections) == 4

    def test_events_from_superseded_connection_are_ignored(self, manager, fake_transport, scheduler):
        manager.initialize()
        first = fake_transport.last
        first.on_update(closed(DisconnectReason.CONNECTION_LOST))
        run_scheduled_reconnect(scheduler)

        first.on_update(OPEN)
        first.on_update(closed(DisconnectReason.LOGGED_OUT))

        assert manager.state == SessionState.CONNECTING
        assert scheduler.add_job.call_count == 1

    def test_stale_credentials_are_not_saved(self, manager, fake_transport, scheduler, store):
        manager.initialize()
        first = fake_transport.last
        first.on_update(closed(DisconnectReason.CONNECTION_LOST))

        first.on_credentials({"stale": True})

        assert store.load() is None

    def test_reconnect_skipped_when_no_longer_disconnected(self, manager, fake_transport, scheduler):
        manager.initialize()
        fake_transport.last.on_update(closed(DisconnectReason.CONNECTION_LOST))
        manager.close()

        run_scheduled_reconnect(scheduler)

        assert len(fake_transport.connections) == 1

    def test_remote_logout_is_terminal(self, manager, fake_transport, scheduler, store):
        store.save({"me": "5527999999999"})
        manager.initialize()
        fake_transport.last.on_update(OPEN)

        fake_transport.last.on_update(closed(DisconnectReason.LOGGED_OUT))

        assert manager.state == SessionState.LOGGED_OUT
        scheduler.add_job.assert_not_called()
        assert manager.send("5527999999999", "Olá") == SendFailure(reason="not_connected")
        # Credentials are left for the operator to remove
        assert store.exists() is True

    def test_connect_error_schedules_reconnect(self, manager, fake_transport, scheduler):
        fake_transport.connect_error = TransportConnectionError("bridge down", status_code=503)

        manager.initialize()

        assert manager.state == SessionState.DISCONNECTED
        assert scheduler.add_job.call_count == 1

    def test_connect_error_with_logged_out_status(self, manager, fake_transport, scheduler):
        fake_transport.connect_error = TransportConnectionError("unauthorized", status_code=401)

        manager.initialize()

        assert manager.state == SessionState.LOGGED_OUT
        scheduler.add_job.assert_not_called()


class TestShutdown:
    def test_logout_clears_credentials(self, manager, fake_transport, scheduler, store):
        store.save({"me": "5527999999999"})
        manager.initialize()
        connection = fake_transport.last
        connection.on_update(OPEN)

        manager.logout()

        assert manager.state == SessionState.LOGGED_OUT
        assert connection.logged_out is True
        assert connection.closed is True
        assert store.exists() is False
        scheduler.remove_job.assert_called_with(RECONNECT_JOB_ID)

    def test_close_keeps_credentials_and_ignores_late_events(
        self, manager, fake_transport, scheduler, store
    ):
        store.save({"me": "5527999999999"})
        manager.initialize()
        connection = fake_transport.last

        manager.close()
        connection.on_update(OPEN)

        assert manager.state == SessionState.DISCONNECTED
        assert connection.closed is True
        assert store.exists() is True
        scheduler.shutdown.assert_not_called()

    def test_initialize_after_close_does_nothing(self, manager, fake_transport):
        manager.close()
        manager.initialize()

        assert fake_transport.connections == []

    def test_owned_scheduler_is_started_and_stopped(self, fake_transport, store):
        manager = SessionManager(fake_transport, store)

        manager.initialize()
        assert manager._scheduler.running is True

        manager.close()
        assert manager._scheduler.running is False
