"""Shared fixtures for the notifier test suite."""

import pytest

from notifier.logging.context import clear_log_context
from notifier.persistence import close_database, init_database
from tests.helpers import FakeClock, FakeTransport


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def mock_env_vars(monkeypatch, tmp_path):
    """Set the environment variables the worker requires."""
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("SETTINGS_API_URL", "http://settings.test")
    monkeypatch.setenv("SETTINGS_API_TOKEN", "test-token")
    monkeypatch.setenv("SESSION_AUTH_DIR", str(tmp_path / "session-auth"))
    monkeypatch.delenv("BUSINESS_TIMEZONE", raising=False)
    monkeypatch.delenv("TRANSPORT_BRIDGE_URL", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)


@pytest.fixture
def database():
    """Fresh in-memory database for each test."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_transport():
    return FakeTransport()
