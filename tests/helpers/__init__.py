"""Test helper utilities for the notifier tests."""

from .fakes import (
    FakeClock,
    FakeConnection,
    FakeTransport,
    StaticSettingsCache,
    add_appointment,
    make_appointment,
)

__all__ = [
    "FakeClock",
    "FakeConnection",
    "FakeTransport",
    "StaticSettingsCache",
    "add_appointment",
    "make_appointment",
]
