"""Tests for logging context propagation."""

import threading

from notifier.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


def test_empty_context():
    """Test that context starts empty."""
    assert get_log_context() == {}


def test_push_and_pop_fields():
    """Test pushing job fields and restoring the previous context."""
    token = push_log_context(job_id="42", job_kind="send-whatsapp")
    assert get_log_context() == {"job_id": "42", "job_kind": "send-whatsapp"}
    pop_log_context(token)
    assert get_log_context() == {}


def test_nested_context():
    """Test nested context pushes and pops."""
    token1 = push_log_context(job_id="42")
    token2 = push_log_context(appointment_id="A1")
    assert get_log_context() == {"job_id": "42", "appointment_id": "A1"}

    pop_log_context(token2)
    assert get_log_context() == {"job_id": "42"}

    pop_log_context(token1)
    assert get_log_context() == {}


def test_context_override():
    """Test that pushing the same key overwrites previous value."""
    token1 = push_log_context(job_id="1")
    token2 = push_log_context(job_id="2")
    assert get_log_context() == {"job_id": "2"}

    pop_log_context(token2)
    assert get_log_context() == {"job_id": "1"}
    pop_log_context(token1)


def test_context_manager_restores_on_exception():
    """Test that context is restored even when exception occurs."""
    try:
        with log_context(job_id="42"):
            assert get_log_context() == {"job_id": "42"}
            raise ValueError("boom")
    except ValueError:
        pass

    assert get_log_context() == {}


def test_context_manager_nested():
    with log_context(job_id="42", job_kind="appointment-reminder"):
        with log_context(appointment_id="A1"):
            assert get_log_context() == {
                "job_id": "42",
                "job_kind": "appointment-reminder",
                "appointment_id": "A1",
            }
        assert "appointment_id" not in get_log_context()

    assert get_log_context() == {}


def test_clear_context():
    push_log_context(job_id="42", appointment_id="A1")
    clear_log_context()
    assert get_log_context() == {}


def test_context_isolation():
    """Test that get_log_context returns a copy, not the actual dict."""
    with log_context(job_id="42"):
        context = get_log_context()
        context["appointment_id"] = "modified"
        assert get_log_context() == {"job_id": "42"}


def test_context_is_per_thread():
    """Each worker thread sees only its own context."""
    seen = {}

    def worker():
        seen["thread"] = get_log_context()
        with log_context(job_id="thread-job"):
            seen["inside"] = get_log_context()

    with log_context(job_id="main-job"):
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()
        assert get_log_context() == {"job_id": "main-job"}

    assert seen["thread"] == {}
    assert seen["inside"] == {"job_id": "thread-job"}
