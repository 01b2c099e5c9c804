"""Unit tests for the main entry point.

Tests the main() function including:
- Log level priority (CLI > env > config)
- Drain mode exit codes
- Daemon mode start and signal-driven shutdown
- Error handling
"""

import signal
from unittest.mock import MagicMock, patch

import pytest

from notifier.config.environment import EnvironmentConfig
from notifier.config.exceptions import ConfigurationError
from notifier.config.models import AppConfig, LoggingConfig
from notifier.jobs import STATUS_ERROR, STATUS_FAILED, STATUS_SENT, HandlerResult
from notifier.main import Worker, load_runtime_config, main
from notifier.persistence import DatabaseConnectionError


def make_env_config(log_level=None):
    return EnvironmentConfig(
        database_url="sqlite:///:memory:",
        settings_api_url="http://settings.test",
        settings_api_token="test-token",
        log_level=log_level,
    )


@pytest.fixture
def runtime_config():
    with patch("notifier.main.load_runtime_config") as mock_load:
        env_config = make_env_config(log_level="INFO")
        mock_load.return_value = (AppConfig(), env_config)
        yield mock_load


@pytest.fixture
def worker():
    with patch("notifier.main.Worker") as worker_cls:
        instance = worker_cls.return_value
        instance.session_manager.wait_until_ready.return_value = True
        instance.runtime.drain_all.return_value = []
        yield instance


@pytest.fixture(autouse=True)
def quiet_startup():
    with patch("notifier.main.configure_logging"), patch("notifier.main.init_database") as init_db:
        yield init_db


class TestLoadRuntimeConfig:
    """Test suite for load_runtime_config helper."""

    def test_cli_level_wins(self):
        app_config = AppConfig(logging=LoggingConfig(level="WARNING"))
        with patch("notifier.main.load_config", return_value=(app_config, make_env_config("ERROR"))):
            _, env_config = load_runtime_config(None, "DEBUG")

        assert env_config.log_level == "DEBUG"

    def test_env_level_beats_config(self):
        app_config = AppConfig(logging=LoggingConfig(level="WARNING"))
        with patch("notifier.main.load_config", return_value=(app_config, make_env_config("ERROR"))):
            _, env_config = load_runtime_config(None, None)

        assert env_config.log_level == "ERROR"

    def test_config_level_used_without_overrides(self):
        app_config = AppConfig(logging=LoggingConfig(level="WARNING"))
        with patch("notifier.main.load_config", return_value=(app_config, make_env_config())):
            _, env_config = load_runtime_config(None, None)

        assert env_config.log_level == "WARNING"

    def test_defaults_to_info(self):
        with patch("notifier.main.load_config", return_value=(AppConfig(), make_env_config())):
            _, env_config = load_runtime_config(None, None)

        assert env_config.log_level == "INFO"


class TestDrainMode:
    def test_drain_success(self, runtime_config, worker, quiet_startup):
        worker.runtime.drain_all.return_value = [
            HandlerResult(job_id="1", kind="send-whatsapp", status=STATUS_SENT),
            HandlerResult(job_id="2", kind="send-whatsapp", status=STATUS_FAILED, reason="x"),
        ]

        exit_code = main(["--drain"])

        assert exit_code == 0
        quiet_startup.assert_called_once_with("sqlite:///:memory:")
        worker.scheduler.start.assert_called_once()
        worker.session_manager.initialize.assert_called_once()
        worker.runtime.drain_all.assert_called_once()
        worker.runtime.start.assert_not_called()
        worker.shutdown.assert_called_once()

    def test_drain_with_errors_exits_nonzero(self, runtime_config, worker):
        worker.runtime.drain_all.return_value = [
            HandlerResult(job_id="1", kind="send-whatsapp", status=STATUS_ERROR, reason="boom"),
        ]

        assert main(["--drain"]) == 1
        worker.shutdown.assert_called_once()

    def test_drain_without_session_processes_nothing(self, runtime_config, worker):
        worker.session_manager.wait_until_ready.return_value = False

        assert main(["--drain"]) == 1
        worker.runtime.drain_all.assert_not_called()
        worker.shutdown.assert_called_once()

    def test_cli_arguments_are_forwarded(self, runtime_config, worker):
        main(["--drain", "--config", "custom.yaml", "--log-level", "DEBUG"])

        config_path, level = runtime_config.call_args.args
        assert str(config_path) == "custom.yaml"
        assert level == "DEBUG"


class TestDaemonMode:
    def test_runs_until_signal(self, runtime_config, worker):
        handlers = {}

        def register(signum, handler):
            handlers[signum] = handler

        worker.runtime.start.side_effect = lambda: handlers[signal.SIGTERM](signal.SIGTERM, None)

        with patch("notifier.main.signal.signal", side_effect=register):
            exit_code = main([])

        assert exit_code == 0
        assert set(handlers) == {signal.SIGINT, signal.SIGTERM}
        worker.runtime.start.assert_called_once()
        worker.shutdown.assert_called_once()


class TestErrors:
    def test_configuration_error(self, worker):
        with patch(
            "notifier.main.load_runtime_config",
            side_effect=ConfigurationError("bad config", errors=["missing DATABASE_URL"]),
        ):
            assert main([]) == 1

    def test_database_error(self, runtime_config, worker, quiet_startup):
        quiet_startup.side_effect = DatabaseConnectionError("unreachable")

        assert main(["--drain"]) == 1
        worker.session_manager.initialize.assert_not_called()

    def test_invalid_log_level_argument(self):
        with pytest.raises(SystemExit):
            main(["--log-level", "LOUD"])


class TestWorkerWiring:
    def test_components_share_one_scheduler(self, tmp_path):
        env_config = make_env_config()
        env_config.session_auth_dir = str(tmp_path / "auth")

        worker = Worker(AppConfig(), env_config)

        assert worker.runtime.scheduler is worker.scheduler
        assert worker.session_manager._scheduler is worker.scheduler
        assert set(worker.runtime.handlers) == {"appointment-reminder", "send-whatsapp"}
        assert worker.queue.lease_seconds == 300
        assert worker.settings_cache.ttl.total_seconds() == 300

    def test_shutdown_releases_everything(self, tmp_path):
        env_config = make_env_config()
        env_config.session_auth_dir = str(tmp_path / "auth")
        worker = Worker(AppConfig(), env_config)
        worker.runtime = MagicMock()
        worker.session_manager = MagicMock()
        worker.settings_client = MagicMock()

        with patch("notifier.main.close_database") as close_db:
            worker.shutdown()

        worker.runtime.stop.assert_called_once_with(wait=True)
        worker.session_manager.close.assert_called_once()
        worker.settings_client.close.assert_called_once()
        close_db.assert_called_once()
