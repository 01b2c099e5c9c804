"""Main entry point for the appointment notification worker."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import os
import signal
import sys
import threading
import time
from collections import Counter
from pathlib import Path
from typing import Optional, Tuple

from notifier.config.environment import EnvironmentConfig
from notifier.config.exceptions import ConfigurationError
from notifier.config.loader import load_config
from notifier.config.models import AppConfig
from notifier.jobs import STATUS_ERROR, build_handlers
from notifier.logging import get_logger
from notifier.logging.config import configure_logging
from notifier.messaging.bridge import BridgeTransport
from notifier.messaging.credentials import CredentialStore
from notifier.messaging.session import SessionManager
from notifier.persistence.database import close_database, init_database
from notifier.queue.service import JobQueue
from notifier.settings.cache import SettingsCache
from notifier.settings.client import SettingsClient
from notifier.worker.runtime import WorkerRuntime, create_scheduler

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file > INFO.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif env_config.log_level:
        pass
    elif app_config.logging and app_config.logging.level:
        env_config.log_level = app_config.logging.level
    else:
        env_config.log_level = "INFO"

    return app_config, env_config


class Worker:
    """Every long-lived component of the worker, wired together."""

    def __init__(self, app_config: AppConfig, env_config: EnvironmentConfig):
        self.scheduler = create_scheduler(app_config.worker.poll_interval_seconds)

        self.transport = BridgeTransport(
            env_config.transport_bridge_url,
            session_name=app_config.session.session_name,
            poll_interval_seconds=app_config.session.status_poll_interval_seconds,
            timeout=app_config.session.request_timeout,
        )
        self.session_manager = SessionManager(
            self.transport,
            CredentialStore(env_config.session_auth_dir),
            reconnect_delay_seconds=app_config.session.reconnect_delay_seconds,
            scheduler=self.scheduler,
        )

        self.settings_client = SettingsClient(
            env_config.settings_api_url,
            env_config.settings_api_token,
            timeout=app_config.settings_cache.request_timeout,
        )
        self.settings_cache = SettingsCache(
            self.settings_client, ttl_seconds=app_config.settings_cache.ttl_seconds
        )

        self.queue = JobQueue(
            lease_seconds=app_config.worker.job_lease_seconds,
            retry_limit=app_config.worker.retry_limit,
            retry_delay_seconds=app_config.worker.retry_delay_seconds,
            retry_backoff=app_config.worker.retry_backoff,
        )
        self.runtime = WorkerRuntime(
            self.queue,
            build_handlers(
                self.session_manager,
                self.settings_cache,
                timezone=env_config.business_timezone,
            ),
            poll_interval_seconds=app_config.worker.poll_interval_seconds,
            scheduler=self.scheduler,
        )

    def shutdown(self) -> None:
        """Stop polling, let in-flight jobs finish, then release connections."""
        self.runtime.stop(wait=True)
        self.session_manager.close()
        self.settings_client.close()
        close_database()


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the appointment notification worker.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Appointment notifier - delivers appointment reminders and messages from the job queue"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present, else built-in defaults)",
    )
    parser.add_argument(
        "--drain",
        action="store_true",
        help="Process every job that is ready now, then exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    args = parser.parse_args(argv)

    try:
        # Step 1: Load configuration before logging so the format is known
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        # Step 2: Configure logging
        log_format = app_config.logging.format if app_config.logging else "key-value"
        environment = os.environ.get("ENVIRONMENT", "local")
        configure_logging(level=env_config.log_level, format_type=log_format, environment=environment)

        logger.info(
            "Appointment notifier starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "drain": args.drain,
                "business_timezone": env_config.business_timezone,
            },
        )

        # Step 3: Database holds appointments, events and the queue
        init_database(env_config.database_url)

        # Step 4: Wire components and open the messaging session
        worker = Worker(app_config, env_config)
        worker.scheduler.start()
        worker.session_manager.initialize()

        if args.drain:
            return _run_drain(worker, app_config, start_time)

        # Daemon mode
        shutdown_event = threading.Event()

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum},
            )
            shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        worker.runtime.start()

        logger.info(
            "Worker running. Press Ctrl+C to stop",
            extra={"event": "service.daemon_mode.started"},
        )

        try:
            shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info(
                "Keyboard interrupt received, shutting down",
                extra={"event": "service.keyboard_interrupt"},
            )

        worker.shutdown()

        uptime_seconds = time.time() - start_time
        logger.info(
            "Appointment notifier stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(uptime_seconds, 2)},
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return 1


def _run_drain(worker: Worker, app_config: AppConfig, start_time: float) -> int:
    timeout = app_config.session.request_timeout
    try:
        if not worker.session_manager.wait_until_ready(timeout):
            logger.error(
                f"Messaging session not ready after {timeout}s; no jobs processed",
                extra={
                    "event": "service.drain.session_unavailable",
                    "session_state": worker.session_manager.state.value,
                },
            )
            return 1

        results = worker.runtime.drain_all()
    finally:
        worker.shutdown()

    counts = Counter(result.status for result in results)
    logger.info(
        f"Drain completed: {len(results)} jobs "
        + ", ".join(f"{count} {status}" for status, count in sorted(counts.items())),
        extra={
            "event": "service.drain.completed",
            "total_jobs": len(results),
            "duration_seconds": round(time.time() - start_time, 2),
            **{f"total_{status}": count for status, count in counts.items()},
        },
    )

    return 1 if counts.get(STATUS_ERROR) else 0


if __name__ == "__main__":
    sys.exit(main())
