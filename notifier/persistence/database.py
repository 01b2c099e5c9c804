"""Database connection and session management.

One engine serves the appointment store and the job queue. It is created once
at startup by init_database() and disposed by close_database() during
shutdown.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from notifier.logging import get_logger

from .exceptions import DatabaseConnectionError

_engine: Engine | None = None
_session_factory: sessionmaker | None = None

logger = get_logger(__name__, component="database")


def init_database(database_url: str) -> None:
    """Initialize database connection and create schema if tables don't exist.

    Call once during startup. Creates the engine, applies SQLite pragmas when
    relevant, validates the connection and creates missing tables.

    Args:
        database_url: SQLAlchemy URL, e.g. "postgresql+psycopg2://..." or "sqlite:///./data/notifier.db"

    Raises:
        DatabaseConnectionError: If database initialization fails

    Example:
        >>> init_database("sqlite:///./data/notifier.db")
    """
    global _engine, _session_factory

    try:
        if not database_url or not isinstance(database_url, str):
            raise DatabaseConnectionError("Database URL must be a non-empty string")

        database_url = _normalize_url(database_url)

        logger.info(
            "Initializing database",
            extra={
                "event": "database.initializing",
                "database_url": _redact_url(database_url),
            },
        )

        is_sqlite = database_url.startswith("sqlite")
        is_memory = is_sqlite and (database_url.endswith(":memory:") or database_url == "sqlite://")

        # For SQLite file databases, ensure parent directory exists
        if is_sqlite and not is_memory:
            db_file = Path(database_url.replace("sqlite:///", ""))
            if not db_file.parent.exists():
                logger.info(f"Creating database directory: {db_file.parent}")
                db_file.parent.mkdir(parents=True, exist_ok=True)

        engine_kwargs = {"echo": False, "pool_pre_ping": True, "future": True}
        if is_sqlite:
            # Runtime threads share the engine
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if is_memory:
                # One shared connection, otherwise every thread sees its own empty database
                engine_kwargs["poolclass"] = StaticPool

        if _engine is not None:
            _engine.dispose()

        _engine = create_engine(database_url, **engine_kwargs)

        if is_sqlite:
            _configure_sqlite(_engine)

        _validate_connection(_engine)

        _session_factory = sessionmaker(
            bind=_engine,
            autocommit=False,
            autoflush=True,
            expire_on_commit=False,
            future=True,
        )

        from .schema import create_schema

        create_schema(_engine)

        logger.info(
            "Database initialized successfully",
            extra={
                "event": "database.initialised",
                "database_url": _redact_url(database_url),
            },
        )

    except DatabaseConnectionError:
        raise
    except Exception as e:
        error_msg = f"Failed to initialize database: {e}"
        logger.error(error_msg, exc_info=True)
        raise DatabaseConnectionError(error_msg) from e


def _normalize_url(database_url: str) -> str:
    """Accept the bare postgres:// scheme used by hosting providers."""
    if database_url.startswith("postgres://"):
        database_url = "postgresql://" + database_url[len("postgres://"):]
    try:
        make_url(database_url)
    except ArgumentError as e:
        raise DatabaseConnectionError(f"Invalid database URL: {e}") from e
    return database_url


def _configure_sqlite(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def _validate_connection(engine: Engine) -> None:
    """Run a trivial query so a bad URL fails at startup rather than on the first job."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        logger.debug("Database connection validated successfully")
    except Exception as e:
        raise DatabaseConnectionError(f"Failed to validate database connection: {e}") from e


def _redact_url(url: str) -> str:
    """Hide the password in a database URL for logging."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid url>"


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Provide a database session with automatic transaction management.

    Commits on successful exit, rolls back on exception, always closes.

    Raises:
        DatabaseConnectionError: If database not initialized

    Example:
        >>> with get_session() as session:
        ...     appointment = AppointmentRepository(session).find_by_id("A1")
    """
    if _session_factory is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_session()"
        )

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.warning(
            f"Database session rolled back due to exception: {e}",
            extra={
                "event": "database.session.rolled_back",
                "error_type": type(e).__name__,
            },
        )
        raise
    finally:
        session.close()


def get_engine() -> Engine:
    """Get the database engine instance.

    Raises:
        DatabaseConnectionError: If database not initialized
    """
    if _engine is None:
        raise DatabaseConnectionError(
            "Database not initialized. Call init_database() before using get_engine()"
        )

    return _engine


def close_database() -> None:
    """Dispose the engine. Called during shutdown."""
    global _engine, _session_factory

    if _engine is not None:
        logger.info("Closing database connections", extra={"event": "database.closing"})
        _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connections closed", extra={"event": "database.closed"})
