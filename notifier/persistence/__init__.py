"""Persistence layer for appointments, delivery events and the job queue tables.

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None
    - get_engine() -> Engine

    # Repository classes
    - AppointmentRepository: read appointments with their client
    - AppointmentEventRepository: append delivery events

    # Exceptions
    - PersistenceError: Base exception for all persistence errors
    - DatabaseConnectionError: Database connection/initialization failures
    - DataIntegrityError: Constraint violations

Example usage:
    >>> from notifier.persistence import init_database, get_session, AppointmentRepository
    >>> init_database("sqlite:///./data/notifier.db")
    >>> with get_session() as session:
    ...     appointment = AppointmentRepository(session).find_by_id("A1")
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import DatabaseConnectionError, DataIntegrityError, PersistenceError
from .repositories import AppointmentEventRepository, AppointmentRepository

__all__ = [
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    "AppointmentRepository",
    "AppointmentEventRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "DataIntegrityError",
]
