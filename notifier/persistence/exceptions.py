"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError. A PersistenceError
escaping a job handler is an infrastructure failure: the runtime hands the job
back to the queue for a retry with backoff.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when the database cannot be initialised or reached.

    Examples:
    - Invalid database URL
    - Database server unreachable
    - get_session() called before init_database()
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a constraint is violated.

    Examples:
    - Event recorded for an appointment that does not exist
    - Duplicate primary key
    """

    pass
