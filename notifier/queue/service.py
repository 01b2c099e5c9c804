"""Durable job queue stored in the relational database.

Jobs move through ``created -> active -> completed``. A handler that raises
sends its job to ``retry`` (delayed, optionally with exponential backoff) until
the retry limit is reached, after which the job is ``failed``. A claimed job
holds a lease; if it is never acknowledged the lease expires and the job can be
claimed again.
"""

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, ContextManager, Dict, Iterator, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notifier.domain.models import Job, JobState
from notifier.logging import get_logger
from notifier.persistence.database import get_session
from notifier.persistence.exceptions import PersistenceError
from notifier.persistence.schema import JobRecordModel
from notifier.utils.timestamps import format_timestamp, utc_now

from .exceptions import JobNotFoundError, QueueError

logger = get_logger(__name__, component="queue")

# Candidates inspected per fetch before giving up on a contended claim
MAX_CLAIM_ATTEMPTS = 5


class JobQueue:
    """Named job queue with at-least-once delivery.

    Args:
        session_factory: Callable returning a session context manager
        lease_seconds: How long a claimed job stays invisible to other fetches
        retry_limit: Default number of retries for new jobs
        retry_delay_seconds: Default base retry delay for new jobs
        retry_backoff: Default backoff flag for new jobs
        clock: Source of the current UTC time
    """

    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
        lease_seconds: int = 300,
        retry_limit: int = 5,
        retry_delay_seconds: int = 30,
        retry_backoff: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.lease_seconds = lease_seconds
        self.retry_limit = retry_limit
        self.retry_delay_seconds = retry_delay_seconds
        self.retry_backoff = retry_backoff
        self.clock = clock

        self._order_lock = threading.Lock()
        self._last_created: Optional[datetime] = None

    def send(
        self,
        name: str,
        data: Optional[Dict[str, Any]] = None,
        start_after: Optional[datetime] = None,
        retry_limit: Optional[int] = None,
        retry_delay_seconds: Optional[int] = None,
        retry_backoff: Optional[bool] = None,
    ) -> str:
        """Enqueue a job.

        Args:
            name: Job kind
            data: JSON-serialisable payload
            start_after: Earliest time the job may run (defaults to now)
            retry_limit: Overrides the queue default
            retry_delay_seconds: Overrides the queue default
            retry_backoff: Overrides the queue default

        Returns:
            The new job id

        Raises:
            QueueError: If the job cannot be stored
        """
        job_id = uuid.uuid4().hex
        created_on = self._next_created_on()

        record = JobRecordModel(
            id=job_id,
            name=name,
            data=dict(data or {}),
            state=JobState.CREATED.value,
            retry_count=0,
            retry_limit=self.retry_limit if retry_limit is None else retry_limit,
            retry_delay_seconds=(
                self.retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
            ),
            retry_backoff=self.retry_backoff if retry_backoff is None else retry_backoff,
            start_after=format_timestamp(start_after or self.clock()),
            created_on=format_timestamp(created_on),
        )

        with self._transaction("send") as session:
            session.add(record)

        logger.info(
            f"Queued {name} job {job_id}",
            extra={
                "event": "queue.job.created",
                "job_id": job_id,
                "job_kind": name,
                "start_after": record.start_after,
            },
        )
        return job_id

    def fetch(self, name: str) -> Optional[Job]:
        """Claim the oldest eligible job of one kind.

        Eligible jobs are pending (created or retry) with ``start_after`` in the
        past, or active jobs whose lease has expired.

        Returns:
            The claimed job, or None if nothing is ready

        Raises:
            QueueError: If the queue cannot be read
        """
        for _ in range(MAX_CLAIM_ATTEMPTS):
            now = self.clock()
            now_str = format_timestamp(now)

            with self._transaction("fetch") as session:
                stmt = (
                    select(JobRecordModel)
                    .where(
                        JobRecordModel.name == name,
                        or_(
                            and_(
                                JobRecordModel.state.in_(
                                    [JobState.CREATED.value, JobState.RETRY.value]
                                ),
                                JobRecordModel.start_after <= now_str,
                            ),
                            and_(
                                JobRecordModel.state == JobState.ACTIVE.value,
                                JobRecordModel.expire_at <= now_str,
                            ),
                        ),
                    )
                    .order_by(JobRecordModel.created_on.asc(), JobRecordModel.id.asc())
                    .limit(1)
                    .with_for_update(skip_locked=True)
                )
                candidate = session.execute(stmt).scalar_one_or_none()

                if candidate is None:
                    return None

                previous_state = candidate.state
                retry_count = candidate.retry_count

                if previous_state == JobState.ACTIVE.value:
                    # Lease expired without acknowledgement; counts as an attempt
                    retry_count += 1
                    logger.warning(
                        f"Lease expired for job {candidate.id}",
                        extra={
                            "event": "queue.job.lease_expired",
                            "job_id": candidate.id,
                            "job_kind": name,
                            "retry_count": retry_count,
                        },
                    )
                    if retry_count > candidate.retry_limit:
                        self._mark_failed(session, candidate, now_str, "lease expired")
                        continue

                result = session.execute(
                    update(JobRecordModel)
                    .where(
                        JobRecordModel.id == candidate.id,
                        JobRecordModel.state == previous_state,
                        JobRecordModel.retry_count == candidate.retry_count,
                    )
                    .values(
                        state=JobState.ACTIVE.value,
                        retry_count=retry_count,
                        started_on=now_str,
                        expire_at=format_timestamp(now + timedelta(seconds=self.lease_seconds)),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    # Claimed by someone else between select and update
                    continue

                session.expire(candidate)
                job = session.get(JobRecordModel, candidate.id).to_domain()

            logger.debug(
                f"Claimed {name} job {job.id}",
                extra={"event": "queue.job.claimed", "job_id": job.id, "job_kind": name},
            )
            return job

        return None

    def complete(self, job_id: str) -> bool:
        """Acknowledge a job.

        Returns:
            True if the job was active and is now completed, False if it was no
            longer active (for example its lease expired and it was reclaimed)

        Raises:
            JobNotFoundError: If the job does not exist
            QueueError: If the queue cannot be written
        """
        now_str = format_timestamp(self.clock())

        with self._transaction("complete") as session:
            record = session.get(JobRecordModel, job_id)
            if record is None:
                raise JobNotFoundError(job_id)

            if record.state != JobState.ACTIVE.value:
                logger.warning(
                    f"Job {job_id} is {record.state}, not active; ignoring acknowledgement",
                    extra={"event": "queue.job.stale_ack", "job_id": job_id, "state": record.state},
                )
                return False

            record.state = JobState.COMPLETED.value
            record.completed_on = now_str
            record.expire_at = None

        logger.debug(
            f"Completed job {job_id}",
            extra={"event": "queue.job.completed", "job_id": job_id},
        )
        return True

    def fail(self, job_id: str, error: str) -> JobState:
        """Record a failed attempt.

        The job goes back to ``retry`` with a delayed ``start_after`` while it
        has retries left, otherwise it becomes ``failed``.

        Returns:
            The job's new state

        Raises:
            JobNotFoundError: If the job does not exist
            QueueError: If the queue cannot be written
        """
        now = self.clock()

        with self._transaction("fail") as session:
            record = session.get(JobRecordModel, job_id)
            if record is None:
                raise JobNotFoundError(job_id)

            record.last_error = error
            record.expire_at = None

            if record.retry_count < record.retry_limit:
                delay = record.retry_delay_seconds
                if record.retry_backoff:
                    delay = delay * (2 ** record.retry_count)
                record.retry_count += 1
                record.state = JobState.RETRY.value
                record.started_on = None
                record.start_after = format_timestamp(now + timedelta(seconds=delay))
                new_state = JobState.RETRY

                logger.warning(
                    f"Job {job_id} failed, retry {record.retry_count}/{record.retry_limit} in {delay}s",
                    extra={
                        "event": "queue.job.retry_scheduled",
                        "job_id": job_id,
                        "job_kind": record.name,
                        "retry_count": record.retry_count,
                        "delay_seconds": delay,
                    },
                )
            else:
                self._mark_failed(session, record, format_timestamp(now), error)
                new_state = JobState.FAILED

        return new_state

    def get(self, job_id: str) -> Optional[Job]:
        """Look up a job by id."""
        with self._transaction("get") as session:
            record = session.get(JobRecordModel, job_id)
            return record.to_domain() if record else None

    def count(self, name: str, state: Optional[JobState] = None) -> int:
        """Count jobs of one kind, optionally restricted to a state."""
        with self._transaction("count") as session:
            stmt = select(func.count()).select_from(JobRecordModel).where(
                JobRecordModel.name == name
            )
            if state is not None:
                stmt = stmt.where(JobRecordModel.state == JobState(state).value)
            return int(session.execute(stmt).scalar_one())

    def _mark_failed(
        self, session: Session, record: JobRecordModel, now_str: str, error: str
    ) -> None:
        record.state = JobState.FAILED.value
        record.completed_on = now_str
        record.expire_at = None
        record.last_error = error
        session.flush()

        logger.error(
            f"Job {record.id} failed permanently after {record.retry_count} retries: {error}",
            extra={
                "event": "queue.job.failed",
                "job_id": record.id,
                "job_kind": record.name,
                "retry_count": record.retry_count,
            },
        )

    def _next_created_on(self) -> datetime:
        """Strictly increasing creation time so FIFO order survives equal clock readings."""
        with self._order_lock:
            now = self.clock()
            if self._last_created is not None and now <= self._last_created:
                now = self._last_created + timedelta(microseconds=1)
            self._last_created = now
            return now

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        """Session scope that converts storage errors into QueueError."""
        try:
            with self.session_factory() as session:
                yield session
        except (SQLAlchemyError, PersistenceError) as e:
            raise QueueError(f"Queue {operation} failed: {e}") from e
