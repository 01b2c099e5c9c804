"""Worker runtime: polls the queue per job kind and dispatches to handlers."""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from notifier.domain.models import Job
from notifier.jobs.models import STATUS_ERROR, HandlerResult
from notifier.logging import get_logger
from notifier.queue.exceptions import QueueError
from notifier.queue.service import JobQueue

logger = get_logger(__name__, component="worker")


def create_scheduler(poll_interval_seconds: int) -> BackgroundScheduler:
    """Scheduler shared by queue polling and session reconnects."""
    return BackgroundScheduler(
        job_defaults={
            "max_instances": 1,  # one in-flight job per kind
            "coalesce": True,
            "misfire_grace_time": poll_interval_seconds,
        },
        timezone=timezone.utc,
    )


class WorkerRuntime:
    """Binds job kinds to handlers and runs them from the queue.

    Each kind gets one interval job on the scheduler. A tick claims and
    handles jobs of that kind one at a time until none are ready or shutdown
    starts. Handler exceptions are infrastructure failures: the job is handed
    back to the queue with ``fail`` for a delayed retry. Every returned result
    is acknowledged with ``complete``.

    Args:
        queue: Job queue
        handlers: Job kind -> object with ``handle(job) -> HandlerResult``
        poll_interval_seconds: How often each kind polls when idle
        scheduler: Scheduler to register polling jobs on (created when omitted)
    """

    def __init__(
        self,
        queue: JobQueue,
        handlers: Dict[str, object],
        poll_interval_seconds: int = 2,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.queue = queue
        self.handlers = dict(handlers)
        self.poll_interval_seconds = poll_interval_seconds
        self.scheduler = scheduler or create_scheduler(poll_interval_seconds)
        self._stopping = threading.Event()

    @staticmethod
    def poll_job_id(kind: str) -> str:
        return f"poll-{kind}"

    def start(self) -> None:
        """Register one polling job per kind and start the scheduler."""
        next_run = datetime.now(timezone.utc)
        for kind in self.handlers:
            self.scheduler.add_job(
                func=self.drain_kind,
                trigger=IntervalTrigger(seconds=self.poll_interval_seconds, timezone=timezone.utc),
                args=[kind],
                id=self.poll_job_id(kind),
                name=f"Poll {kind}",
                replace_existing=True,
                next_run_time=next_run,
            )

        if not self.scheduler.running:
            self.scheduler.start()

        logger.info(
            f"Worker started for {len(self.handlers)} job kinds",
            extra={
                "event": "worker.started",
                "job_kinds": sorted(self.handlers),
                "poll_interval_seconds": self.poll_interval_seconds,
            },
        )

    def stop(self, wait: bool = True) -> None:
        """Stop claiming jobs and shut the scheduler down.

        Args:
            wait: Block until in-flight handlers have finished
        """
        if self._stopping.is_set():
            return
        self._stopping.set()

        logger.info(
            "Stopping worker",
            extra={"event": "worker.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        logger.info("Worker stopped", extra={"event": "worker.stopped"})

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def drain_kind(self, kind: str) -> List[HandlerResult]:
        """Handle ready jobs of one kind until none are left or shutdown starts."""
        results = []
        while not self._stopping.is_set():
            try:
                result = self.process_next(kind)
            except QueueError as e:
                logger.error(
                    f"Queue fetch failed for {kind}: {e}",
                    extra={"event": "worker.fetch.failed", "job_kind": kind},
                )
                break
            if result is None:
                break
            results.append(result)
        return results

    def drain_all(self) -> List[HandlerResult]:
        """Handle every ready job of every kind once."""
        results = []
        for kind in self.handlers:
            results.extend(self.drain_kind(kind))
        return results

    def process_next(self, kind: str) -> Optional[HandlerResult]:
        """Claim and handle one job of the given kind.

        Returns:
            The handler result, or None if no job was ready

        Raises:
            QueueError: If the queue cannot be read
        """
        job = self.queue.fetch(kind)
        if job is None:
            return None
        return self._run_job(self.handlers[kind], job)

    def _run_job(self, handler, job: Job) -> HandlerResult:
        try:
            result = handler.handle(job)
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.error(
                f"Job {job.id} failed: {error}",
                exc_info=True,
                extra={
                    "event": "job.error",
                    "job_id": job.id,
                    "job_kind": job.name,
                    "retry_count": job.retry_count,
                },
            )
            try:
                self.queue.fail(job.id, error)
            except QueueError as qe:
                logger.error(
                    f"Could not record failure of job {job.id}: {qe}",
                    extra={"event": "worker.fail.failed", "job_id": job.id},
                )
            return HandlerResult(job_id=job.id, kind=job.name, status=STATUS_ERROR, reason=error)

        try:
            self.queue.complete(job.id)
        except QueueError as e:
            # The lease will expire and the job will be delivered again
            logger.error(
                f"Could not acknowledge job {job.id}: {e}",
                extra={"event": "worker.complete.failed", "job_id": job.id},
            )

        logger.info(
            f"Job {job.id} completed ({result.status})",
            extra={
                "event": "job.completed",
                "job_id": job.id,
                "job_kind": job.name,
                "status": result.status,
                "reason": result.reason,
            },
        )
        return result
