"""Outcome of handling one queue job."""

from dataclasses import dataclass
from typing import Optional

STATUS_SENT = "sent"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"
# Set by the runtime when a handler raised and the job went back to the queue
STATUS_ERROR = "error"


@dataclass
class HandlerResult:
    """Result of handling a job.

    Every status except "error" means the job is acknowledged: "skipped"
    covers malformed payloads and business no-ops, "failed" covers delivery
    failures, which are terminal for the job.

    Attributes:
        job_id: Queue job id
        kind: Job kind
        status: sent, skipped, failed or error
        reason: Why the job was skipped or failed
        message_id: Transport message id when sent
    """

    job_id: str
    kind: str
    status: str
    reason: Optional[str] = None
    message_id: Optional[str] = None

    def is_success(self) -> bool:
        return self.status == STATUS_SENT

    @classmethod
    def sent(cls, job_id: str, kind: str, message_id: str) -> "HandlerResult":
        return cls(job_id=job_id, kind=kind, status=STATUS_SENT, message_id=message_id)

    @classmethod
    def skipped(cls, job_id: str, kind: str, reason: str) -> "HandlerResult":
        return cls(job_id=job_id, kind=kind, status=STATUS_SKIPPED, reason=reason)

    @classmethod
    def failed(cls, job_id: str, kind: str, reason: str) -> "HandlerResult":
        return cls(job_id=job_id, kind=kind, status=STATUS_FAILED, reason=reason)
