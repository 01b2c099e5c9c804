"""Queue exceptions."""


class QueueError(Exception):
    """Raised when the job queue cannot be read or written."""

    pass


class JobNotFoundError(QueueError):
    """Raised when completing or failing a job id the queue does not know."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")
