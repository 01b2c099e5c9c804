"""Settings service exceptions."""

from typing import Optional


class SettingsFetchError(Exception):
    """The settings service could not be read.

    Raised for non-404 error statuses, timeouts, connection failures and
    unparseable bodies. It is an infrastructure failure: a job handler that
    hits it lets it propagate so the queue retries the job later.

    Attributes:
        status_code: HTTP status, or 0 when no response was received
        url: Requested URL
    """

    def __init__(self, message: str, status_code: int = 0, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url
