"""On-disk persistence of messaging session credentials."""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from notifier.logging import get_logger

from .exceptions import CredentialStoreError

logger = get_logger(__name__, component="session")

CREDENTIALS_FILE = "creds.json"


class CredentialStore:
    """Keeps the session's credential material in a local directory.

    Writes are atomic (temp file, fsync, rename) so a crash leaves either the
    previous or the new credentials on disk, never a partial file.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.path = self.directory / CREDENTIALS_FILE
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Optional[Dict[str, Any]]:
        """Read stored credentials.

        Returns:
            Credential mapping, or None if nothing has been stored yet

        Raises:
            CredentialStoreError: If the file exists but cannot be read or parsed
        """
        with self._lock:
            if not self.path.is_file():
                return None
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                raise CredentialStoreError(f"Failed to read credentials from {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise CredentialStoreError(f"Credentials file {self.path} does not contain an object")
        return data

    def save(self, credentials: Dict[str, Any]) -> None:
        """Atomically replace stored credentials.

        Raises:
            CredentialStoreError: If the file cannot be written
        """
        with self._lock:
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(
                    prefix=".creds-", suffix=".tmp", dir=str(self.directory)
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(credentials, f, sort_keys=True)
                        f.flush()
                        os.fsync(f.fileno())
                    os.replace(tmp_path, self.path)
                except BaseException:
                    if os.path.exists(tmp_path):
                        os.unlink(tmp_path)
                    raise
            except (OSError, TypeError, ValueError) as e:
                raise CredentialStoreError(f"Failed to write credentials to {self.path}: {e}") from e

        logger.debug("Session credentials saved", extra={"event": "session.credentials.saved"})

    def clear(self) -> None:
        """Delete stored credentials, forcing a fresh pairing on next connect."""
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                return
            except OSError as e:
                raise CredentialStoreError(f"Failed to delete {self.path}: {e}") from e

        logger.info("Session credentials cleared", extra={"event": "session.credentials.cleared"})
