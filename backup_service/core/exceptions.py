# core/exceptions.py
"""
Exception types shared by the backup pipeline.

Unit-level failures (one table, one file) are caught inside the job loops and
turned into error strings. Run-level failures propagate to the job's outer
handler, which records a `failed` history row and sends the failure email.
"""

from typing import Optional


class BackupError(Exception):
    """Base class for all backup pipeline errors."""


class BackupConfigurationError(BackupError):
    """Required configuration (credentials, bucket, source URL) is missing."""


class SimulatedBackupFailure(BackupError):
    """Raised on purpose to exercise the failure notification path."""


class SigningError(BackupError, ValueError):
    """A request could not be signed because its inputs are malformed."""


class UploadError(BackupError):
    """
    A signed PUT did not succeed.

    Either the destination answered with a non-2xx status (`http_status` and
    `body` set) or the request never completed (`transport=True`, `detail`
    set). Neither case is retried here.
    """

    def __init__(
        self,
        *,
        http_status: Optional[int] = None,
        body: Optional[str] = None,
        transport: bool = False,
        detail: Optional[str] = None,
    ):
        self.http_status = http_status
        self.body = body
        self.transport = transport
        self.detail = detail
        if transport:
            message = f"S3 upload error: {detail}"
        else:
            message = f"S3 upload failed: {http_status} - {body}"
        super().__init__(message)


class DataSourceError(BackupError):
    """A read from the source store (table, bucket listing, download) failed."""

    def __init__(self, resource: str, message: str, http_status: Optional[int] = None):
        self.resource = resource
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class NotificationError(BackupError):
    """The email transport rejected or could not deliver a message."""


class BackupNotFoundError(BackupError):
    """No history row exists for the requested backup id."""
