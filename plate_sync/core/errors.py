"""
Error types raised by the recognition and Drive sync pipeline.
"""

from typing import Any, Optional


class PlateSyncError(Exception):
    """Base class for pipeline errors."""


class RateLimited(PlateSyncError):
    """Raised when the OCR endpoint answers HTTP 429."""

    def __init__(self, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(f"Rate limited (retry-after={retry_after})")


class TransportFailure(PlateSyncError):
    """Network, HTTP or response-parsing failure talking to a remote API."""


class SessionNotReadyError(PlateSyncError):
    """Drive session used before ensure_ready() succeeded."""


class SessionInitError(PlateSyncError):
    """Drive or identity client failed to bootstrap."""


class SessionTimeoutError(SessionInitError):
    """Client bootstrap did not finish within the configured bound."""


class AuthorizationDenied(PlateSyncError):
    """User declined the account picker or the provider rejected the grant."""

    def __init__(self, payload: Any):
        self.payload = payload
        super().__init__(f"Authorization denied: {payload}")


class PartialSyncFailure(PlateSyncError):
    """
    An upload failed after the Drive folder was created.

    Photos uploaded before the failure stay in the folder; the local record
    is saved but not fully synced.
    """

    def __init__(self, folder_id: str, uploaded: int, total: int, cause: BaseException):
        self.folder_id = folder_id
        self.uploaded = uploaded
        self.total = total
        self.cause = cause
        super().__init__(
            f"Saved locally but not fully synced: uploaded {uploaded}/{total} "
            f"photos to folder {folder_id} ({cause})"
        )
