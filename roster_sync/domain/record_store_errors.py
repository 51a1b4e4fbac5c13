from __future__ import annotations

from roster_sync.core.errors import ExternalServiceError, TransientExternalError


class RecordStoreError(ExternalServiceError):
    def __init__(self, message: str, *, status_code: int | None = None, record_id: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.record_id = record_id


class RecordStoreRejectedError(RecordStoreError):
    """The API answered with a non-success status that retrying will not fix."""


class RecordStoreTransientError(RecordStoreError, TransientExternalError):
    pass


class RecordStoreRateLimitError(RecordStoreTransientError):
    def __init__(self, message: str, *, retry_after: float | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class RecordStoreUnavailableError(RecordStoreTransientError):
    """Network-level failure or 5xx answer."""
