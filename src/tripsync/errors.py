from __future__ import annotations


class TripSyncError(Exception):
    code = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class Unauthorized(TripSyncError):
    """Missing, invalid or expired credential."""

    code = "unauthorized"


class NotFound(TripSyncError):
    """Session absent or not owned by the caller; both cases look the same to the caller."""

    code = "session_not_found"


class InvalidInput(TripSyncError):
    code = "invalid_input"


class StorageFailure(TripSyncError):
    code = "storage_failure"


class SyncFailure(TripSyncError):
    code = "sync_failure"

    def __init__(self, message: str = "", *, retryable: bool = True, status: int | None = None):
        super().__init__(message)
        self.retryable = retryable
        self.status = status


class CacheCorruption(TripSyncError):
    code = "cache_corruption"


class CompletionFailure(TripSyncError):
    code = "completion_failed"
