"""Upload service error hierarchy."""

from typing import Optional


class UploadServiceError(Exception):
    """Base error carrying a stable code for API responses."""

    code = "UPLOAD_SERVICE_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(UploadServiceError):
    """File rejected before any storage interaction."""

    code = "VALIDATION_ERROR"


class InvalidSizeError(ValidationError):
    """Size or part size cannot be partitioned."""

    code = "INVALID_SIZE"


class NotFoundError(UploadServiceError):
    code = "NOT_FOUND_ERROR"


class ConflictError(UploadServiceError):
    code = "CONFLICT_ERROR"


class SecurityError(UploadServiceError):
    """Storage or security failure surfaced to the caller as a summary."""

    code = "SECURITY_ERROR"


class AdmissionRejected(UploadServiceError):
    """Too many concurrent large uploads; retryable."""

    code = "TOO_MANY_LARGE_UPLOADS"

    def __init__(self, message: str = "Too many concurrent large uploads, retry later", retry_after: int = 30):
        super().__init__(message)
        self.retry_after = retry_after


class StorageError(UploadServiceError):
    """Object storage call failed."""

    code = "STORAGE_ERROR"


class SessionInitError(StorageError):
    """Backend refused to open a multipart session."""

    code = "SESSION_INIT_ERROR"


class PartUploadError(StorageError):
    """One part failed after its retries were exhausted."""

    code = "PART_UPLOAD_ERROR"

    def __init__(self, part_number: int, message: Optional[str] = None):
        super().__init__(message or f"Part {part_number} failed to upload")
        self.part_number = part_number


class CompletionError(StorageError):
    """Backend rejected the final assembly, or parts are missing."""

    code = "COMPLETION_ERROR"


class AbortError(StorageError):
    """Best-effort abort failed. Logged, never raised over the root cause."""

    code = "ABORT_ERROR"
