"""Error taxonomy for the upload relay.

Every error carries the HTTP status it maps to; ``app.main`` renders them
as ``{success: false, message, error?}`` envelopes.
"""
from enum import Enum
from typing import Optional


class UploadError(Exception):
    """Base exception for upload errors."""
    def __init__(self, message: str, status_code: int = 500, cause: Optional[BaseException] = None):
        self.message = message
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)

    @property
    def detail(self) -> str:
        """Underlying cause text (shown to clients outside production)."""
        return str(self.cause) if self.cause is not None else self.message


class InputError(UploadError):
    """Raised when a request carries nothing to upload."""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NoFileProvided(InputError):
    def __init__(self):
        super().__init__("No file uploaded")


class NoFilesProvided(InputError):
    def __init__(self):
        super().__init__("No files uploaded")


class LimitKind(str, Enum):
    """Request-shape violations detected while staging."""
    FILE_TOO_LARGE = "file_too_large"
    TOO_MANY_FILES = "too_many_files"
    UNEXPECTED_FIELD = "unexpected_field"


class LimitExceeded(UploadError):
    """Raised by staging when a request violates size, count or field limits."""
    def __init__(self, kind: LimitKind, message: str, field_name: Optional[str] = None):
        self.kind = kind
        self.field_name = field_name
        super().__init__(message, status_code=400)

    @classmethod
    def file_too_large(cls, max_size_mb: int, field_name: Optional[str] = None) -> "LimitExceeded":
        return cls(
            LimitKind.FILE_TOO_LARGE,
            f"File too large. Maximum size is {max_size_mb}MB",
            field_name,
        )

    @classmethod
    def too_many_files(cls, max_files: int, field_name: Optional[str] = None) -> "LimitExceeded":
        return cls(
            LimitKind.TOO_MANY_FILES,
            f"Too many files. Maximum is {max_files} files",
            field_name,
        )

    @classmethod
    def unexpected_field(cls, field_name: str) -> "LimitExceeded":
        return cls(LimitKind.UNEXPECTED_FIELD, "Unexpected file field", field_name)


class RemoteUploadFailed(UploadError):
    """Raised when the remote store rejects or fails an upload."""
    def __init__(self, cause: BaseException, message: str = "Upload failed"):
        super().__init__(message, status_code=500, cause=cause)


class InternalError(UploadError):
    """Anything unexpected during orchestration."""
    def __init__(self, cause: BaseException):
        super().__init__("Upload failed", status_code=500, cause=cause)
