"""
Error taxonomy for the media publishing layer.

Every failure inside a platform driver is raised as one of these classes and
converted into a failed PlatformResult at the driver boundary, so the message
of each exception is what the caller eventually sees.

Exception Hierarchy:
    PublishError (base)
    ├── FetchError          download / validation / SSRF / size / timeout
    ├── AuthError           missing or rejected credentials
    ├── UploadError         non-2xx platform responses, unexpected failures
    ├── ProcessingError     platform-reported job failure (verbatim)
    └── PollingTimeoutError polling attempt cap exhausted
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable identifiers for publishing failures."""

    FETCH_FAILED = "FETCH_FAILED"
    AUTH_FAILED = "AUTH_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    PROCESSING_TIMEOUT = "PROCESSING_TIMEOUT"


class PublishError(Exception):
    """
    Base exception for all publishing errors.

    Attributes:
        message: Human-readable message, passed through to the caller.
        platform: Name of the platform that raised the error, if any.
        error_code: Machine-readable error code.
        status_code: HTTP status returned by the platform, if any.
        raw_error: Raw platform response body for logging.
    """

    default_error_code: ErrorCode = ErrorCode.UPLOAD_FAILED

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        raw_error: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.error_code = error_code or self.default_error_code
        self.status_code = status_code
        self.raw_error = raw_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a JSON-serializable dictionary."""
        data: Dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.platform:
            data["platform"] = self.platform
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"platform={self.platform!r}, "
            f"error_code={self.error_code.value!r})"
        )


class FetchError(PublishError):
    """Raised when the source media cannot be downloaded or is rejected."""

    default_error_code = ErrorCode.FETCH_FAILED


class AuthError(PublishError):
    """Raised when platform credentials are absent or rejected."""

    default_error_code = ErrorCode.AUTH_FAILED


class UploadError(PublishError):
    """Raised when a platform answers an upload or post step with non-2xx."""

    default_error_code = ErrorCode.UPLOAD_FAILED


class ProcessingError(PublishError):
    """Raised when a platform reports that its processing job failed."""

    default_error_code = ErrorCode.PROCESSING_FAILED


class PollingTimeoutError(PublishError):
    """Raised when a job never reaches a terminal state within the attempt cap."""

    default_error_code = ErrorCode.PROCESSING_TIMEOUT

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> None:
        super().__init__(message, platform=platform)
        self.attempts = attempts
