"""
HTTP-level exception classes for the Social Poster API.

These cover failures that happen before a publish is attempted (bad API key,
bad body, missing server configuration). Failures inside a publish never
surface as exceptions at this layer; they become per-platform results.

Exception Hierarchy:
    PosterAPIException (base, 500)
    ├── ValidationError (400)
    ├── AuthenticationError (401)
    └── ConfigurationError (500)
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable identifiers for API error responses."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    HTTP_ERROR = "HTTP_ERROR"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

    # Authentication errors (401)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_API_KEY = "INVALID_API_KEY"

    # Server configuration errors (500)
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class PosterAPIException(Exception):
    """
    Base exception for API errors.

    Attributes:
        message: Message returned to the client.
        error_code: Machine-readable error code.
        status_code: HTTP status code to return.
        details: Additional context (must not contain secrets).
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        response: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            response["details"] = self.details
        return response

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value!r}, "
            f"status_code={self.status_code})"
        )


class ValidationError(PosterAPIException):
    """Raised when the request body fails validation."""

    status_code = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
    ):
        details = {"field": field} if field else None
        super().__init__(message=message, error_code=error_code, details=details)


class AuthenticationError(PosterAPIException):
    """Raised when the X-API-Key header is missing or wrong."""

    status_code = 401
    default_error_code = ErrorCode.AUTHENTICATION_REQUIRED
    default_message = "Unauthorized"


class ConfigurationError(PosterAPIException):
    """Raised when the server lacks configuration required to serve a request."""

    status_code = 500
    default_error_code = ErrorCode.CONFIGURATION_ERROR
    default_message = "Server misconfigured"
