"""
FastAPI exception handlers for the Social Poster API.

All error responses follow the format:
{
    "success": false,
    "error": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "details": {}  # Optional additional context
}

Publish failures are not errors at this layer: they are reported per
platform in a normal response body.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from poster.config import get_settings

from .exceptions import ErrorCode, PosterAPIException, ValidationError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500

FIELD_NAMES = {
    "media_url": "mediaUrl",
    "is_video": "isVideo",
    "media_type": "mediaType",
}


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Turn pydantic error dicts into {field, message} pairs.

    Field names are reported under their JSON spelling.
    """
    formatted = []
    for error in errors:
        parts = [str(p) for p in error.get("loc", []) if p != "body"]
        field = ".".join(FIELD_NAMES.get(p, p) for p in parts) if parts else "body"

        error_type = error.get("type", "")
        msg = error.get("msg", "Invalid value")

        if error_type == "missing":
            msg = f"{field} is required" if field != "body" else "Request body is required"
        elif error_type == "value_error":
            msg = msg.removeprefix("Value error, ")
        elif error_type == "json_invalid":
            field, msg = "body", "Request body must be valid JSON"
        elif error_type.endswith("_type") or error_type.endswith("_parsing"):
            msg = f"{field} has an invalid type"

        formatted.append({"field": field, "message": msg})

    return formatted[:10]


def create_error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Create a standardized error response."""
    if len(error) > MAX_MESSAGE_LENGTH:
        error = error[:MAX_MESSAGE_LENGTH] + "..."

    content: Dict[str, Any] = {
        "success": False,
        "error": error,
        "error_code": error_code,
    }
    if details:
        content["details"] = details

    return JSONResponse(status_code=status_code, content=content)


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Report an exception to Sentry with request context.

    Returns:
        Sentry event ID if reported, None when Sentry is not active.
    """
    client = sentry_sdk.get_client()
    if not client.is_active():
        return None

    with sentry_sdk.new_scope() as scope:
        if request is not None:
            scope.set_context("request", {
                "method": request.method,
                "path": request.url.path,
            })
            request_id = getattr(request.state, "request_id", None)
            if request_id:
                scope.set_tag("request_id", request_id)

        if extra_context:
            scope.set_context("extra", extra_context)

        return sentry_sdk.capture_exception(exc)


# =============================================================================
# Exception Handlers
# =============================================================================


async def poster_exception_handler(
    request: Request,
    exc: PosterAPIException,
) -> JSONResponse:
    """Handle PosterAPIException and subclasses."""
    log_message = f"{exc.__class__.__name__}: {exc.message}"

    if exc.status_code >= 500:
        logger.error(log_message)
        report_to_sentry(exc, request)
    else:
        logger.warning(log_message)

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report body validation errors as a 400 ValidationError."""
    errors = format_validation_errors(exc.errors())

    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error = ValidationError(errors[0]["message"], field=errors[0]["field"])
    else:
        error = ValidationError(f"Validation failed with {len(errors)} error(s)")

    if any(e["message"].endswith(" is required") for e in errors):
        error.error_code = ErrorCode.MISSING_REQUIRED_FIELD
    error.details["errors"] = errors

    return await poster_exception_handler(request, error)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Convert HTTPException (404, 405, ...) to the standard error format."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {detail}")
    else:
        logger.warning(f"HTTP {exc.status_code}: {detail}")

    if exc.status_code == 401:
        error_code = ErrorCode.AUTHENTICATION_REQUIRED
    elif exc.status_code in (400, 422):
        error_code = ErrorCode.VALIDATION_ERROR
    else:
        error_code = ErrorCode.HTTP_ERROR

    return create_error_response(
        status_code=exc.status_code,
        error=detail,
        error_code=error_code.value,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all for unexpected errors.

    Logs the traceback, reports to Sentry and returns a generic message with
    a short reference for correlating with the logs.
    """
    error_reference = uuid.uuid4().hex[:8]

    logger.error(
        f"Unhandled exception [ref:{error_reference}] on "
        f"{request.method} {request.url.path}: {exc}",
        exc_info=True,
    )
    report_to_sentry(exc, request, extra_context={"error_reference": error_reference})

    if get_settings().server.is_production:
        message = "An unexpected error occurred. Please try again later."
    else:
        message = f"Internal server error: {type(exc).__name__}"

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error=message,
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details={"error_reference": error_reference},
    )


# =============================================================================
# Handler Registration
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(PosterAPIException, poster_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered")
