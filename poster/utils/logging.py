"""
Logging setup for Social Poster.

Every line is stamped with the id of the HTTP request that caused it and,
inside a driver, the platform being published to. Upload state transitions
add the job's ``state`` and ``media_id``, so one platform's upload for one
request can be followed through a JSON log. OAuth header parameters, session
JWTs and passwords are scrubbed before anything is written.
"""

import json
import logging
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

UNSET = "-"

request_id_var: ContextVar[str] = ContextVar("request_id", default=UNSET)
platform_var: ContextVar[str] = ContextVar("platform", default=UNSET)

# Record attributes copied to the top level of a JSON line when present
CONTEXT_FIELDS: Tuple[str, ...] = ("request_id", "platform")
UPLOAD_FIELDS: Tuple[str, ...] = ("state", "previous_state", "media_id", "job_id", "error")
HTTP_FIELDS: Tuple[str, ...] = (
    "event", "http_method", "http_path", "http_status",
    "duration_ms", "client_ip", "error_type",
)

SECRET_PATTERNS: List[re.Pattern] = [
    # OAuth 1.0a Authorization header parameters
    re.compile(r'oauth_(?:signature|token|nonce|consumer_key)="?[^",\s]+"?', re.IGNORECASE),
    # createSession tokens and bearer headers
    re.compile(r'"?(?:access|refresh)Jwt"?\s*[:=]\s*"?[\w.-]+"?'),
    re.compile(r'bearer\s+[\w.-]+', re.IGNORECASE),
    re.compile(r'eyJ[\w-]+\.eyJ[\w-]+\.[\w-]+'),
    # login bodies and the service key
    re.compile(r'"?(?:password|x-api-key)"?\s*[:=]\s*"?[^\s,"}]+"?', re.IGNORECASE),
    # Bluesky app passwords (xxxx-xxxx-xxxx-xxxx)
    re.compile(r'\b[a-z0-9]{4}-[a-z0-9]{4}-[a-z0-9]{4}-[a-z0-9]{4}\b'),
]

REDACTED = "[REDACTED]"

CONSOLE_FORMAT = "%(asctime)s %(levelname)-8s [%(request_id).8s] %(platform)-7s %(name)s - %(message)s"


def redact_sensitive_data(message: str) -> str:
    """Replace credentials in a log message with [REDACTED]."""
    if not message:
        return message
    for pattern in SECRET_PATTERNS:
        message = pattern.sub(REDACTED, message)
    return message


class PublishContextFilter(logging.Filter):
    """Stamp records with the current request id and platform."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        if not hasattr(record, "platform"):
            record.platform = platform_var.get()
        return True


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_sensitive_data(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_sensitive_data(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Example:
        {"timestamp": "...", "level": "INFO", "logger": "poster.types.publishing",
         "message": "twitter upload: INIT -> APPENDING", "service": "social-poster",
         "request_id": "3f2a...", "platform": "twitter", "state": "APPENDING",
         "previous_state": "INIT", "media_id": "1790..."}
    """

    def __init__(self, service_name: str = "social-poster"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        for name in CONTEXT_FIELDS + UPLOAD_FIELDS + HTTP_FIELDS:
            value = getattr(record, name, None)
            if value is not None and value != UNSET:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
            entry["source"] = f"{record.pathname}:{record.lineno}"

        return json.dumps(entry, default=str, ensure_ascii=False)


def setup_logging(
    service_name: str = "social-poster",
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> logging.Logger:
    """
    Configure the root logger once at startup.

    Args:
        service_name: Value of the "service" field in JSON lines
        level: Level name; LOG_LEVEL when omitted
        json_format: Force JSON on or off; production or LOG_FORMAT_JSON
            decide when omitted

    Returns:
        The root logger
    """
    from poster.config import get_settings

    settings = get_settings()
    level_name = (level or settings.logging.log_level).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    if json_format is None:
        json_format = settings.logging.log_format_json or settings.server.is_production

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(PublishContextFilter())
    handler.addFilter(RedactingFilter())
    if json_format:
        handler.setFormatter(JSONFormatter(service_name))
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(numeric_level)

    # httpx logs every request line at INFO
    for noisy in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root.info(f"Logging configured: level={logging.getLevelName(numeric_level)}, json={json_format}")
    return root


# -----------------------------------------------------------------------------
# Context
# -----------------------------------------------------------------------------


def bind_request_id(request_id: str) -> Token:
    """Set the request id for the current context; reset with the token."""
    return request_id_var.set(request_id)


def reset_request_id(token: Token) -> None:
    request_id_var.reset(token)


@contextmanager
def platform_context(platform: str) -> Iterator[None]:
    """
    Label log lines with a platform for the duration of a driver call.

    Each publish task runs in its own copy of the context, so concurrent
    drivers keep their own label.
    """
    token = platform_var.set(platform)
    try:
        yield
    finally:
        platform_var.reset(token)
