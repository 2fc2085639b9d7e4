"""
Shared-secret API key check.

Every publish route requires the X-API-Key header to equal the configured
API_KEY. The comparison is constant-time.
"""

import logging
import secrets
from typing import Optional

from fastapi import Depends
from fastapi.security import APIKeyHeader

from poster.config import get_settings

from ..exceptions import AuthenticationError, ConfigurationError, ErrorCode

logger = logging.getLogger(__name__)

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


def api_key_matches(provided: Optional[str], expected: str) -> bool:
    """Compare keys in constant time; a missing key never matches."""
    if not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def verify_api_key(api_key: Optional[str] = Depends(API_KEY_HEADER)) -> None:
    """
    Require a valid X-API-Key header.

    Raises:
        ConfigurationError: If API_KEY is not configured (500)
        AuthenticationError: If the header is missing or wrong (401)
    """
    expected = get_settings().server.api_key_value
    if not expected:
        logger.error("API_KEY is not configured; rejecting request")
        raise ConfigurationError("Server misconfigured")

    if not api_key_matches(api_key, expected):
        raise AuthenticationError(
            "Unauthorized",
            error_code=ErrorCode.INVALID_API_KEY if api_key else None,
        )
