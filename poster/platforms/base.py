"""
Base class for platform publishing drivers.

Defines the interface that all platform drivers must follow and the shared
response handling they use.
"""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, Optional

import httpx

from poster.errors import AuthError, UploadError
from poster.sessions import SessionManager
from poster.types import FetchedMedia, Platform, PlatformResult, PlatformSession, PublishRequest

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 60.0


class BasePlatform(ABC):
    """
    Abstract base class for platform drivers.

    A driver owns one platform's upload protocol. It is constructed with the
    shared SessionManager and registers its own login with it; an optional
    httpx transport replaces the network in tests.
    """

    platform: Platform
    display_name: str
    session_ttl: Optional[timedelta] = None

    def __init__(
        self,
        sessions: SessionManager,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
    ) -> None:
        self._sessions = sessions
        self._transport = transport
        self._timeout = timeout
        self._logger = logging.getLogger(f"{__name__}.{self.platform.value}")
        sessions.register(self.name, self.login, self.session_ttl)

    @property
    def name(self) -> str:
        return self.platform.value

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the platform has credentials configured."""
        pass

    def _ensure_configured(self) -> None:
        """Raise AuthError if platform credentials are missing."""
        if not self.is_configured:
            raise AuthError(
                f"{self.display_name} credentials not configured",
                platform=self.name,
            )

    @abstractmethod
    async def login(self) -> Any:
        """
        Authenticate with the platform.

        Returns:
            Platform-specific credentials stored in the session

        Raises:
            AuthError: If credentials are missing or rejected
        """
        pass

    @abstractmethod
    async def publish(self, media: FetchedMedia, request: PublishRequest) -> PlatformResult:
        """
        Upload the media and create a post.

        Args:
            media: Downloaded media bytes shared by all drivers
            request: The publish request (caption, video flag, media type)

        Returns:
            A successful PlatformResult

        Raises:
            PublishError: On any failure along the upload/post sequence
        """
        pass

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    async def _session(self) -> PlatformSession:
        return await self._sessions.get_session(self.name)

    def _client(self, **kwargs: Any) -> httpx.AsyncClient:
        """Create an HTTP client bound to the driver's transport."""
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self._timeout),
            **kwargs,
        )

    def _is_auth_failure(self, response: httpx.Response) -> bool:
        return response.status_code == 401

    def _check_response(self, response: httpx.Response, step: str) -> Dict[str, Any]:
        """
        Validate a platform response and decode its JSON body.

        A rejected credential invalidates the cached session so the next
        request logs in again.

        Raises:
            AuthError: If the platform rejected the credentials
            UploadError: For any other non-2xx response
        """
        if self._is_auth_failure(response):
            self._sessions.invalidate(self.name)
            raise AuthError(
                f"{self.display_name} {step} error {response.status_code}: "
                f"{_error_body(response)}",
                platform=self.name,
                status_code=response.status_code,
                raw_error=response.text,
            )

        if not response.is_success:
            raise UploadError(
                f"{self.display_name} {step} error {response.status_code}: "
                f"{_error_body(response)}",
                platform=self.name,
                status_code=response.status_code,
                raw_error=response.text,
            )

        return _json_body(response)


def _error_body(response: httpx.Response) -> str:
    return response.text.strip()


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        logger.warning(f"Non-JSON response body from {response.request.url}")
        return {}
    return data if isinstance(data, dict) else {"data": data}
