"""
Per-platform authenticated session cache.

Each platform registers a login coroutine and a time-to-live. Sessions are
reused until they expire (per the injected clock) or a platform rejects
them, after which the next caller logs in again.

Login is not serialized: two requests arriving while the
cache is cold may both log in, and the last one stored wins. Logging in is
idempotent on both platforms.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from poster.errors import AuthError, PublishError
from poster.types import PlatformSession

logger = logging.getLogger(__name__)

LoginFactory = Callable[[], Awaitable[Any]]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Registration:
    login: LoginFactory
    ttl: Optional[timedelta]


class SessionManager:
    """
    Caches one session per platform.

    Usage:
        sessions = SessionManager()
        sessions.register("bluesky", login=create_session, ttl=timedelta(minutes=90))
        session = await sessions.get_session("bluesky")
    """

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._registrations: Dict[str, _Registration] = {}
        self._sessions: Dict[str, PlatformSession] = {}

    def register(
        self,
        platform: str,
        login: LoginFactory,
        ttl: Optional[timedelta] = None,
    ) -> None:
        """
        Register how to log in to a platform.

        Args:
            platform: Platform name
            login: Coroutine function returning the platform credentials
            ttl: How long a session stays valid; None means it never expires
        """
        self._registrations[platform] = _Registration(login=login, ttl=ttl)
        self._sessions.pop(platform, None)

    def is_registered(self, platform: str) -> bool:
        return platform in self._registrations

    async def get_session(self, platform: str) -> PlatformSession:
        """
        Get a valid session, logging in if needed.

        Raises:
            AuthError: If the platform is unknown or login fails
        """
        registration = self._registrations.get(platform)
        if registration is None:
            raise AuthError(f"Unknown platform: {platform}", platform=platform)

        now = self._clock()
        session = self._sessions.get(platform)
        if session is not None and not session.is_expired(now):
            return session

        if session is not None:
            logger.info(f"{platform} session expired, logging in again")

        try:
            credentials = await registration.login()
        except PublishError as e:
            if isinstance(e, AuthError):
                raise
            raise AuthError(e.message, platform=platform, raw_error=e.raw_error) from e

        created_at = self._clock()
        expires_at = created_at + registration.ttl if registration.ttl else None
        session = PlatformSession(
            platform=platform,
            credentials=credentials,
            created_at=created_at,
            expires_at=expires_at,
        )
        self._sessions[platform] = session
        logger.info(f"{platform} session established")
        return session

    def invalidate(self, platform: str) -> None:
        """Drop the cached session so the next caller logs in again."""
        if self._sessions.pop(platform, None) is not None:
            logger.info(f"{platform} session invalidated")

    def clear(self) -> None:
        self._sessions.clear()
