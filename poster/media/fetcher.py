"""
Source media download with SSRF, size and time limits.
"""

import asyncio
import ipaddress
import logging
from typing import List, Optional
from urllib.parse import urlsplit

import httpx

from poster.config import get_settings
from poster.errors import FetchError
from poster.types import FetchedMedia

logger = logging.getLogger(__name__)


class MediaFetcher:
    """
    Downloads media referenced by a publish request.

    Only HTTPS URLs on public hosts are fetched. The declared Content-Length
    is checked before the body is read, the streamed size is checked while
    reading, and the whole transfer runs under a wall-clock timeout that
    cancels the in-flight read.
    """

    BLOCKED_HOSTS = frozenset({"localhost", "0.0.0.0"})
    BLOCKED_PREFIXES = ("127.", "10.", "172.", "192.168.")

    def __init__(
        self,
        max_bytes: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings().media
        self.max_bytes = max_bytes or settings.media_max_bytes
        self.timeout = timeout or settings.media_fetch_timeout
        self._transport = transport

    def validate_url(self, url: str) -> str:
        """
        Reject URLs that must never be fetched.

        Args:
            url: The media URL from the request

        Returns:
            The URL's hostname

        Raises:
            FetchError: If the scheme is not https or the host is private
        """
        try:
            parts = urlsplit(url)
            hostname = (parts.hostname or "").lower()
        except ValueError as e:
            raise FetchError(f"Invalid media URL: {e}") from e

        if parts.scheme != "https":
            raise FetchError("Only HTTPS URLs are allowed")
        if not hostname:
            raise FetchError("Invalid media URL: missing host")

        if self._is_private_host(hostname):
            raise FetchError("Private/local URLs are not allowed")

        return hostname

    def _is_private_host(self, hostname: str) -> bool:
        if hostname in self.BLOCKED_HOSTS or hostname.startswith(self.BLOCKED_PREFIXES):
            return True

        try:
            address = ipaddress.ip_address(hostname)
        except ValueError:
            return False

        return (
            address.is_private
            or address.is_loopback
            or address.is_link_local
            or address.is_reserved
            or address.is_unspecified
            or address.is_multicast
        )

    async def _check_request(self, request: httpx.Request) -> None:
        """Event hook: re-validate every request, including redirects."""
        self.validate_url(str(request.url))

    async def fetch(self, url: str) -> FetchedMedia:
        """
        Download media into memory.

        Args:
            url: HTTPS URL of the image or video

        Returns:
            FetchedMedia with the raw bytes and content type

        Raises:
            FetchError: On any validation, HTTP, size or timeout failure
        """
        self.validate_url(url)

        try:
            media = await asyncio.wait_for(self._download(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise FetchError(f"Media download timed out after {self.timeout:g}s")

        logger.info(f"Downloaded media: {media.size} bytes ({media.content_type})")
        return media

    async def _download(self, url: str) -> FetchedMedia:
        async with httpx.AsyncClient(
            transport=self._transport,
            follow_redirects=True,
            timeout=httpx.Timeout(self.timeout),
            event_hooks={"request": [self._check_request]},
        ) as client:
            try:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise FetchError(
                            f"Failed to download media: {response.status_code} "
                            f"{response.reason_phrase}".rstrip()
                        )

                    declared = self._declared_length(response)
                    if declared > self.max_bytes:
                        raise FetchError(f"File too large: {declared} bytes")

                    chunks: List[bytes] = []
                    received = 0
                    async for chunk in response.aiter_bytes():
                        received += len(chunk)
                        if received > self.max_bytes:
                            raise FetchError(
                                f"Downloaded file too large: more than {self.max_bytes} bytes"
                            )
                        chunks.append(chunk)

                    content_type = response.headers.get(
                        "content-type", "application/octet-stream"
                    )
            except httpx.HTTPError as e:
                raise FetchError(f"Failed to download media: {e}") from e

        return FetchedMedia(data=b"".join(chunks), content_type=content_type)

    @staticmethod
    def _declared_length(response: httpx.Response) -> int:
        raw = response.headers.get("content-length")
        if not raw:
            return 0
        try:
            return int(raw)
        except ValueError:
            return 0
