"""
Fan-out media publishing service.

Provides:
- One media download per request, shared by every target platform
- Concurrent per-platform publishing with failure isolation
- Aggregation into a single partial-failure-aware result
"""

import asyncio
import logging
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Sequence

from poster.config import Settings, get_settings
from poster.errors import FetchError, PublishError, UploadError
from poster.media import MediaFetcher
from poster.platforms import BasePlatform, BlueskyPlatform, TwitterPlatform
from poster.sessions import SessionManager
from poster.types import AggregateResult, FetchedMedia, Platform, PlatformResult, PublishRequest
from poster.utils.logging import platform_context

logger = logging.getLogger(__name__)

ALL_PLATFORMS = [platform.value for platform in Platform]


class PublisherService:
    """
    Publishes one media item to several platforms.

    Drivers run concurrently and never affect each other: a failure in one
    becomes that platform's failed result while the others carry on.
    """

    def __init__(self, fetcher: MediaFetcher, platforms: Iterable[BasePlatform]) -> None:
        self._fetcher = fetcher
        self._platforms: Dict[str, BasePlatform] = {
            platform.name: platform for platform in platforms
        }
        logger.info(f"Publisher initialized with platforms: {', '.join(self._platforms)}")

    @property
    def platform_names(self) -> List[str]:
        return list(self._platforms)

    def get_platform(self, name: str) -> Optional[BasePlatform]:
        return self._platforms.get(name)

    async def publish(self, request: PublishRequest, targets: Sequence[str]) -> AggregateResult:
        """
        Fetch the media once and publish it to every target.

        Args:
            request: Validated publish request
            targets: Platform names, in dispatch order

        Returns:
            AggregateResult with exactly one result per target
        """
        targets = list(dict.fromkeys(targets))

        try:
            media = await self._fetcher.fetch(request.media_url)
        except FetchError as e:
            logger.error(f"Media download failed for {request.media_url}: {e.message}")
            message = f"Media download failed: {e.message}"
            return AggregateResult(
                results={target: PlatformResult.failed(message) for target in targets}
            )

        outcomes = await asyncio.gather(
            *(self._publish_one(target, media, request) for target in targets),
            return_exceptions=True,
        )

        results: Dict[str, PlatformResult] = {}
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"{target} task ended abnormally: {outcome!r}")
                results[target] = PlatformResult.failed(str(outcome) or repr(outcome))
            else:
                results[target] = outcome

        aggregate = AggregateResult(results=results)
        logger.info(f"Publish finished: {aggregate.status.value} ({', '.join(targets)})")
        return aggregate

    async def _publish_one(
        self,
        name: str,
        media: FetchedMedia,
        request: PublishRequest,
    ) -> PlatformResult:
        platform = self._platforms.get(name)
        if platform is None:
            return PlatformResult.failed(f"{name} is not configured")

        try:
            with platform_context(name):
                result = await platform.publish(media, request)
        except PublishError as e:
            logger.error(
                f"{name} publish failed: {e.message}",
                extra={"platform": name, "error": e.to_dict()},
            )
            return PlatformResult.failed(e.message)
        except Exception as e:
            logger.exception(f"Unexpected error publishing to {name}")
            return PlatformResult.failed(UploadError(str(e), platform=name).message)

        logger.info(f"{name} publish succeeded")
        return result


# -----------------------------------------------------------------------------
# Wiring
# -----------------------------------------------------------------------------


def build_publisher_service(
    settings: Optional[Settings] = None,
    sessions: Optional[SessionManager] = None,
) -> PublisherService:
    """Create a PublisherService with every supported platform registered."""
    settings = settings or get_settings()
    sessions = sessions or SessionManager()

    fetcher = MediaFetcher(
        max_bytes=settings.media.media_max_bytes,
        timeout=settings.media.media_fetch_timeout,
    )
    platforms = [
        TwitterPlatform(sessions, settings=settings.twitter),
        BlueskyPlatform(sessions, settings=settings.bluesky),
    ]

    for platform in platforms:
        if not platform.is_configured:
            logger.warning(f"{platform.display_name} credentials not configured")

    return PublisherService(fetcher, platforms)


@lru_cache()
def get_publisher_service() -> PublisherService:
    """Get the process-wide publisher; sessions are cached across requests."""
    return build_publisher_service()
