"""
Social Poster: publish an image or video to Twitter/X and Bluesky.

This package provides:
- Media download with SSRF, size and time limits
- Per-platform upload drivers (chunked video, async job polling)
- A session cache for platform credentials
- A fan-out publisher with partial-failure results
"""

from .errors import (
    AuthError,
    FetchError,
    PollingTimeoutError,
    ProcessingError,
    PublishError,
    UploadError,
)
from .publisher import PublisherService, build_publisher_service, get_publisher_service

__version__ = "1.0.0"

__all__ = [
    "AuthError",
    "FetchError",
    "PollingTimeoutError",
    "ProcessingError",
    "PublishError",
    "UploadError",
    "PublisherService",
    "build_publisher_service",
    "get_publisher_service",
]
