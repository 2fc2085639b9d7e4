"""
Type definitions for Social Poster.
"""

from .publishing import (
    DEFAULT_IMAGE_TYPE,
    DEFAULT_VIDEO_TYPE,
    AggregateResult,
    AggregateStatus,
    FetchedMedia,
    Platform,
    PlatformResult,
    PlatformSession,
    PublishRequest,
    UploadJob,
    UploadState,
)

__all__ = [
    "DEFAULT_IMAGE_TYPE",
    "DEFAULT_VIDEO_TYPE",
    "AggregateResult",
    "AggregateStatus",
    "FetchedMedia",
    "Platform",
    "PlatformResult",
    "PlatformSession",
    "PublishRequest",
    "UploadJob",
    "UploadState",
]
