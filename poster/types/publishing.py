"""
Type definitions for media publishing.

Provides models for:
- The validated publish request and the fetched media it refers to
- Per-platform sessions and transient upload job state
- Per-platform and aggregate publish results
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_TYPE = "image/jpeg"
DEFAULT_VIDEO_TYPE = "video/mp4"


class Platform(str, Enum):
    """Supported publishing targets."""

    TWITTER = "twitter"
    BLUESKY = "bluesky"


class AggregateStatus(str, Enum):
    """Overall outcome of a fan-out publish."""

    ALL_SUCCESS = "all-success"
    PARTIAL_SUCCESS = "partial-success"
    ALL_FAILED = "all-failed"


class UploadState(str, Enum):
    """States a driver's upload job moves through."""

    INIT = "INIT"
    APPENDING = "APPENDING"
    FINALIZING = "FINALIZING"
    PROCESSING = "PROCESSING"
    RESOLVE_SESSION = "RESOLVE_SESSION"
    UPLOAD_BLOB = "UPLOAD_BLOB"
    RESOLVE_ENDPOINT = "RESOLVE_ENDPOINT"
    GET_SERVICE_TOKEN = "GET_SERVICE_TOKEN"
    SUBMIT_JOB = "SUBMIT_JOB"
    POLL = "POLL"
    COMPOSE_POST = "COMPOSE_POST"
    DONE = "DONE"
    FAILED = "FAILED"


# -----------------------------------------------------------------------------
# Request Models
# -----------------------------------------------------------------------------


class PublishRequest(BaseModel):
    """
    A fully-populated, immutable publish request.

    Optional fields that arrive as null are treated as absent, and the media
    type falls back to a default derived from is_video.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    media_url: str = Field(..., alias="mediaUrl")
    caption: str = ""
    is_video: bool = Field(default=False, alias="isVideo")
    media_type: Optional[str] = Field(default=None, alias="mediaType")

    @model_validator(mode="before")
    @classmethod
    def drop_null_fields(cls, data: Any) -> Any:
        """Treat explicit nulls as missing fields."""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("media_url")
    @classmethod
    def validate_media_url(cls, v: str) -> str:
        """Ensure a media URL was provided."""
        if not v or not v.strip():
            raise ValueError("mediaUrl is required")
        return v.strip()

    @model_validator(mode="after")
    def default_media_type(self) -> "PublishRequest":
        """Fill in the media type from is_video when not given."""
        if not self.media_type:
            default = DEFAULT_VIDEO_TYPE if self.is_video else DEFAULT_IMAGE_TYPE
            object.__setattr__(self, "media_type", default)
        return self


@dataclass(frozen=True)
class FetchedMedia:
    """
    Media downloaded for one request.

    The buffer is an immutable bytes object, so every dispatched driver can
    read it concurrently; slicing produces copies.
    """

    data: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)


# -----------------------------------------------------------------------------
# Session and Job State
# -----------------------------------------------------------------------------


@dataclass
class PlatformSession:
    """An authenticated, reusable handle for one platform."""

    platform: str
    credentials: Any
    created_at: datetime
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        """A session without an expiry never goes stale."""
        return self.expires_at is not None and now >= self.expires_at


@dataclass
class UploadJob:
    """Transient state of one driver's upload; never persisted."""

    platform: str
    state: UploadState = UploadState.INIT
    media_id: Optional[str] = None
    job_id: Optional[str] = None
    total_bytes: int = 0
    bytes_sent: int = 0
    segments_sent: int = 0
    attempts: int = 0

    def advance(self, state: UploadState) -> None:
        """Move to a new state, logging the transition as structured fields."""
        logger.info(
            f"{self.platform} upload: {self.state.value} -> {state.value}",
            extra={
                "platform": self.platform,
                "state": state.value,
                "previous_state": self.state.value,
                "media_id": self.media_id,
                "job_id": self.job_id,
            },
        )
        self.state = state


# -----------------------------------------------------------------------------
# Result Models
# -----------------------------------------------------------------------------


class PlatformResult(BaseModel):
    """Outcome of publishing to a single platform."""

    success: bool
    id: Optional[str] = None
    uri: Optional[str] = None
    cid: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(
        cls,
        id: Optional[str] = None,
        uri: Optional[str] = None,
        cid: Optional[str] = None,
    ) -> "PlatformResult":
        return cls(success=True, id=id, uri=uri, cid=cid)

    @classmethod
    def failed(cls, message: str) -> "PlatformResult":
        return cls(success=False, error=message)

    def to_response(self) -> Dict[str, Any]:
        """Serialize without the fields this platform did not set."""
        return self.model_dump(exclude_none=True)


class AggregateResult(BaseModel):
    """Per-platform results of one publish request plus the derived status."""

    results: Dict[str, PlatformResult] = Field(default_factory=dict)

    @property
    def status(self) -> AggregateStatus:
        successes = sum(1 for result in self.results.values() if result.success)
        if self.results and successes == len(self.results):
            return AggregateStatus.ALL_SUCCESS
        if successes > 0:
            return AggregateStatus.PARTIAL_SUCCESS
        return AggregateStatus.ALL_FAILED

    @property
    def http_status(self) -> int:
        """200 when everything succeeded, 207 for a mix, 500 when all failed."""
        status = self.status
        if status == AggregateStatus.ALL_SUCCESS:
            return 200
        if status == AggregateStatus.PARTIAL_SUCCESS and len(self.results) > 1:
            return 207
        return 500

    def to_response(self) -> Dict[str, Dict[str, Any]]:
        return {name: result.to_response() for name, result in self.results.items()}
