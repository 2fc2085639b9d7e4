"""
Pydantic response models for API endpoints.

Publish endpoints build their JSON from AggregateResult directly; these
models describe the shapes in the OpenAPI schema.
"""

from typing import Optional

from pydantic import BaseModel, Field

from poster.types import PlatformResult


class HealthResponse(BaseModel):
    """Liveness probe response."""

    status: str = "ok"
    timestamp: str = Field(..., description="Current time, ISO-8601 UTC")


class PublishResponse(BaseModel):
    """Per-platform results keyed by platform name; only dispatched platforms appear."""

    twitter: Optional[PlatformResult] = None
    bluesky: Optional[PlatformResult] = None


class ErrorResponse(BaseModel):
    """Body returned for authentication, validation and server errors."""

    success: bool = False
    error: str
    error_code: str
