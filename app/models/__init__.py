"""Pydantic models for the Social Poster API."""

from poster.types import PublishRequest

from .responses import ErrorResponse, HealthResponse, PublishResponse

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "PublishRequest",
    "PublishResponse",
]
