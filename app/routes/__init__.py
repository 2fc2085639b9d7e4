"""API routes for the Social Poster service."""

from .health import router as health_router
from .publish import router as publish_router

__all__ = [
    "health_router",
    "publish_router",
]
