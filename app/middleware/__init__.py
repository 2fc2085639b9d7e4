"""Middleware components for the Social Poster API."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
