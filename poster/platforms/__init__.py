"""
Platform publishing drivers.

Each driver implements one platform's upload-and-post protocol on top of
the shared SessionManager.
"""

from .base import BasePlatform
from .bluesky import BlueskyCredentials, BlueskyPlatform
from .twitter import TwitterCredentials, TwitterPlatform

__all__ = [
    "BasePlatform",
    "BlueskyCredentials",
    "BlueskyPlatform",
    "TwitterCredentials",
    "TwitterPlatform",
]
