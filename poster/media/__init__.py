"""
Source media handling: download and inspection.
"""

from .fetcher import MediaFetcher
from .probe import aspect_ratio, probe_dimensions

__all__ = [
    "MediaFetcher",
    "aspect_ratio",
    "probe_dimensions",
]
