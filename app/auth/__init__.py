"""Authentication components for the Social Poster API."""

from .api_key import API_KEY_HEADER, api_key_matches, verify_api_key

__all__ = [
    "API_KEY_HEADER",
    "api_key_matches",
    "verify_api_key",
]
