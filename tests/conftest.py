"""
Pytest configuration and shared fixtures for Social Poster tests.

This module provides common fixtures used across all test files:
- Test client setup
- Platform settings with test credentials
- A controllable clock and a recording sleep for polling code
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from typing import List

import pytest

# Environment setup before any imports
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["API_KEY"] = "test-api-key"
os.environ["SENTRY_DSN"] = ""
os.environ["TWITTER_API_KEY"] = "test-consumer-key"
os.environ["TWITTER_API_SECRET"] = "test-consumer-secret"
os.environ["TWITTER_ACCESS_TOKEN"] = "test-access-token"
os.environ["TWITTER_ACCESS_SECRET"] = "test-access-secret"
os.environ["BLUESKY_IDENTIFIER"] = "poster.test"
os.environ["BLUESKY_PASSWORD"] = "test-app-password"

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from poster.config import BlueskySettings, TwitterSettings, get_settings  # noqa: E402
from poster.sessions import SessionManager  # noqa: E402


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def client():
    """FastAPI test client fixture."""
    from fastapi.testclient import TestClient
    from server import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def clock():
    """Controllable clock for session expiry."""
    return FakeClock()


@pytest.fixture
def no_sleep():
    """Sleep that returns immediately and records its delays."""
    return RecordingSleep()


@pytest.fixture
def sessions(clock):
    """Session manager driven by the fake clock."""
    return SessionManager(clock=clock)


@pytest.fixture
def twitter_settings():
    """Twitter settings with test credentials and small upload segments."""
    return TwitterSettings(
        twitter_api_key="ck",
        twitter_api_secret="cs",
        twitter_access_token="at",
        twitter_access_secret="as",
        twitter_chunk_size=4,
    )


@pytest.fixture
def bluesky_settings():
    """Bluesky settings with test credentials."""
    return BlueskySettings(
        bluesky_identifier="poster.test",
        bluesky_password="app-password",
    )


@pytest.fixture(autouse=True)
def reset_environment():
    """Restore environment variables and cached settings after each test."""
    original_env = os.environ.copy()
    get_settings.cache_clear()
    yield
    os.environ.clear()
    os.environ.update(original_env)
    get_settings.cache_clear()
