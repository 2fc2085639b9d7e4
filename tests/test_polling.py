"""
Tests for bounded job polling.
"""

from unittest.mock import AsyncMock

import pytest

from poster.errors import PollingTimeoutError, ProcessingError
from poster.polling import PollingPolicy, poll_until_done


def make_policy(sleep, max_attempts=5, default_interval=5.0, hint=None):
    kwargs = {}
    if hint is not None:
        kwargs["interval_hint"] = hint
    return PollingPolicy(
        max_attempts=max_attempts,
        default_interval=default_interval,
        is_done=lambda status: status.get("state") == "done",
        is_failed=lambda status: status.get("state") == "failed",
        sleep=sleep,
        **kwargs,
    )


def describe(status):
    return f"job failed: {status.get('error', 'unknown')}"


class TestPollUntilDone:
    """Tests for poll_until_done."""

    @pytest.mark.asyncio
    async def test_returns_terminal_success_status(self, no_sleep):
        """The first successful status is returned without sleeping."""
        fetch = AsyncMock(return_value={"state": "done", "blob": "b"})

        status = await poll_until_done(fetch, make_policy(no_sleep), describe, label="job")

        assert status == {"state": "done", "blob": "b"}
        assert fetch.await_count == 1
        assert no_sleep.calls == []

    @pytest.mark.asyncio
    async def test_polls_until_done(self, no_sleep):
        """Non-terminal statuses are polled at the default interval."""
        fetch = AsyncMock(side_effect=[
            {"state": "pending"},
            {"state": "running"},
            {"state": "done"},
        ])

        await poll_until_done(fetch, make_policy(no_sleep), describe, label="job")

        assert fetch.await_count == 3
        assert no_sleep.calls == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_failure_raises_processing_error(self, no_sleep):
        """A failed status raises with the described message."""
        fetch = AsyncMock(return_value={"state": "failed", "error": "bad codec"})

        with pytest.raises(ProcessingError) as exc_info:
            await poll_until_done(
                fetch, make_policy(no_sleep), describe, label="job", platform="bluesky"
            )

        assert exc_info.value.message == "job failed: bad codec"
        assert exc_info.value.platform == "bluesky"

    @pytest.mark.asyncio
    async def test_times_out_after_max_attempts(self, no_sleep):
        """A job that never finishes stops at the attempt cap."""
        fetch = AsyncMock(return_value={"state": "pending"})

        with pytest.raises(PollingTimeoutError) as exc_info:
            await poll_until_done(
                fetch, make_policy(no_sleep, max_attempts=4), describe, label="Twitter STATUS"
            )

        assert fetch.await_count == 4
        assert exc_info.value.attempts == 4
        assert "Twitter STATUS timed out after 4 attempts" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_no_sleep_after_last_attempt(self, no_sleep):
        """Sleeps happen only between attempts."""
        fetch = AsyncMock(return_value={"state": "pending"})

        with pytest.raises(PollingTimeoutError):
            await poll_until_done(fetch, make_policy(no_sleep, max_attempts=3), describe, label="job")

        assert len(no_sleep.calls) == 2

    @pytest.mark.asyncio
    async def test_interval_hint_is_honored(self, no_sleep):
        """A positive platform hint replaces the default interval."""
        fetch = AsyncMock(side_effect=[
            {"state": "pending", "wait": 2},
            {"state": "pending", "wait": 0},
            {"state": "done"},
        ])
        policy = make_policy(no_sleep, hint=lambda status: status.get("wait"))

        await poll_until_done(fetch, policy, describe, label="job")

        assert no_sleep.calls == [2.0, 5.0]

    @pytest.mark.asyncio
    async def test_initial_status_waits_before_first_check(self, no_sleep):
        """A known initial status delays the first check by its hint."""
        fetch = AsyncMock(return_value={"state": "done"})
        policy = make_policy(no_sleep, hint=lambda status: status.get("wait"))

        await poll_until_done(
            fetch, policy, describe, label="job", initial_status={"state": "pending", "wait": 3}
        )

        assert no_sleep.calls == [3.0]
        assert fetch.await_count == 1


class TestPollingPolicy:
    """Tests for PollingPolicy.next_interval."""

    def test_default_without_hint(self, no_sleep):
        """Policies without a hint function use the default interval."""
        assert make_policy(no_sleep).next_interval({"state": "pending"}) == 5.0

    def test_negative_hint_falls_back(self, no_sleep):
        """Non-positive hints are ignored."""
        policy = make_policy(no_sleep, hint=lambda status: -1)
        assert policy.next_interval({}) == 5.0
