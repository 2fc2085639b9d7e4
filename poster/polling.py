"""
Bounded polling of asynchronous platform jobs.

A PollingPolicy describes how to poll (attempt cap, interval, how to read the
platform's wait hint, which statuses are terminal); poll_until_done runs it.
The sleep function is part of the policy so tests can poll without timers.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from poster.errors import PollingTimeoutError, ProcessingError

logger = logging.getLogger(__name__)

JobStatus = Dict[str, Any]


def _no_hint(status: JobStatus) -> Optional[float]:
    return None


@dataclass
class PollingPolicy:
    """
    How to poll one kind of platform job.

    Attributes:
        max_attempts: Status checks before giving up
        default_interval: Seconds between checks when the platform gives no hint
        is_done: True when the status reports success
        is_failed: True when the status reports failure
        interval_hint: Platform-advised wait in seconds, or None
        sleep: Awaitable sleep, replaceable in tests
    """

    max_attempts: int
    default_interval: float
    is_done: Callable[[JobStatus], bool]
    is_failed: Callable[[JobStatus], bool]
    interval_hint: Callable[[JobStatus], Optional[float]] = _no_hint
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def next_interval(self, status: JobStatus) -> float:
        hint = self.interval_hint(status)
        if hint is None or hint <= 0:
            return self.default_interval
        return float(hint)


async def poll_until_done(
    fetch_status: Callable[[], Awaitable[JobStatus]],
    policy: PollingPolicy,
    describe_failure: Callable[[JobStatus], str],
    label: str,
    platform: Optional[str] = None,
    initial_status: Optional[JobStatus] = None,
) -> JobStatus:
    """
    Poll a job until it reaches a terminal state.

    Args:
        fetch_status: Coroutine function returning the job's current status
        policy: Attempt cap, interval and terminal-state predicates
        describe_failure: Builds the error message from a failed status
        label: Name used in log lines, e.g. "Twitter STATUS"
        platform: Platform name attached to raised errors
        initial_status: Status already known before polling (its wait hint
            is honored before the first check)

    Returns:
        The terminal success status

    Raises:
        ProcessingError: If the platform reports the job failed
        PollingTimeoutError: If max_attempts checks pass without a terminal state
    """
    if initial_status is not None:
        await policy.sleep(policy.next_interval(initial_status))

    for attempt in range(1, policy.max_attempts + 1):
        status = await fetch_status()
        logger.info(f"{label}: {status.get('state', '?')} (attempt {attempt})")

        if policy.is_done(status):
            return status

        if policy.is_failed(status):
            raise ProcessingError(describe_failure(status), platform=platform)

        if attempt < policy.max_attempts:
            await policy.sleep(policy.next_interval(status))

    raise PollingTimeoutError(
        f"{label} timed out after {policy.max_attempts} attempts",
        platform=platform,
        attempts=policy.max_attempts,
    )
