"""GitHub API rate limit tracking."""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

logger = logging.getLogger(__name__)

MAX_WAIT_SECONDS = 3600


class RateLimitMonitor:
    """Tracks the primary rate limit from response headers and pauses near exhaustion."""

    def __init__(self, threshold: int = 10) -> None:
        self.remaining: int | None = None
        self.reset_at: float | None = None
        self._threshold = threshold

    def update(self, response: httpx.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset_at = response.headers.get("X-RateLimit-Reset")
        if remaining is not None:
            self.remaining = int(remaining)
        if reset_at is not None:
            self.reset_at = float(reset_at)

    def seconds_until_reset(self, now: float | None = None) -> float:
        if self.reset_at is None:
            return 0.0
        return max(0.0, self.reset_at - (now or time.time())) + 1

    def exhausted(self) -> bool:
        return (
            self.remaining is not None
            and self.remaining <= self._threshold
            and self.reset_at is not None
        )

    async def wait_if_needed(self) -> None:
        if not self.exhausted():
            return
        wait_seconds = min(self.seconds_until_reset(), MAX_WAIT_SECONDS)
        logger.warning(
            "GitHub rate limit nearly exhausted (%d left), waiting %.0fs",
            self.remaining,
            wait_seconds,
        )
        await asyncio.sleep(wait_seconds)
