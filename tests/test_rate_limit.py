"""Tests for rate limit tracking."""

from __future__ import annotations

import time
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from gh_reports.github.rate_limit import RateLimitMonitor


def _response(remaining: int, reset_in: float) -> httpx.Response:
    resp = MagicMock(spec=httpx.Response)
    resp.headers = {
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(time.time() + reset_in),
    }
    return resp


def test_update_reads_headers():
    monitor = RateLimitMonitor()
    monitor.update(_response(4000, 60))
    assert monitor.remaining == 4000
    assert not monitor.exhausted()


@pytest.mark.asyncio
async def test_no_wait_with_budget_left():
    monitor = RateLimitMonitor(threshold=10)
    monitor.update(_response(500, 60))
    with patch("gh_reports.github.rate_limit.asyncio.sleep", new_callable=AsyncMock) as sleep:
        await monitor.wait_if_needed()
    sleep.assert_not_called()


@pytest.mark.asyncio
async def test_waits_until_reset_when_exhausted():
    monitor = RateLimitMonitor(threshold=10)
    monitor.update(_response(2, 30))
    with patch("gh_reports.github.rate_limit.asyncio.sleep", new_callable=AsyncMock) as sleep:
        await monitor.wait_if_needed()
    waited = sleep.call_args.args[0]
    assert 29 <= waited <= 32
