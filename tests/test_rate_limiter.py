# tests/test_rate_limiter.py
import time

import pytest

from v0_mcp.mcp_logging import RateLimiter
from v0_mcp.mcp_logging.rate_limiter import RATE_LIMIT_KEY_PREFIX


@pytest.fixture
def limiter(redis_client) -> RateLimiter:
    return RateLimiter()


async def test_allows_up_to_max_then_blocks(limiter):
    results = [await limiter.check_rate_limit("s1", max_messages=3, window_ms=60000) for _ in range(4)]
    assert results == [True, True, True, False]


async def test_sessions_are_independent(limiter):
    assert await limiter.check_rate_limit("s1", max_messages=1, window_ms=60000)
    assert not await limiter.check_rate_limit("s1", max_messages=1, window_ms=60000)
    assert await limiter.check_rate_limit("s2", max_messages=1, window_ms=60000)


async def test_entries_age_out_of_the_window(limiter, redis_client):
    stale_score = int(time.time() * 1000) - 120000
    await redis_client.zadd(f"{RATE_LIMIT_KEY_PREFIX}s1", {"old-1": stale_score, "old-2": stale_score})
    assert await limiter.check_rate_limit("s1", max_messages=2, window_ms=60000)


async def test_status_reports_usage(limiter):
    for _ in range(2):
        await limiter.check_rate_limit("s1", max_messages=5, window_ms=60000)

    status = await limiter.get_rate_limit_status("s1", max_messages=5, window_ms=60000)
    assert (status.count, status.remaining, status.limited) == (2, 3, False)

    info = await limiter.get_rate_limit_info(["s1", "unknown"], max_messages=2, window_ms=60000)
    assert info["s1"].limited
    assert info["unknown"].count == 0


async def test_warning_claim_is_once_per_window(limiter):
    assert await limiter.mark_warning_sent("s1", window_ms=60000)
    assert not await limiter.mark_warning_sent("s1", window_ms=60000)


async def test_reset_clears_counter_and_warning(limiter):
    await limiter.check_rate_limit("s1", max_messages=1, window_ms=60000)
    await limiter.mark_warning_sent("s1")
    await limiter.reset_rate_limit("s1")

    assert await limiter.check_rate_limit("s1", max_messages=1, window_ms=60000)
    assert await limiter.mark_warning_sent("s1")


async def test_cleanup_deletes_emptied_keys(limiter, redis_client):
    old = int(time.time() * 1000) - 7200000
    await redis_client.zadd(f"{RATE_LIMIT_KEY_PREFIX}idle", {"m": old})
    await limiter.check_rate_limit("busy")

    assert await limiter.cleanup(older_than_ms=3600000) == 1
    assert not await redis_client.exists(f"{RATE_LIMIT_KEY_PREFIX}idle")
    assert await redis_client.exists(f"{RATE_LIMIT_KEY_PREFIX}busy")


async def test_fails_open_without_redis():
    assert await RateLimiter().check_rate_limit("s1", max_messages=0)
