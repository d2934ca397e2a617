# v0_mcp/mcp_logging/rate_limiter.py
import logging
import math
import time
from typing import Dict, List, Optional
from uuid import uuid4

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..storage import get_redis_client
from .levels import DEFAULT_MAX_MESSAGES, DEFAULT_WINDOW_MS, RateLimitStatus

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "ratelimit:logging:"
RATE_LIMIT_WARNING_KEY_PREFIX = "ratelimit:warned:"
EXPIRY_BUFFER_MS = 10000
DEFAULT_CLEANUP_AGE_MS = 3600000


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """
    Sliding-window limiter over a Redis sorted set per session, scored by
    millisecond timestamp. Every failure of the backing store allows the call.
    """

    def __init__(self, redis_client: Optional[aioredis.Redis] = None, prefix: str = RATE_LIMIT_KEY_PREFIX):
        self._redis_client = redis_client
        self.prefix = prefix

    async def _get_client(self) -> aioredis.Redis:
        if self._redis_client is not None:
            return self._redis_client
        return await get_redis_client()

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    async def check_rate_limit(
        self,
        session_id: str,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> bool:
        """Records this call and returns True iff fewer than max_messages preceded it in the window."""
        key = self._key(session_id)
        now = _now_ms()
        try:
            client = await self._get_client()
            async with client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, now - window_ms)
                pipe.zcard(key)
                pipe.zadd(key, {f"{now}-{uuid4().hex}": now})
                pipe.expire(key, math.ceil((window_ms + EXPIRY_BUFFER_MS) / 1000))
                results = await pipe.execute()
        except (RedisError, RuntimeError, OSError) as e:
            logger.error(f"Rate limit check failed for session {session_id}, allowing: {e}")
            return True

        current_count = int(results[1] or 0)
        return current_count < max_messages

    async def mark_warning_sent(self, session_id: str, window_ms: int = DEFAULT_WINDOW_MS) -> bool:
        """
        Claims the once-per-window rate-limit warning for a session. Returns
        True for the first caller in the window.
        """
        try:
            client = await self._get_client()
            claimed = await client.set(
                f"{RATE_LIMIT_WARNING_KEY_PREFIX}{session_id}", b"1", px=window_ms, nx=True
            )
            return bool(claimed)
        except (RedisError, RuntimeError, OSError) as e:
            logger.warning(f"Could not record rate-limit warning for session {session_id}: {e}")
            return False

    async def get_rate_limit_status(
        self,
        session_id: str,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> RateLimitStatus:
        key = self._key(session_id)
        now = _now_ms()
        count = 0
        try:
            client = await self._get_client()
            await client.zremrangebyscore(key, 0, now - window_ms)
            count = int(await client.zcard(key) or 0)
        except (RedisError, RuntimeError, OSError) as e:
            logger.error(f"Failed to get rate limit status for session {session_id}: {e}")
        return RateLimitStatus(
            count=count,
            remaining=max(0, max_messages - count),
            reset_time=now + window_ms,
            limited=count >= max_messages,
        )

    async def reset_rate_limit(self, session_id: str) -> None:
        try:
            client = await self._get_client()
            await client.delete(self._key(session_id), f"{RATE_LIMIT_WARNING_KEY_PREFIX}{session_id}")
            logger.info(f"Rate limit reset for session {session_id}")
        except (RedisError, RuntimeError, OSError) as e:
            logger.error(f"Failed to reset rate limit for session {session_id}: {e}")

    async def get_rate_limit_info(
        self,
        session_ids: List[str],
        max_messages: int = DEFAULT_MAX_MESSAGES,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> Dict[str, RateLimitStatus]:
        now = _now_ms()
        counts = [0] * len(session_ids)
        if session_ids:
            try:
                client = await self._get_client()
                async with client.pipeline(transaction=False) as pipe:
                    for session_id in session_ids:
                        pipe.zremrangebyscore(self._key(session_id), 0, now - window_ms)
                        pipe.zcard(self._key(session_id))
                    results = await pipe.execute()
                # every second result is a ZCARD
                counts = [int(results[i * 2 + 1] or 0) for i in range(len(session_ids))]
            except (RedisError, RuntimeError, OSError) as e:
                logger.error(f"Failed to get rate limit info for {len(session_ids)} session(s): {e}")

        return {
            session_id: RateLimitStatus(
                count=count,
                remaining=max(0, max_messages - count),
                reset_time=now + window_ms,
                limited=count >= max_messages,
            )
            for session_id, count in zip(session_ids, counts)
        }

    async def cleanup(self, older_than_ms: int = DEFAULT_CLEANUP_AGE_MS) -> int:
        """Evicts members older than the cutoff and deletes keys left empty. Returns keys deleted."""
        cutoff = _now_ms() - older_than_ms
        deleted = 0
        try:
            client = await self._get_client()
            keys = [k async for k in client.scan_iter(match=f"{self.prefix}*")]
            if not keys:
                return 0

            async with client.pipeline(transaction=False) as pipe:
                for key in keys:
                    pipe.zremrangebyscore(key, 0, cutoff)
                    pipe.zcard(key)
                results = await pipe.execute()

            empty_keys = [key for i, key in enumerate(keys) if int(results[i * 2 + 1] or 0) == 0]
            if empty_keys:
                # Redis already drops a sorted set once ZREMRANGEBYSCORE empties it
                await client.delete(*empty_keys)
                deleted = len(empty_keys)
        except (RedisError, RuntimeError, OSError) as e:
            logger.error(f"Rate limit cleanup failed: {e}")
        if deleted:
            logger.info(f"Rate limit cleanup deleted {deleted} empty key(s).")
        return deleted


rate_limiter = RateLimiter()
