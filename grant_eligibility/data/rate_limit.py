import time
import uuid
import logging
from typing import Optional

import redis.asyncio as redis

from grant_eligibility.config import Settings

logger = logging.getLogger(__name__)


class DisabledRateLimiter:
    """Used when no backing store is configured; admits everything."""

    enabled = False

    async def admit(self, key: str) -> bool:
        return True

    async def close(self):
        pass


# Runs atomically on the server; only admitted requests are written.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
redis.call('ZREMRANGEBYSCORE', key, 0, now - window)
local count = redis.call('ZCARD', key)
if count < limit then
    redis.call('ZADD', key, now, ARGV[4])
    redis.call('EXPIRE', key, window)
    return 1
end
return 0
"""


class RedisRateLimiter:
    """
    Sliding window limiter over a Redis sorted set.

    Each admitted request is stored as a member scored by its timestamp.
    Members older than the window are trimmed before counting, so the count
    is the number of admitted requests in the last `window` seconds.
    Rejected attempts are not recorded.
    """

    enabled = True

    def __init__(self, client, limit: int = 3, window: int = 60):
        self.redis = client
        self.limit = limit
        self.window = window
        self.script = client.register_script(SLIDING_WINDOW_SCRIPT)

    async def admit(self, key: str) -> bool:
        redis_key = f"ratelimit_{key}"
        now = time.time()

        try:
            admitted = await self.script(
                keys=[redis_key],
                args=[now, self.window, self.limit, f"{now}-{uuid.uuid4().hex[:8]}"],
            )
        except redis.RedisError as e:
            # Store unavailable: let the request through
            logger.warning(f"Redis error in rate limiting for {key}: {e}")
            return True

        allowed = bool(int(admitted))
        if not allowed:
            logger.info(f"Rate limit hit for {key} ({self.limit} in {self.window}s)")
        return allowed

    async def close(self):
        await self.redis.aclose()


def build_rate_limiter(settings: Settings):
    if not settings.rate_limiting_enabled:
        logger.info("REDIS_URL not set, rate limiting disabled")
        return DisabledRateLimiter()
    client = redis.Redis.from_url(settings.redis_url)
    return RedisRateLimiter(
        client,
        limit=settings.rate_limit_requests,
        window=settings.rate_limit_window_seconds,
    )


def client_key(forwarded_for: Optional[str]) -> Optional[str]:
    """First address of an X-Forwarded-For header, or None when absent."""
    if not forwarded_for:
        return None
    first = forwarded_for.split(",")[0].strip()
    return first or None
