import time
import uuid
import logging
from typing import Optional
from pydantic import BaseModel
from fastapi import HTTPException
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from app import config

logger = logging.getLogger(__name__)


class RateLimitExceededError(HTTPException):
    def __init__(self, headers: dict[str, str]):
        super().__init__(
            status_code=429,
            detail="Too many requests, please try again later.",
            headers=headers,
        )


class RateLimitStatus(BaseModel):
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int
    window_seconds: int

    def headers(self) -> dict[str, str]:
        """Standard RateLimit-* response headers."""
        headers = {
            "RateLimit-Policy": f"{self.limit};w={self.window_seconds}",
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_seconds),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.reset_seconds)
        return headers


class SlidingWindowRateLimiter:
    """
    Sliding-log limiter: every accepted request is a member of a Redis sorted
    set scored by its timestamp, so the window moves with each request instead
    of resetting on fixed boundaries.
    """
    KEY_PREFIX = "ratelimit"

    def __init__(
        self,
        redis_url: str = None,
        limit: int = config.RATE_LIMIT_MAX,
        window_seconds: int = config.RATE_LIMIT_WINDOW_SECONDS,
    ):
        if redis_url is None:
            redis_url = config.REDIS_URL
        self.redis = aioredis.from_url(redis_url, decode_responses=True)
        self.limit = limit
        self.window_seconds = window_seconds

    def _status(self, allowed: bool, used: int, oldest_ms: Optional[float], now_ms: int) -> RateLimitStatus:
        window_ms = self.window_seconds * 1000
        if oldest_ms is None:
            reset_ms = window_ms
        else:
            reset_ms = max(0, int(oldest_ms) + window_ms - now_ms)
        return RateLimitStatus(
            allowed=allowed,
            limit=self.limit,
            remaining=max(0, self.limit - used),
            reset_seconds=-(-reset_ms // 1000),  # round up
            window_seconds=self.window_seconds,
        )

    async def hit(self, client_id: str) -> RateLimitStatus:
        """
        Records one request from `client_id` and reports whether it fits the window.

        Trimming, adding and counting run in one MULTI, so concurrent requests
        each see a distinct count. A request that lands over the limit is taken
        back out of the set, so rejected requests never extend the block.
        """
        key = f"{self.KEY_PREFIX}:{client_id}"
        now_ms = int(time.time() * 1000)
        window_ms = self.window_seconds * 1000
        member = f"{now_ms}-{uuid.uuid4().hex}"

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, now_ms - window_ms)
                pipe.zadd(key, {member: now_ms})
                pipe.zcard(key)
                pipe.zrange(key, 0, 0, withscores=True)
                pipe.pexpire(key, window_ms)
                _, _, used, oldest, _ = await pipe.execute()

            oldest_ms = oldest[0][1] if oldest else now_ms
            if used > self.limit:
                await self.redis.zrem(key, member)
                logger.warning(f"Rate limit exceeded for {client_id}")
                return self._status(False, used, oldest_ms, now_ms)
        except RedisError as e:
            # The API stays available when Redis is down, just unthrottled
            logger.warning(f"Rate limiter unavailable, letting request through: {e}")
            return self._status(True, 0, None, now_ms)

        return self._status(True, used, oldest_ms, now_ms)

    async def reset(self, client_id: str):
        """Forget all recorded requests for a client. Useful for testing."""
        await self.redis.delete(f"{self.KEY_PREFIX}:{client_id}")

    async def close(self):
        """Close Redis connection (call on app shutdown)."""
        await self.redis.aclose()
