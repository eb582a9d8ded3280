"""
Fixed-window request counter backed by Redis.

The first request of a window creates the counter and arms its expiry; the
window therefore restarts only once the key has expired. Redis being absent
or failing lets every request through.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from nephrocare.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 60
DEFAULT_WINDOW = 60
KEY_PREFIX = "rate-limit:"


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int

    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class FixedWindowRateLimiter:
    """Count requests per identifier in fixed windows."""

    def __init__(self, redis_client=None, clock: Callable[[], float] = time.time):
        self.redis_client = redis_client
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    async def check(
        self,
        identifier: str,
        limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW,
    ) -> RateLimitResult:
        now = self.now()

        if self.redis_client is None:
            return RateLimitResult(True, limit, limit, now + window_seconds)

        key = f"{KEY_PREFIX}{identifier}"
        try:
            count = int(await self.redis_client.incr(key))
            if count == 1:
                await self.redis_client.expire(key, window_seconds)
                ttl = window_seconds
            else:
                ttl = int(await self.redis_client.ttl(key))
                if ttl < 0:
                    # Counter survived without an expiry; re-arm it so the
                    # identifier cannot stay blocked forever.
                    await self.redis_client.expire(key, window_seconds)
                    ttl = window_seconds
        except Exception as e:
            logger.warning(f"Rate limit check failed for {identifier}, allowing request: {e}")
            return RateLimitResult(True, limit, limit, now + window_seconds)

        return RateLimitResult(
            allowed=count <= limit,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=now + ttl,
        )

    async def enforce(
        self,
        identifier: str,
        limit: int = DEFAULT_LIMIT,
        window_seconds: int = DEFAULT_WINDOW,
    ) -> RateLimitResult:
        """Like ``check`` but raises ``RateLimitExceeded`` on rejection."""
        result = await self.check(identifier, limit, window_seconds)
        if not result.allowed:
            raise RateLimitExceeded(result.limit, result.remaining, result.reset_at)
        return result
