"""
Redis-backed cache facade with graceful degradation.

Every read is cache-aside: a missing or unreachable Redis turns every lookup
into a miss and every write into a no-op, so callers never need to care
whether the cache is available.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CACHE_TTL = 60 * 5


class CacheMetrics:
    """Track cache hit/miss rates for monitoring."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.errors = 0

    @property
    def operations(self) -> int:
        return self.hits + self.misses

    def record_hit(self):
        self.hits += 1

    def record_miss(self):
        self.misses += 1

    def record_error(self):
        self.errors += 1

    def get_hit_rate(self) -> float:
        """Get cache hit rate as percentage."""
        if self.operations == 0:
            return 0.0
        return (self.hits / self.operations) * 100.0

    def get_stats(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "operations": self.operations,
            "hit_rate": self.get_hit_rate(),
        }

    def reset(self):
        self.hits = 0
        self.misses = 0
        self.errors = 0


class CacheClient:
    """Key/value cache over an optional ``redis.asyncio`` client."""

    def __init__(self, redis_client=None, default_ttl: int = DEFAULT_CACHE_TTL):
        self.redis_client = redis_client
        self.default_ttl = default_ttl
        self.metrics = CacheMetrics()

    @property
    def available(self) -> bool:
        return self.redis_client is not None

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value for ``key`` or None on miss/unavailable."""
        if self.redis_client is None:
            self.metrics.record_miss()
            return None

        try:
            cached = await self.redis_client.get(key)
        except Exception as e:
            self.metrics.record_error()
            self.metrics.record_miss()
            logger.warning(f"Cache get failed for {key}: {e}")
            return None

        if cached is None:
            self.metrics.record_miss()
            return None

        try:
            value = json.loads(cached)
        except (TypeError, ValueError) as e:
            self.metrics.record_miss()
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None

        if value is None:
            self.metrics.record_miss()
            return None

        self.metrics.record_hit()
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store ``value`` as JSON under ``key`` for ``ttl`` seconds."""
        if self.redis_client is None:
            return

        try:
            await self.redis_client.set(
                key,
                json.dumps(value, default=str),
                ex=ttl or self.default_ttl,
            )
        except Exception as e:
            self.metrics.record_error()
            logger.warning(f"Cache set failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        if self.redis_client is None:
            return

        try:
            await self.redis_client.delete(key)
        except Exception as e:
            self.metrics.record_error()
            logger.warning(f"Cache delete failed for {key}: {e}")

    async def delete_by_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern (e.g. ``notifications:u1:*``).

        Returns:
            Number of keys deleted (0 when the cache is unavailable)
        """
        if self.redis_client is None:
            return 0

        try:
            keys = await self.redis_client.keys(pattern)
            if keys:
                return await self.redis_client.delete(*keys)
        except Exception as e:
            self.metrics.record_error()
            logger.warning(f"Failed to invalidate cache pattern {pattern}: {e}")
        return 0

    async def with_cache(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: Optional[int] = None,
    ) -> T:
        """
        Read-through helper: return the cached value or run ``producer`` and cache it.

        Concurrent misses for the same key each run ``producer``; results are
        idempotent reads so no coalescing is done. Errors raised by
        ``producer`` propagate and nothing is cached. A ``None`` result is
        returned without being cached.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        data = await producer()
        if data is not None:
            await self.set(key, data, ttl)
        return data
