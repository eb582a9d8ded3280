# Mock Services Package
# Provides in-memory doubles of external services for testing

from .redis_client import FailingRedisClient, FakeClock, MockRedisClient

__all__ = [
    "MockRedisClient",
    "FailingRedisClient",
    "FakeClock",
]
