"""Redis connection pool — backs per-IP rate limiting.

Learn: Redis is optional. If it isn't reachable at startup the app
still serves everything; the rate-limit middleware just lets requests
through. Presence state never lives here — it's per-process memory.
"""

from typing import Optional

import redis.asyncio as aioredis

from checkin.config import settings

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Connect and verify with a PING."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis
