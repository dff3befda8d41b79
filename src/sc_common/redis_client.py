"""Redis client factory — used for rate limiting and the settlement lease only.

NOT used for balances, holds or auction state (those live in PostgreSQL).
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


async def acquire_lease(key: str, owner: str, ttl_seconds: int) -> bool:
    """Best-effort single-holder lease (SET NX PX). True if `owner` now holds it."""
    redis = await get_redis()
    acquired = await redis.set(key, owner, nx=True, px=ttl_seconds * 1000)
    return bool(acquired)
