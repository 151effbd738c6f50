"""
Redis async connection pool.

Shared by the tier cache (``reference_data``) and the event pump's
pub/sub subscription.
"""

import redis.asyncio as aioredis

from src.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url, decode_responses=True
)


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    """Drop every pooled connection (application shutdown)."""
    await _pool.disconnect()
