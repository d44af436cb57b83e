"""Shared Redis connection for the notification channel.

RedisNotificationPublisher pushes settlement and reset events onto
settings.NOTIFICATION_CHANNEL through this client; the lifespan opens it at
startup and closes it on shutdown. Points, pools and idempotency keys live
in PostgreSQL only, so losing Redis drops notifications and nothing else.
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Client for publishing to the notification channel, created on first use."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
