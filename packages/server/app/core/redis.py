"""Redis connection management."""

from __future__ import annotations

import redis.asyncio as redis

from app.core.config import Settings


def create_redis(settings: Settings) -> redis.Redis:
    """Create the Redis client backing the session store."""
    return redis.from_url(
        settings.redis_url,
        decode_responses=True,
    )


async def close_redis(client: redis.Redis | None) -> None:
    """Close the Redis connection pool."""
    if client is not None:
        await client.aclose()
