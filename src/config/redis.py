"""Redis configuration for the shared progress store."""

import redis.asyncio as aioredis
from typing import Optional
from .settings import settings

_redis_client: Optional[aioredis.Redis] = None


def get_redis(url: Optional[str] = None) -> aioredis.Redis:
    """Get or create Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = aioredis.from_url(
            url or settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
