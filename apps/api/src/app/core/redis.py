"""
Redis Configuration

Async Redis client shared by rate limiting.
"""

from redis.asyncio import Redis, from_url

from app.core.config import settings

# Redis client instance, None until init_redis() succeeds
redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Initialize Redis connection.

    Call this on application startup.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Only publish the client once it answers
    await client.ping()
    redis_client = client
    return redis_client


async def get_redis() -> Redis | None:
    """Get Redis client instance, or None when Redis is unavailable."""
    return redis_client


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
