"""
Rate Limiting Module

Sliding-window rate limiting for job endpoints, backed by Redis with an
in-memory fallback when Redis is not initialized or errors.

SECURITY: The limit runs after X-API-Key authentication, so only
authenticated callers consume a window. Clients are keyed on the socket
peer address; X-Forwarded-For is client-controlled and ignored.
"""

import logging
import time

from fastapi import HTTPException, Request, status

from app.core import redis as redis_module
from app.core.config import settings

logger = logging.getLogger(__name__)

# In-memory fallback storage: {key: [timestamp, ...]}
_memory_store: dict[str, list[float]] = {}

# Sweep every key once the store holds this many entries
MEMORY_STORE_SWEEP_THRESHOLD = 1024


class RateLimitExceeded(HTTPException):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_rate_limit_redis(client, key: str, limit: int, window_seconds: int) -> bool:
    """
    Check rate limit using a Redis sorted set as the sliding window.

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    now = time.time()

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zcard(key)
    pipe.zadd(key, {str(now): now})
    pipe.expire(key, window_seconds)
    results = await pipe.execute()

    return results[1] < limit


def _check_rate_limit_memory(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check rate limit using process memory.

    Only accurate for a single API instance.
    """
    now = time.time()
    if len(_memory_store) >= MEMORY_STORE_SWEEP_THRESHOLD:
        _prune_memory_store(now - window_seconds)

    window = [ts for ts in _memory_store.get(key, []) if ts > now - window_seconds]

    if len(window) >= limit:
        _memory_store[key] = window
        return False

    window.append(now)
    _memory_store[key] = window
    return True


def _prune_memory_store(cutoff: float) -> None:
    """Drop keys whose newest request is at or before cutoff."""
    stale = [key for key, window in _memory_store.items() if not window or window[-1] <= cutoff]
    for key in stale:
        del _memory_store[key]


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Check if a request is within rate limits.

    Uses the shared Redis client when available, memory otherwise.

    Args:
        key: Unique key for this rate limit (e.g., "jobs:10.0.0.1:/api/v1/jobs/...")
        limit: Maximum requests allowed in the window
        window_seconds: Time window in seconds

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    client = redis_module.redis_client

    if client is not None:
        try:
            return await _check_rate_limit_redis(client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_rate_limit_memory(key, limit, window_seconds)


def _client_key(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    return f"rate_limit:jobs:{client_ip}:{request.url.path}"


async def job_rate_limit(request: Request) -> None:
    """
    FastAPI dependency limiting job endpoint calls per client.

    Raises:
        RateLimitExceeded: When the client exceeds the configured window (HTTP 429)
    """
    limit = settings.job_rate_limit_requests
    window_seconds = settings.job_rate_limit_window_seconds
    key = _client_key(request)

    if not await check_rate_limit(key, limit, window_seconds):
        logger.warning(f"Rate limit exceeded for {key}: {limit}/{window_seconds}s")
        raise RateLimitExceeded(limit, window_seconds)


__all__ = [
    "RateLimitExceeded",
    "check_rate_limit",
    "job_rate_limit",
]
