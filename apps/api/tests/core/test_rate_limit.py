"""
Unit tests for job endpoint rate limiting.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core import rate_limit
from app.core.rate_limit import check_rate_limit


@pytest.fixture(autouse=True)
def clear_memory_store():
    rate_limit._memory_store.clear()
    yield
    rate_limit._memory_store.clear()


@pytest.fixture
def mock_redis():
    """Create a mock Redis client whose window is empty."""
    redis = MagicMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 0, 1, True])
    redis.pipeline.return_value = pipe
    return redis


class TestMemoryRateLimit:
    """Fallback used when Redis is not initialized."""

    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        with patch.object(rate_limit.redis_module, "redis_client", None):
            results = [await check_rate_limit("k", 3, 60) for _ in range(4)]

        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        with patch.object(rate_limit.redis_module, "redis_client", None):
            assert await check_rate_limit("a", 1, 60)
            assert await check_rate_limit("b", 1, 60)
            assert not await check_rate_limit("a", 1, 60)

    @pytest.mark.asyncio
    async def test_window_expires(self):
        with (
            patch.object(rate_limit.redis_module, "redis_client", None),
            patch.object(rate_limit, "time") as mock_time,
        ):
            mock_time.time.side_effect = [1000.0, 1000.5, 1061.0]
            assert await check_rate_limit("k", 1, 60)
            assert not await check_rate_limit("k", 1, 60)
            assert await check_rate_limit("k", 1, 60)


class TestMemoryStorePruning:
    """Expired keys are dropped so the fallback store stays bounded."""

    @pytest.mark.asyncio
    async def test_sweeps_expired_keys_at_threshold(self):
        with (
            patch.object(rate_limit.redis_module, "redis_client", None),
            patch.object(rate_limit, "MEMORY_STORE_SWEEP_THRESHOLD", 3),
            patch.object(rate_limit, "time") as mock_time,
        ):
            mock_time.time.side_effect = [1000.0, 1001.0, 1002.0, 1100.0]
            for key in ("a", "b", "c"):
                assert await check_rate_limit(key, 5, 60)

            assert await check_rate_limit("d", 5, 60)

        assert set(rate_limit._memory_store) == {"d"}

    @pytest.mark.asyncio
    async def test_keeps_keys_inside_window(self):
        with (
            patch.object(rate_limit.redis_module, "redis_client", None),
            patch.object(rate_limit, "MEMORY_STORE_SWEEP_THRESHOLD", 2),
            patch.object(rate_limit, "time") as mock_time,
        ):
            mock_time.time.side_effect = [1000.0, 1050.0, 1070.0]
            assert await check_rate_limit("a", 5, 60)
            assert await check_rate_limit("b", 5, 60)
            assert await check_rate_limit("c", 5, 60)

        assert set(rate_limit._memory_store) == {"b", "c"}


class TestRedisRateLimit:
    @pytest.mark.asyncio
    async def test_under_limit(self, mock_redis):
        with patch.object(rate_limit.redis_module, "redis_client", mock_redis):
            assert await check_rate_limit("k", 10, 60)

        mock_redis.pipeline.return_value.zadd.assert_called_once()

    @pytest.mark.asyncio
    async def test_over_limit(self, mock_redis):
        mock_redis.pipeline.return_value.execute.return_value = [0, 10, 1, True]

        with patch.object(rate_limit.redis_module, "redis_client", mock_redis):
            assert not await check_rate_limit("k", 10, 60)

    @pytest.mark.asyncio
    async def test_redis_error_falls_back_to_memory(self, mock_redis):
        mock_redis.pipeline.return_value.execute.side_effect = ConnectionError("redis down")

        with patch.object(rate_limit.redis_module, "redis_client", mock_redis):
            assert await check_rate_limit("k", 1, 60)
            assert not await check_rate_limit("k", 1, 60)
