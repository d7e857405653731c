"""
Tests for the sliding-window rate limiter.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import RedisError

from app.core import rate_limit
from app.core.rate_limit import RateLimitExceeded


@pytest.fixture(autouse=True)
def clean_memory_store():
    with patch.dict(rate_limit._memory_store, clear=True):
        yield


@pytest.fixture
def mock_redis():
    """Create a mock Redis client with a recording pipeline."""
    redis = MagicMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 0, 1, True])
    redis.pipeline.return_value = pipe
    return redis


class TestCheckRateLimit:
    @pytest.mark.asyncio
    async def test_memory_fallback_without_redis(self):
        with patch("app.core.rate_limit.get_redis", new_callable=AsyncMock, return_value=None):
            results = [await rate_limit.check_rate_limit("k", 2, 60) for _ in range(3)]

        assert results == [True, True, False]

    @pytest.mark.asyncio
    async def test_redis_count_under_limit(self, mock_redis):
        with patch("app.core.rate_limit.get_redis", new_callable=AsyncMock, return_value=mock_redis):
            allowed = await rate_limit.check_rate_limit("k", 5, 60)

        assert allowed is True
        mock_redis.pipeline.return_value.zadd.assert_called_once()

    @pytest.mark.asyncio
    async def test_redis_count_at_limit(self, mock_redis):
        mock_redis.pipeline.return_value.execute = AsyncMock(return_value=[0, 5, 1, True])

        with patch("app.core.rate_limit.get_redis", new_callable=AsyncMock, return_value=mock_redis):
            allowed = await rate_limit.check_rate_limit("k", 5, 60)

        assert allowed is False

    @pytest.mark.asyncio
    async def test_redis_error_falls_back_to_memory(self, mock_redis):
        mock_redis.pipeline.return_value.execute = AsyncMock(side_effect=RedisError("down"))

        with patch("app.core.rate_limit.get_redis", new_callable=AsyncMock, return_value=mock_redis):
            allowed = await rate_limit.check_rate_limit("k", 1, 60)

        assert allowed is True
        assert "k" in rate_limit._memory_store


class TestEnforceRateLimit:
    @pytest.mark.asyncio
    async def test_raises_429(self):
        with patch("app.core.rate_limit.check_rate_limit", new_callable=AsyncMock, return_value=False):
            with pytest.raises(RateLimitExceeded) as exc_info:
                await rate_limit.enforce_rate_limit("k", 5, 60)

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers == {"Retry-After": "60"}
