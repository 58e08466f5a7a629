"""Tests for rate_limited and retry_on_rate_limit."""
import pytest
from unittest.mock import AsyncMock, patch

from webull_core.decorators import rate_limited, retry_on_rate_limit
from webull_core.errors import ApiError, RateLimitExceeded
from webull_core.rate_limit import ConstantBackoff, LinearBackoff, RateLimiter


class TestRateLimited:

    @pytest.mark.asyncio
    async def test_waits_on_explicit_key(self, clock):
        limiter = RateLimiter(requests_per_minute=5, clock=clock)

        @rate_limited(limiter, key="orders")
        async def place(x):
            return x * 2

        assert await place(21) == 42
        assert limiter.current_usage("orders") == 1

    @pytest.mark.asyncio
    async def test_default_key_is_qualname(self, clock):
        limiter = RateLimiter(clock=clock)

        @rate_limited(limiter)
        async def fetch():
            return "ok"

        await fetch()
        assert limiter.current_usage(fetch.__qualname__) == 1

    def test_exposes_limiter_and_metadata(self):
        limiter = RateLimiter()

        @rate_limited(limiter)
        async def fetch():
            """Fetch things."""

        assert fetch._rate_limiter is limiter
        assert fetch.__name__ == "fetch"
        assert fetch.__doc__ == "Fetch things."


class TestRetryOnRateLimit:

    @pytest.mark.asyncio
    async def test_succeeds_after_retries(self):
        calls = {"n": 0}

        @retry_on_rate_limit(max_attempts=3, strategy=LinearBackoff(1.0, 1.0))
        async def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise RateLimitExceeded(1.0)
            return "done"

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            assert await flaky() == "done"
        assert calls["n"] == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_reraises_after_last_attempt(self):
        @retry_on_rate_limit(max_attempts=2, strategy=ConstantBackoff(0.5))
        async def always_limited():
            raise RateLimitExceeded(3.0)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RateLimitExceeded) as exc_info:
                await always_limited()
        assert exc_info.value.retry_after == 3.0
        assert mock_sleep.call_count == 1

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        calls = {"n": 0}

        @retry_on_rate_limit(max_attempts=5)
        async def broken():
            calls["n"] += 1
            raise ApiError("500", "boom")

        with pytest.raises(ApiError):
            await broken()
        assert calls["n"] == 1

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            retry_on_rate_limit(max_attempts=0)
