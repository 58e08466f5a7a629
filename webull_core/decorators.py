"""
Rate Limit Decorators

Provides:
- rate_limited: await admission from a RateLimiter before each call
- retry_on_rate_limit: caller-side retry loop for RateLimitExceeded

The dispatcher itself never retries; these are for application code that
wants to.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, Optional, TypeVar, cast

from loguru import logger

from .errors import RateLimitExceeded
from .rate_limit import BackoffStrategy, ExponentialBackoff, RateLimiter

# Type variable for preserving function signatures
F = TypeVar('F', bound=Callable[..., Any])


def rate_limited(limiter: RateLimiter, key: Optional[str] = None) -> Callable[[F], F]:
    """
    Decorator to rate limit an async function.

    Args:
        limiter: Shared RateLimiter instance.
        key: Budget key. Defaults to the function's qualified name.

    Example:
        >>> limiter = RateLimiter(requests_per_minute=30)
        >>> @rate_limited(limiter, key="orders")
        ... async def place(order):
        ...     return await client.orders.place_order(order)
    """
    def decorator(func: F) -> F:
        _key = key or func.__qualname__

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            await limiter.wait(_key)
            return await func(*args, **kwargs)

        # Attach limiter reference for testing/inspection
        wrapper._rate_limiter = limiter  # type: ignore[attr-defined]
        return cast(F, wrapper)

    return decorator


def retry_on_rate_limit(
    max_attempts: int = 3,
    strategy: Optional[BackoffStrategy] = None,
) -> Callable[[F], F]:
    """
    Retry an async function when it raises RateLimitExceeded.

    The wait before retry ``n`` is ``strategy.delay(n)``. The dispatcher has
    already slept the server's retry-after by the time the error arrives.
    The last failure is re-raised.

    Args:
        max_attempts: Total calls including the first.
        strategy: Backoff strategy (default: exponential 1s, x2, 60s cap).
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    _strategy = strategy or ExponentialBackoff()

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except RateLimitExceeded:
                    if attempt == max_attempts - 1:
                        raise
                    delay = _strategy.delay(attempt)
                    logger.warning(
                        f"{func.__qualname__} rate-limited, "
                        f"retry {attempt + 1}/{max_attempts - 1} in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)

        return cast(F, wrapper)

    return decorator
