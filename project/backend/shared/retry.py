"""
Retry logic with exponential backoff.

Wraps provider and storage calls that can fail transiently. Only
RetryableError (and subclasses such as RateLimitError) trigger another
attempt; everything else propagates on the first failure.
"""

import asyncio
import functools
import time
from typing import Any, Callable, Tuple, Type, TypeVar

from shared.errors import RetryableError, RateLimitError
from shared.logging import get_logger

T = TypeVar("T")
logger = get_logger("retry")


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before the next attempt: base, 2*base, 4*base, ..."""
    return base_delay * (2 ** attempt)


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 2,
    retryable_exceptions: Tuple[Type[Exception], ...] = (RetryableError, RateLimitError)
):
    """
    Decorator for retrying sync or async callables with exponential backoff.

    Args:
        max_attempts: Total attempts including the first call
        base_delay: Base delay in seconds
        retryable_exceptions: Exception types that trigger a retry

    Example:
        @retry_with_backoff(max_attempts=3, base_delay=1)
        async def synthesize(...):
            ...
    """
    def _on_retry(func_name: str, attempt: int, error: Exception) -> float:
        delay = backoff_delay(attempt, base_delay)
        logger.warning(
            f"Retry attempt {attempt + 1}/{max_attempts} for {func_name} after {delay}s delay",
            extra={"error": str(error), "attempt": attempt + 1}
        )
        return delay

    def _on_exhausted(func_name: str, error: Exception) -> None:
        logger.error(
            f"All {max_attempts} retry attempts failed for {func_name}",
            extra={"error": str(error)}
        )

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                for attempt in range(max_attempts):
                    try:
                        return await func(*args, **kwargs)
                    except retryable_exceptions as e:
                        if attempt == max_attempts - 1:
                            _on_exhausted(func.__name__, e)
                            raise
                        await asyncio.sleep(_on_retry(func.__name__, attempt, e))
                raise RuntimeError(f"{func.__name__} called with max_attempts={max_attempts}")

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt == max_attempts - 1:
                        _on_exhausted(func.__name__, e)
                        raise
                    time.sleep(_on_retry(func.__name__, attempt, e))
            raise RuntimeError(f"{func.__name__} called with max_attempts={max_attempts}")

        return sync_wrapper

    return decorator
