"""
Tests for retry logic with exponential backoff.
"""

import pytest
from unittest.mock import AsyncMock, patch

from shared.errors import ProviderError, RateLimitError, RetryableError, ValidationError
from shared.retry import backoff_delay, retry_with_backoff


def test_backoff_delay_doubles():
    assert [backoff_delay(a, 2) for a in range(3)] == [2, 4, 8]


@pytest.mark.asyncio
async def test_retry_succeeds_on_first_attempt():
    """Test that function succeeds on first attempt."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.01)
    async def successful_function():
        nonlocal call_count
        call_count += 1
        return "success"

    assert await successful_function() == "success"
    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_succeeds_after_retries():
    """Test that function succeeds after retries."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.01)
    async def retryable_function():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise RetryableError("Temporary failure")
        return "success"

    assert await retryable_function() == "success"
    assert call_count == 2


@pytest.mark.asyncio
async def test_retry_fails_after_max_attempts():
    """The last error propagates once attempts are exhausted."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.01)
    async def always_fails():
        nonlocal call_count
        call_count += 1
        raise RetryableError("Always fails")

    with pytest.raises(RetryableError, match="Always fails"):
        await always_fails()

    assert call_count == 3


@pytest.mark.asyncio
async def test_rate_limit_is_retried():
    call_count = 0

    @retry_with_backoff(max_attempts=2, base_delay=0.01)
    async def rate_limited():
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            raise RateLimitError("429")
        return "ok"

    assert await rate_limited() == "ok"


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [ValidationError("bad input"), ProviderError("model failed")])
async def test_non_retryable_errors_propagate_immediately(error):
    """Test that non-retryable errors are not retried."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.01)
    async def non_retryable():
        nonlocal call_count
        call_count += 1
        raise error

    with pytest.raises(type(error)):
        await non_retryable()

    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_sleeps_with_exponential_backoff():
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=2)
    async def fails_twice():
        nonlocal call_count
        call_count += 1
        if call_count < 3:
            raise RetryableError("Retry")
        return "success"

    with patch("shared.retry.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        assert await fails_twice() == "success"

    assert [c.args[0] for c in mock_sleep.await_args_list] == [2, 4]


@pytest.mark.asyncio
async def test_retry_custom_retryable_exceptions():
    """Test that custom retryable exceptions work."""
    call_count = 0

    @retry_with_backoff(
        max_attempts=3,
        base_delay=0.01,
        retryable_exceptions=(ConnectionError, RetryableError)
    )
    async def custom_retryable():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise ConnectionError("Connection failed")
        return "success"

    assert await custom_retryable() == "success"
    assert call_count == 2


def test_retry_sync_function():
    """Test that retry works with sync functions."""
    call_count = 0

    @retry_with_backoff(max_attempts=3, base_delay=0.01)
    def sync_function():
        nonlocal call_count
        call_count += 1
        if call_count < 2:
            raise RetryableError("Retry")
        return "success"

    assert sync_function() == "success"
    assert call_count == 2
