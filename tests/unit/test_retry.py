"""Tests for bounded retries with per-attempt timeouts."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from tickertui.utils.retry import RetryError, retry_with_timeout


@pytest.mark.unit
class TestRetryWithTimeout:

    @pytest.mark.asyncio
    async def test_first_success_is_returned(self):
        func = AsyncMock(return_value=[1, 2, 3])

        result = await retry_with_timeout(func, max_attempts=2, attempt_timeout=1.0, delay=0)

        assert result == [1, 2, 3]
        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_after_error(self):
        func = AsyncMock(side_effect=[ConnectionError("reset"), "ok"])

        result = await retry_with_timeout(func, max_attempts=2, attempt_timeout=1.0, delay=0.01)

        assert result == "ok"
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_reports_last_error(self):
        func = AsyncMock(side_effect=[ConnectionError("reset"), ValueError("bad payload")])

        with pytest.raises(RetryError) as exc_info:
            await retry_with_timeout(func, max_attempts=2, attempt_timeout=1.0, delay=0)

        assert exc_info.value.attempts == 2
        assert exc_info.value.description == "attempt 2/2 failed: bad payload"

    @pytest.mark.asyncio
    async def test_each_attempt_is_timed_out(self):
        calls = 0

        async def hang():
            nonlocal calls
            calls += 1
            await asyncio.sleep(10)

        with pytest.raises(RetryError) as exc_info:
            await retry_with_timeout(hang, max_attempts=2, attempt_timeout=0.05, delay=0)

        assert calls == 2
        assert str(exc_info.value) == "attempt 2/2 timed out after 0.05s"

    @pytest.mark.asyncio
    async def test_unlisted_exceptions_propagate(self):
        func = AsyncMock(side_effect=KeyError("boom"))

        with pytest.raises(KeyError):
            await retry_with_timeout(
                func, max_attempts=3, attempt_timeout=1.0, delay=0,
                exceptions=(ConnectionError,),
            )
        assert func.await_count == 1
