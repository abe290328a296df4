"""Tests for retry_request backoff behaviour."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from learnassist.resilience.errors import ApiError, ErrorCode
from learnassist.resilience.retry import is_retryable, retry_request


def _refused() -> ApiError:
    return ApiError(
        ErrorCode.CONNECTION_REFUSED,
        "Backend server connection refused. Server may not be running.",
        is_network_error=True,
        is_connectivity_issue=True,
        critical=True,
    )


class TestIsRetryable:
    def test_connectivity_issue(self):
        assert is_retryable(_refused()) is True

    def test_timeout_is_network_error(self):
        err = ApiError(ErrorCode.REQUEST_TIMEOUT, "timeout", is_network_error=True)
        assert is_retryable(err) is True

    def test_client_error_is_not(self):
        assert is_retryable(ApiError(ErrorCode.CLIENT_ERROR, "Invalid request.")) is False

    def test_plain_exception_is_not(self):
        assert is_retryable(ValueError("x")) is False


class TestRetryRequest:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        fn = AsyncMock(return_value={"ok": True})
        assert await retry_request(fn) == {"ok": True}
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_connectivity_failures_with_doubling_delay(self):
        fn = AsyncMock(side_effect=[_refused(), _refused(), "done"])
        with patch("learnassist.resilience.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            assert await retry_request(fn, max_retries=3, initial_delay=1.0) == "done"

        assert fn.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_raises_last_error_after_max_retries(self):
        errors = [_refused(), _refused(), _refused()]
        fn = AsyncMock(side_effect=errors)
        with patch("learnassist.resilience.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(ApiError) as excinfo:
                await retry_request(fn, max_retries=3, initial_delay=0.5)

        assert excinfo.value is errors[-1]
        assert fn.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_non_connectivity_error_is_not_retried(self):
        err = ApiError(ErrorCode.AUTH_EXPIRED, "Session expired. Please login again.", is_auth_error=True)
        fn = AsyncMock(side_effect=err)
        with pytest.raises(ApiError) as excinfo:
            await retry_request(fn)
        assert excinfo.value is err
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_single_attempt_does_not_sleep(self):
        err = _refused()
        fn = AsyncMock(side_effect=err)
        with patch("learnassist.resilience.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(ApiError) as excinfo:
                await retry_request(fn, max_retries=1)
        assert excinfo.value is err
        assert fn.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_zero_retries(self):
        with pytest.raises(ValueError):
            await retry_request(AsyncMock(), max_retries=0)
