"""
Unit tests for the auto_retry policy.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from callguard.retry import auto_retry, RetryConfig
from callguard.errors import (
    PolicyConfigurationError,
    NotCallableError,
    OperationFailure,
    RetryExhaustedError,
)


class FlakyService:
    def __init__(self, failures):
        self.failures = failures
        self.attempts = 0

    @auto_retry(2, 0)
    def call(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionError(f"attempt {self.attempts} failed")
        return "Success"

    @auto_retry(2, 0)
    async def call_async(self):
        self.attempts += 1
        await asyncio.sleep(0)
        if self.attempts <= self.failures:
            raise ConnectionError(f"attempt {self.attempts} failed")
        return "Success"

    @auto_retry(2, 0, retry_on=(ConnectionError,))
    def call_strict(self):
        self.attempts += 1
        raise KeyError("not retryable")

    @auto_retry(1, 0)
    def call_silent(self):
        self.attempts += 1
        raise ValueError()


class TestAutoRetry:
    """Test cases for auto_retry."""

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        """Test two failures then success takes three attempts."""
        service = FlakyService(failures=2)

        result = await service.call()

        assert result == "Success"
        assert service.attempts == 3

    @pytest.mark.asyncio
    async def test_first_success_short_circuits(self):
        """Test a successful first attempt does not retry or wait."""
        service = FlakyService(failures=0)

        with patch("callguard.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await service.call()

        assert result == "Success"
        assert service.attempts == 1
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_exhausted(self):
        """Test an always failing operation runs retries + 1 times."""
        service = FlakyService(failures=10)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await service.call()

        error = exc_info.value
        assert service.attempts == 3
        assert "2 retries" in str(error)
        assert "attempt 3 failed" in str(error)
        assert error.retries == 2
        assert error.attempts == 3
        assert isinstance(error.last_failure, OperationFailure)
        assert isinstance(error.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_async_operation(self):
        """Test rejected futures are retried like synchronous raises."""
        service = FlakyService(failures=2)

        assert await service.call_async() == "Success"
        assert service.attempts == 3

    @pytest.mark.asyncio
    async def test_async_exhausted(self):
        """Test async operations exhaust the same way."""
        service = FlakyService(failures=10)

        with pytest.raises(RetryExhaustedError, match="2 retries"):
            await service.call_async()

        assert service.attempts == 3

    @pytest.mark.asyncio
    async def test_fixed_delay_between_attempts(self):
        """Test the same delay is awaited before every retry."""

        class Client:
            attempts = 0

            @auto_retry(3, 0.5)
            def fetch(self):
                self.attempts += 1
                raise TimeoutError("slow")

        client = Client()
        with patch("callguard.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RetryExhaustedError):
                await client.fetch()

        assert client.attempts == 4
        assert mock_sleep.await_count == 3
        assert all(call.args == (0.5,) for call in mock_sleep.await_args_list)

    @pytest.mark.asyncio
    async def test_counter_resets_per_call(self):
        """Test every external call gets the full attempt budget."""
        service = FlakyService(failures=10)

        with pytest.raises(RetryExhaustedError):
            await service.call()
        with pytest.raises(RetryExhaustedError):
            await service.call()

        assert service.attempts == 6

    @pytest.mark.asyncio
    async def test_non_matching_exception_propagates(self):
        """Test exceptions outside retry_on are not retried."""
        service = FlakyService(failures=0)

        with pytest.raises(KeyError):
            await service.call_strict()

        assert service.attempts == 1

    @pytest.mark.asyncio
    async def test_message_less_exception_is_described(self):
        """Test failures without a message still carry text."""
        service = FlakyService(failures=0)

        with pytest.raises(RetryExhaustedError) as exc_info:
            await service.call_silent()

        assert "ValueError raised without a message" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        """Test zero retries means exactly one attempt."""

        class Once:
            attempts = 0

            @auto_retry(0, 0)
            def run(self):
                self.attempts += 1
                raise RuntimeError("no")

        once = Once()
        with pytest.raises(RetryExhaustedError, match="0 retries"):
            await once.run()

        assert once.attempts == 1

    def test_negative_retries(self):
        """Test negative retry counts are rejected at wrap time."""
        with pytest.raises(PolicyConfigurationError):
            auto_retry(-1, 0)

    def test_negative_delay(self):
        """Test negative delays are rejected at wrap time."""
        with pytest.raises(PolicyConfigurationError):
            auto_retry(1, -0.1)

    def test_fractional_retries(self):
        """Test retry counts must be whole numbers."""
        with pytest.raises(PolicyConfigurationError):
            RetryConfig(retries=1.5, delay=0)

    def test_config_with_individual_arguments_rejected(self):
        """Test a config cannot be combined with separate parameters."""
        config = RetryConfig(retries=1, delay=0)

        with pytest.raises(PolicyConfigurationError, match="not both"):
            auto_retry(3, config=config)
        with pytest.raises(PolicyConfigurationError):
            auto_retry(retry_on=(ValueError,), config=config)

    def test_config_alone_is_used(self):
        """Test a prepared config is attached to the wrapper."""
        config = RetryConfig(retries=1, delay=0)

        wrapped = auto_retry(config=config)(lambda: 1)

        assert wrapped.retry_config is config

    def test_not_callable(self):
        """Test applying auto_retry to a non-callable fails."""
        with pytest.raises(NotCallableError):
            auto_retry(1, 0)(None)

    def test_defaults_from_settings(self, monkeypatch):
        """Test omitted parameters come from configuration."""
        monkeypatch.setenv("CALLGUARD_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("CALLGUARD_RETRY_DELAY", "0.25")

        config = RetryConfig()

        assert config.retries == 5
        assert config.delay == 0.25
        assert config.max_attempts == 6
