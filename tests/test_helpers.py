"""
Tests for helper utilities: addresses, ETH amounts and retry wrappers
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from utils.exceptions import APIError, APITimeoutError, DataValidationError, RateLimitError
from utils.rate_limiter import TokenBucketRateLimiter
from utils.helpers import (
    async_retry_with_backoff,
    backoff_delay,
    format_eth,
    is_retryable_error,
    parse_eth,
    same_address,
    to_checksum,
    with_rate_limit_retry,
    with_retry,
)


class TestAddresses:
    """Test address validation and comparison"""

    def test_to_checksum(self):
        address = '0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2'
        assert to_checksum(address) == '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2'

    def test_to_checksum_rejects_malformed(self):
        with pytest.raises(DataValidationError):
            to_checksum('0x1234')

    def test_same_address_ignores_case(self):
        assert same_address(
            '0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2',
            '0xC02AAA39B223FE8D0A0E5C4F27EAD9083C756CC2'
        )

    def test_same_address_missing_or_invalid(self):
        assert not same_address(None, '0x1111111111111111111111111111111111111111')
        assert not same_address('not-an-address', 'not-an-address')


class TestEthAmounts:
    """Test exact ETH <-> wei conversion"""

    def test_parse_eth_exact(self):
        assert parse_eth('0.5') == 5 * 10 ** 17
        assert parse_eth('1') == 10 ** 18
        assert parse_eth('0.000000000000000001') == 1

    def test_parse_eth_rejects_float(self):
        with pytest.raises(DataValidationError):
            parse_eth(0.5)

    def test_parse_eth_rejects_garbage_and_negative(self):
        with pytest.raises(DataValidationError):
            parse_eth('abc')
        with pytest.raises(DataValidationError):
            parse_eth('-1')

    def test_parse_eth_rejects_sub_wei(self):
        with pytest.raises(DataValidationError):
            parse_eth('0.0000000000000000001')

    def test_format_eth(self):
        assert format_eth(5 * 10 ** 17) == '0.5'
        assert format_eth(10 ** 18) == '1'
        assert format_eth(0) == '0'
        assert format_eth(499999999999999000) == '0.499999999999999'


class TestRetryClassification:
    """Test transient error detection"""

    def test_message_patterns(self):
        assert is_retryable_error(Exception('Request timed out'))
        assert is_retryable_error(Exception('read ECONNRESET'))
        assert not is_retryable_error(Exception('Invalid order'))

    def test_error_code(self):
        error = APITimeoutError('request failed', error_code='ETIMEDOUT')
        assert is_retryable_error(error)

    def test_backoff_delay_capped(self):
        assert backoff_delay(0, 1.0, 30.0) == 1.0
        assert backoff_delay(3, 1.0, 30.0) == 8.0
        assert backoff_delay(10, 1.0, 30.0) == 30.0
        assert backoff_delay(1, 1.0, 30.0, multiplier=3) == 6.0


@pytest.mark.asyncio
class TestWithRetry:
    """Test generic transient-error retry"""

    async def test_success_first_try(self):
        operation = AsyncMock(return_value='ok')

        result = await with_retry(operation)

        assert result == 'ok'
        assert operation.await_count == 1

    async def test_retries_transient_errors(self):
        operation = AsyncMock(side_effect=[Exception('timeout'), Exception('ECONNRESET'), 'ok'])

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()) as sleep:
            result = await with_retry(operation, max_retries=5, base_delay=1.0)

        assert result == 'ok'
        assert operation.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_non_retryable_raised_immediately(self):
        error = APIError('Invalid order', status_code=400)
        operation = AsyncMock(side_effect=error)

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()) as sleep:
            with pytest.raises(APIError) as exc_info:
                await with_retry(operation)

        assert exc_info.value is error
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    async def test_gives_up_after_max_retries(self):
        operation = AsyncMock(side_effect=Exception('timeout'))

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()):
            with pytest.raises(Exception, match='timeout'):
                await with_retry(operation, max_retries=2)

        assert operation.await_count == 3

    async def test_decorator(self):
        calls = []

        @async_retry_with_backoff(max_retries=1, base_delay=0.5)
        async def flaky(value):
            calls.append(value)
            if len(calls) == 1:
                raise Exception('server disconnected')
            return value * 2

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()):
            assert await flaky(21) == 42
        assert calls == [21, 21]


@pytest.mark.asyncio
class TestWithRateLimitRetry:
    """Test rate-limit retry"""

    async def test_retries_with_scaled_delay(self):
        operation = AsyncMock(side_effect=[RateLimitError('slow down', retry_after=2), 'ok'])

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()) as sleep:
            result = await with_rate_limit_retry(operation, base_delay=1.0, max_delay=30.0)

        assert result == 'ok'
        sleep.assert_awaited_once_with(2.0)

    async def test_missing_hint_defaults_to_one_second(self):
        operation = AsyncMock(side_effect=[
            RateLimitError('slow down'),
            RateLimitError('slow down'),
            'ok',
        ])

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()) as sleep:
            await with_rate_limit_retry(operation, base_delay=1.0, max_delay=30.0)

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_delay_capped(self):
        operation = AsyncMock(side_effect=[RateLimitError('slow down', retry_after=100), 'ok'])

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()) as sleep:
            await with_rate_limit_retry(operation, base_delay=1.0, max_delay=30.0)

        sleep.assert_awaited_once_with(30.0)

    async def test_other_errors_not_retried(self):
        operation = AsyncMock(side_effect=Exception('timeout'))

        with pytest.raises(Exception, match='timeout'):
            await with_rate_limit_retry(operation)
        assert operation.await_count == 1

    async def test_gives_up_with_last_error(self):
        operation = AsyncMock(side_effect=RateLimitError('slow down', retry_after=1))

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()):
            with pytest.raises(RateLimitError):
                await with_rate_limit_retry(operation, max_retries=3)
        assert operation.await_count == 4


class TestTokenBucketRateLimiter:
    """Test request pacing"""

    @pytest.mark.asyncio
    async def test_burst_does_not_wait(self):
        limiter = TokenBucketRateLimiter(rate=0.001, capacity=2)

        with patch('utils.rate_limiter.asyncio.sleep', new=AsyncMock()) as sleep:
            await limiter.acquire()
            await limiter.acquire()

        sleep.assert_not_awaited()
        assert limiter.tokens < 1

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(rate=0, capacity=1)

    @pytest.mark.asyncio
    async def test_acquire_waits_for_refill(self):
        limiter = TokenBucketRateLimiter(rate=1000.0, capacity=1)

        await limiter.acquire()
        await asyncio.wait_for(limiter.acquire(), timeout=1)

        assert limiter.tokens < 1
