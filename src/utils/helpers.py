"""
Validators and Helper Utilities for the NFT Market-Making Bot

Provides:
- Address validation and checksum normalization
- ETH/wei formatting and parsing
- Retry wrappers with exponential backoff (generic and rate-limit aware)
- Async retry decorator

All retry helpers re-raise the last error unchanged once they give up, so
callers see the same exception types the marketplace client raised.
"""

import re
import asyncio
from decimal import Decimal, InvalidOperation
from functools import wraps
from typing import Any, Awaitable, Callable, Iterable, Optional, TypeVar

from web3 import Web3

from utils.logger import get_logger
from utils.exceptions import DataValidationError
from config.constants import (
    MAX_RETRIES,
    RETRY_BASE_DELAY,
    MAX_BACKOFF_DELAY,
    DEFAULT_RETRYABLE_PATTERNS,
)


logger = get_logger(__name__)

T = TypeVar('T')


# ============================================================================
# 1. ADDRESS VALIDATION
# ============================================================================

def validate_ethereum_address(address: str) -> bool:
    """
    Validate Ethereum address format (0x prefixed hex).

    Args:
        address: Address string to validate

    Returns:
        True if valid

    Raises:
        DataValidationError: If address is malformed
    """
    if not isinstance(address, str):
        raise DataValidationError(
            f"Address must be string, got {type(address).__name__}",
            details={'address': str(address)}
        )

    if not re.match(r'^0x[0-9a-fA-F]{40}$', address):
        raise DataValidationError(
            "Invalid Ethereum address format",
            error_code='INVALID_ADDRESS_FORMAT',
            details={'address': address, 'expected_format': '0x + 40 hex chars'}
        )

    return True


def to_checksum(address: str) -> str:
    """Validate an address and return its EIP-55 checksummed form."""
    validate_ethereum_address(address)
    return Web3.to_checksum_address(address)


def same_address(left: Optional[str], right: Optional[str]) -> bool:
    """
    Compare two addresses ignoring case and checksum.

    Returns False when either side is missing or malformed.
    """
    if not left or not right:
        return False
    try:
        return to_checksum(left) == to_checksum(right)
    except DataValidationError:
        return False


# ============================================================================
# 2. ETH AMOUNTS
# ============================================================================

def parse_eth(value: Any) -> int:
    """
    Convert an ETH amount given as a decimal string to wei, exactly.

    Args:
        value: Amount such as "0.05" (str, int or Decimal; floats are rejected)

    Returns:
        Amount in wei

    Raises:
        DataValidationError: If the amount is not a finite decimal number or has
                             more precision than wei can represent
    """
    if isinstance(value, float):
        raise DataValidationError(
            f"ETH amounts must be given as strings, got float {value!r}",
            error_code='FLOAT_AMOUNT'
        )
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise DataValidationError(
            f"Invalid ETH amount: {value!r}",
            error_code='INVALID_AMOUNT',
            original_error=e
        )
    if not amount.is_finite():
        raise DataValidationError(f"Invalid ETH amount: {value!r}", error_code='INVALID_AMOUNT')

    if amount < 0:
        raise DataValidationError(f"ETH amount must not be negative: {value!r}", error_code='INVALID_AMOUNT')

    wei = Web3.to_wei(amount, 'ether')
    if Decimal(wei) != amount.scaleb(18):
        raise DataValidationError(
            f"ETH amount {value!r} is more precise than 1 wei",
            error_code='AMOUNT_PRECISION'
        )
    return int(wei)


def format_eth(wei: int) -> str:
    """Render a wei amount as a plain ETH decimal string (no exponent)."""
    ether = Web3.from_wei(wei, 'ether')
    text = format(ether, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'


# ============================================================================
# 3. RETRY WRAPPERS
# ============================================================================

def is_retryable_error(
    error: BaseException,
    patterns: Iterable[str] = DEFAULT_RETRYABLE_PATTERNS
) -> bool:
    """
    Check whether an error looks transient.

    The error message and any `error_code` / `code` attribute are matched
    case-insensitively against the given substrings.
    """
    haystacks = [str(error), type(error).__name__]
    for attr in ('error_code', 'code'):
        value = getattr(error, attr, None)
        if value is not None:
            haystacks.append(str(value))
    haystack = ' '.join(haystacks).lower()
    return any(pattern.lower() in haystack for pattern in patterns)


def backoff_delay(attempt: int, base_delay: float, max_delay: float, multiplier: float = 1.0) -> float:
    """Delay before retry number `attempt` (0-based): min(base * 2**attempt * multiplier, max)."""
    return min(base_delay * (2 ** attempt) * multiplier, max_delay)


def _retry_after_seconds(error: BaseException) -> float:
    try:
        retry_after = float(getattr(error, 'retry_after'))
    except (TypeError, ValueError):
        return 1.0
    return retry_after if retry_after > 0 else 1.0


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = MAX_BACKOFF_DELAY,
    retryable_patterns: Iterable[str] = DEFAULT_RETRYABLE_PATTERNS,
) -> T:
    """
    Run an async operation, retrying transient failures with exponential backoff.

    Args:
        operation: Zero-argument callable returning an awaitable
        max_retries: Retries after the first attempt
        base_delay: Base delay between retries (seconds)
        max_delay: Upper bound for a single delay (seconds)
        retryable_patterns: Substrings identifying transient errors

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The last error, unchanged, when it is not retryable or
                   retries are exhausted
    """
    patterns = tuple(retryable_patterns)
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= max_retries or not is_retryable_error(e, patterns):
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                f"Transient error, retrying in {delay:.1f}s "
                f"(attempt {attempt + 1}/{max_retries}): {e}",
                extra={'attempt': attempt + 1, 'max_retries': max_retries, 'delay_sec': delay}
            )
            await asyncio.sleep(delay)
            attempt += 1


async def with_rate_limit_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = MAX_BACKOFF_DELAY,
) -> T:
    """
    Run an async operation, retrying only rate-limit failures.

    Any error carrying a `retry_after` attribute is retried. The server hint
    scales the exponential backoff: min(base * 2**attempt * retry_after, max).

    Raises:
        Exception: The last error, unchanged, when it carries no retry hint or
                   retries are exhausted
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not hasattr(e, 'retry_after') or attempt >= max_retries:
                raise
            retry_after = _retry_after_seconds(e)
            delay = backoff_delay(attempt, base_delay, max_delay, multiplier=retry_after)
            logger.warning(
                f"Rate limited. Retry after {retry_after:g}s "
                f"(attempt {attempt + 1}/{max_retries}, waiting {delay:.1f}s)",
                extra={'attempt': attempt + 1, 'retry_after': retry_after, 'delay_sec': delay}
            )
            await asyncio.sleep(delay)
            attempt += 1


# ============================================================================
# 4. ASYNC HELPER DECORATORS
# ============================================================================

def async_retry_with_backoff(
    max_retries: int = MAX_RETRIES,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = MAX_BACKOFF_DELAY,
    retryable_patterns: Iterable[str] = DEFAULT_RETRYABLE_PATTERNS,
):
    """
    Decorator form of with_retry for async functions.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries (seconds)
        max_delay: Upper bound for a single delay (seconds)
        retryable_patterns: Substrings identifying transient errors

    Returns:
        Decorated async function with retry logic
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await with_retry(
                lambda: func(*args, **kwargs),
                max_retries=max_retries,
                base_delay=base_delay,
                max_delay=max_delay,
                retryable_patterns=retryable_patterns,
            )

        return wrapper
    return decorator
