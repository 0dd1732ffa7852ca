"""
Token Bucket Rate Limiter for Marketplace Requests

Implements a token-bucket algorithm so the bot stays under the marketplace
API limits while still allowing short bursts (a listing cycle fetches a few
pages back to back, then goes quiet until the next poll).

Model:
- Bucket capacity: maximum burst size (tokens)
- Refill rate: tokens added per second
- Token cost: tokens consumed per request

The limiters at the bottom of this module are shared by every chain client,
since the marketplace counts requests per API key rather than per chain.
"""

import time
import asyncio
from typing import Final

from config.constants import (
    OPENSEA_READ_RATE_PER_SEC,
    OPENSEA_READ_BURST,
    OPENSEA_WRITE_RATE_PER_SEC,
    OPENSEA_WRITE_BURST,
)


class TokenBucketRateLimiter:
    """
    Token bucket rate limiter with asynchronous acquire.

    Attributes:
        rate: Tokens per second (sustained rate)
        capacity: Maximum burst capacity (tokens)
        tokens: Current token count
        last_update: Last refill timestamp
    """

    def __init__(self, rate: float, capacity: float):
        """
        Args:
            rate: Tokens per second (e.g., 2.0 = 2 req/sec)
            capacity: Maximum burst capacity (e.g., 4.0 = 4 request burst)
        """
        if rate <= 0 or capacity <= 0:
            raise ValueError(f"rate and capacity must be positive, got {rate}/{capacity}")
        self.rate: Final[float] = rate
        self.capacity: Final[float] = capacity
        self.tokens: float = capacity
        self.last_update: float = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.tokens = min(self.capacity, self.tokens + (self.rate * elapsed))
        self.last_update = now

    async def acquire(self, cost: float = 1.0) -> None:
        """
        Acquire tokens, waiting for the bucket to refill when it is short.

        Args:
            cost: Number of tokens to consume (default: 1.0)
        """
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= cost:
                    self.tokens -= cost
                    return
                deficit = cost - self.tokens
                await asyncio.sleep(deficit / self.rate)


# ============================================================================
# MARKETPLACE RATE LIMITERS
# ============================================================================

# GET order feeds (collection listings/offers, single-token orders)
OPENSEA_READ_RATE_LIMITER = TokenBucketRateLimiter(
    rate=OPENSEA_READ_RATE_PER_SEC,
    capacity=OPENSEA_READ_BURST
)

# POST listings/offers and cancellations
OPENSEA_WRITE_RATE_LIMITER = TokenBucketRateLimiter(
    rate=OPENSEA_WRITE_RATE_PER_SEC,
    capacity=OPENSEA_WRITE_BURST
)
