"""
Custom Exception Classes for the NFT Market-Making Bot

Provides a hierarchy of specific exceptions for the failure scenarios the
bot distinguishes, so retry wrappers and polling loops can decide what to
retry, what to skip and what must stop start-up.

Exception Hierarchy:
├── MarketBotError (Base)
│   ├── ConfigurationError
│   ├── AuthenticationError
│   ├── APIError
│   │   ├── RateLimitError
│   │   ├── APITimeoutError
│   │   └── InvalidResponseError
│   ├── TradingError
│   │   ├── OrderRejectionError
│   │   └── PricePrecisionError
│   ├── StrategyError
│   ├── DataValidationError
│   └── NetworkError
"""

from typing import Optional, Dict, Any


class MarketBotError(Exception):
    """
    Base exception for all bot errors.
    Enables catching every bot error with: except MarketBotError
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize bot error with structured information.

        Args:
            message: Human-readable error message
            error_code: Error code for classification (e.g., 'ETIMEDOUT')
            details: Additional context dict
            original_error: Original exception that caused this
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.original_error = original_error
        super().__init__(self.message)

    def __str__(self) -> str:
        error_str = f"{self.__class__.__name__}: {self.message}"
        if self.error_code:
            error_str += f" (Code: {self.error_code})"
        if self.details:
            error_str += f" | Details: {self.details}"
        return error_str


# ============================================================================
# CONFIGURATION & INITIALIZATION ERRORS
# ============================================================================

class ConfigurationError(MarketBotError):
    """
    Raised when configuration is invalid or incomplete.
    Examples: price bounds violated, tokenId and trait both set, chain without
    an RPC endpoint, live mode without an order signer
    Action: Fix configuration and restart bot
    """
    pass


class AuthenticationError(MarketBotError):
    """
    Raised when authentication fails.
    Examples: invalid private key, rejected marketplace API key
    """
    pass


# ============================================================================
# API & NETWORK ERRORS
# ============================================================================

class APIError(MarketBotError):
    """
    Base exception for marketplace API errors.
    Includes HTTP status code and response data for debugging.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Any] = None,
        **kwargs
    ):
        self.status_code = status_code
        self.response_data = response_data
        super().__init__(message, **kwargs)


class RateLimitError(APIError):
    """
    Raised when the API rate limit is exceeded (HTTP 429).
    Carries the server's retry-after hint in seconds, which the rate-limit
    retry wrapper scales its backoff by.
    """

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        **kwargs
    ):
        self.retry_after = retry_after
        super().__init__(message, **kwargs)


class APITimeoutError(APIError):
    """
    Raised when an API request times out.
    Action: Retry with exponential backoff
    """
    pass


class InvalidResponseError(APIError):
    """
    Raised when an API response cannot be parsed or is inconsistent
    (bad JSON, missing order fields, a pagination cursor that repeats).
    """
    pass


# ============================================================================
# TRADING & ORDER ERRORS
# ============================================================================

class TradingError(MarketBotError):
    """Base exception for order submission errors"""
    pass


class OrderRejectionError(TradingError):
    """
    Raised when an order submission produced no usable result or was
    rejected by the marketplace.
    """

    def __init__(
        self,
        message: str,
        order_data: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        **kwargs
    ):
        self.order_data = order_data
        super().__init__(message, error_code=error_code, **kwargs)


class PricePrecisionError(TradingError):
    """
    Raised when a price cannot be expressed at the precision the marketplace
    accepts, even after rounding.
    """
    pass


# ============================================================================
# STRATEGY, VALIDATION & NETWORK ERRORS
# ============================================================================

class StrategyError(MarketBotError):
    """
    Raised when a polling strategy cannot evaluate a target.
    """
    pass


class DataValidationError(MarketBotError):
    """Raised when order or target data fails validation"""
    pass


class NetworkError(MarketBotError):
    """Raised when a connection to the marketplace or RPC node fails"""
    pass
