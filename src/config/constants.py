"""
Configuration Module for the NFT Market-Making Bot

This module centralizes the constants of the market-making bot: pricing
increments, order horizons, pagination, retry defaults, payment tokens,
chain identifiers and logging.

Key Principles:
- Single source of truth for all configuration constants
- All constants are Final (immutable)
- Prices are integers in wei; durations are seconds
- Environment-specific values live in config.settings, not here
"""

from typing import Final, Dict, FrozenSet, Tuple


# ============================================================================
# 1. PRICING INCREMENTS (wei)
# ============================================================================
# All price arithmetic is done on integers in the smallest currency unit.
# 1 ETH = 10**18 wei.
# ============================================================================

WEI_PER_ETH: Final[int] = 10 ** 18

# Listings are undercut in steps of 1000 wei after truncating the
# competitor price to a multiple of 1000 wei
LISTING_UNDERCUT_WEI: Final[int] = 1000

# Offers outbid the competitor by 0.0001 ETH
OFFER_INCREMENT_WEI: Final[int] = 10 ** 14

# Offer unit prices are submitted with at most 4 decimals of ETH
PRICE_INCREMENT_4_DECIMALS: Final[int] = 10 ** 14

# Some collection/trait offers are rejected unless priced with 3 decimals
PRICE_INCREMENT_3_DECIMALS: Final[int] = 10 ** 15


# ============================================================================
# 2. ORDER HORIZONS (seconds)
# ============================================================================

# Horizon for orders placed without a competitor (5 months of 30 days)
DEFAULT_EXPIRATION_SEC: Final[int] = 5 * 30 * 24 * 60 * 60

# Horizon for a listing placed at the floor price
FLOOR_EXPIRATION_SEC: Final[int] = 12 * 60 * 60

# The marketplace rejects orders that expire sooner than ~10 minutes
MIN_EXPIRATION_SEC: Final[int] = 11 * 60


# ============================================================================
# 3. PAGINATION
# ============================================================================

# Page size for collection-wide order feeds
DEFAULT_PAGE_SIZE: Final[int] = 100

# Page size for server-sorted single-token queries
SINGLE_TOKEN_PAGE_SIZE: Final[int] = 50


# ============================================================================
# 4. RETRY & BACKOFF
# ============================================================================

# Maximum retries for failed API calls
MAX_RETRIES: Final[int] = 5

# Exponential backoff base delay (seconds)
RETRY_BASE_DELAY: Final[float] = 1.0

# Maximum backoff delay (seconds)
MAX_BACKOFF_DELAY: Final[float] = 30.0

# Transient failures worth retrying. Matched case-insensitively against the
# error message and error code.
DEFAULT_RETRYABLE_PATTERNS: Final[Tuple[str, ...]] = (
    'timeout',
    'timed out',
    'etimedout',
    'econnreset',
    'connection reset',
    'enotfound',
    'name or service not known',
    'cannot connect to host',
    'server disconnected',
    'invalid json',
)

# Error raised by the marketplace when a price-sorted query is not scoped to
# exactly one token. Triggers the collection-wide pagination fallback.
SCOPE_QUERY_UNSUPPORTED_MESSAGE: Final[str] = (
    "Sorting by price is only supported for a single token"
)

# Rejections that trigger the 3-decimal price fallback
PRICE_PRECISION_ERROR_PATTERNS: Final[Tuple[str, ...]] = (
    '3 decimals allowed',
    '3 decimal',
)


# ============================================================================
# 5. CURRENCIES & PAYMENT TOKENS
# ============================================================================

ETH_SYMBOL: Final[str] = 'ETH'
WETH_SYMBOL: Final[str] = 'WETH'
UNKNOWN_CURRENCY: Final[str] = 'UNKNOWN'

# Currencies whose prices are comparable one-to-one with ETH
ETH_EQUIVALENT_CURRENCIES: Final[FrozenSet[str]] = frozenset({ETH_SYMBOL, WETH_SYMBOL})

# Native ETH is represented by the zero address in order items
ETH_PAYMENT_TOKEN: Final[str] = '0x0000000000000000000000000000000000000000'

MAINNET_WETH_ADDRESS: Final[str] = '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2'

# WETH contract used to pay for offers, by chain id. Chains missing from this
# table fall back to the chain-1 address.
WETH_ADDRESSES: Final[Dict[int, str]] = {
    1: MAINNET_WETH_ADDRESS,
    10: MAINNET_WETH_ADDRESS,
    137: MAINNET_WETH_ADDRESS,
    360: '0x4200000000000000000000000000000000000006',
    8453: MAINNET_WETH_ADDRESS,
    42161: MAINNET_WETH_ADDRESS,
    7777777: MAINNET_WETH_ADDRESS,
}


# ============================================================================
# 6. CHAINS
# ============================================================================

# Chain id -> marketplace chain name
CHAIN_NAMES: Final[Dict[int, str]] = {
    1: 'ethereum',
    10: 'optimism',
    137: 'matic',
    360: 'shape',
    8453: 'base',
    42161: 'arbitrum',
    7777777: 'zora',
}


# ============================================================================
# 7. MARKETPLACE API
# ============================================================================

OPENSEA_API_URL: Final[str] = 'https://api.opensea.io'

# Seaport 1.6 protocol address, used in order and cancel endpoints
SEAPORT_ADDRESS: Final[str] = '0x0000000000000068F116a894984e2DB1123eB395'

# Request timeout for API calls (seconds)
API_TIMEOUT_SEC: Final[int] = 30

# Marketplace rate limits (requests per second)
OPENSEA_READ_RATE_PER_SEC: Final[float] = 2.0
OPENSEA_READ_BURST: Final[int] = 4
OPENSEA_WRITE_RATE_PER_SEC: Final[float] = 0.5
OPENSEA_WRITE_BURST: Final[int] = 2


# ============================================================================
# 8. OPERATIONAL PARAMETERS
# ============================================================================

# Default polling interval for every loop (seconds)
DEFAULT_POLLING_INTERVAL_SEC: Final[int] = 60

# Backoff after a loop iteration fails as a whole (seconds)
ERROR_BACKOFF_SEC: Final[int] = 5

# Default target file
DEFAULT_COLLECTION_PATH: Final[str] = 'collection.json'


# ============================================================================
# 9. LOGGING CONFIGURATION
# ============================================================================

# Logging level: 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'
LOG_LEVEL: Final[str] = 'INFO'

# Path to log file (ensure write permissions)
LOG_FILE_PATH: Final[str] = 'logs/market_maker.log'

# Maximum log file size in bytes before rotation (50 MB)
MAX_LOG_FILE_SIZE: Final[int] = 50 * 1024 * 1024

# Number of rotated log files to keep
LOG_BACKUP_COUNT: Final[int] = 10

# Enable JSON structured logging in the log file
STRUCTURED_LOGGING: Final[bool] = True

# Prefix for every log line describing an action that was not performed
DRY_RUN_PREFIX: Final[str] = '[DRY-RUN]'
