"""
Payment token resolution.

Offers are paid in WETH rather than native ETH, since native-currency
offers are not accepted on every chain. The WETH address comes from a
static chain-id table.
"""

from config.constants import (
    ETH_EQUIVALENT_CURRENCIES,
    ETH_PAYMENT_TOKEN,
    ETH_SYMBOL,
    MAINNET_WETH_ADDRESS,
    UNKNOWN_CURRENCY,
    WETH_ADDRESSES,
    WETH_SYMBOL,
)
from utils.exceptions import DataValidationError
from utils.logger import get_logger


logger = get_logger(__name__)


def is_eth_equivalent(currency: str) -> bool:
    return (currency or '').upper() in ETH_EQUIVALENT_CURRENCIES


def get_payment_token_address(currency: str, chain_id: int) -> str:
    """
    Contract address used to pay in `currency` on `chain_id`.

    Chains missing from the WETH table fall back to the chain-1 WETH address.

    Raises:
        DataValidationError: If the currency is neither ETH nor WETH
    """
    normalized = (currency or '').upper()
    if normalized == ETH_SYMBOL:
        return ETH_PAYMENT_TOKEN
    if normalized == WETH_SYMBOL:
        address = WETH_ADDRESSES.get(chain_id)
        if address is None:
            # Likely wrong for chains with their own WETH deployment
            logger.warning(
                f"No WETH address known for chain {chain_id}, using the chain-1 address {MAINNET_WETH_ADDRESS}"
            )
            return MAINNET_WETH_ADDRESS
        return address
    raise DataValidationError(
        f"Unsupported payment token: {currency}",
        error_code='UNSUPPORTED_PAYMENT_TOKEN'
    )


def get_currency_from_address(address: str) -> str:
    """Currency symbol for a payment token address: ETH, WETH or UNKNOWN."""
    normalized = (address or '').lower()
    if normalized == ETH_PAYMENT_TOKEN.lower():
        return ETH_SYMBOL
    if any(normalized == weth.lower() for weth in WETH_ADDRESSES.values()):
        return WETH_SYMBOL
    return UNKNOWN_CURRENCY
