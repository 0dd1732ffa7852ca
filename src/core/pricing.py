"""
Price and Quantity Utilities

Extract a normalized per-item price and quantity from Seaport order
parameters, independent of whether the order covers a single token, a whole
collection or a trait subset.

Every amount is an integer in the smallest unit. Order amounts arrive as
decimal strings and can exceed 2**53, so nothing here goes through float.
"""

import time
from typing import Any, Dict, Iterable, Mapping, Optional

from core.models import OrderSide
from config.constants import PRICE_INCREMENT_3_DECIMALS, PRICE_INCREMENT_4_DECIMALS


# Seaport item types
ITEM_TYPE_NATIVE = 0
ITEM_TYPE_ERC20 = 1
ITEM_TYPE_ERC721 = 2
ITEM_TYPE_ERC1155 = 3
ITEM_TYPE_ERC721_WITH_CRITERIA = 4
ITEM_TYPE_ERC1155_WITH_CRITERIA = 5

NFT_ITEM_TYPES = frozenset({ITEM_TYPE_ERC721, ITEM_TYPE_ERC1155})
CRITERIA_ITEM_TYPES = frozenset({ITEM_TYPE_ERC721_WITH_CRITERIA, ITEM_TYPE_ERC1155_WITH_CRITERIA})
CURRENCY_ITEM_TYPES = frozenset({ITEM_TYPE_NATIVE, ITEM_TYPE_ERC20})


def to_int(value: Any, default: int = 0) -> int:
    """Parse an integer amount that may arrive as str, int or None."""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValueError(f"Not an amount: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith('0x'):
        return int(text, 16)
    return int(text)


def _item_type(item: Mapping[str, Any]) -> int:
    return to_int(item.get('itemType'), default=-1)


def _items(parameters: Optional[Mapping[str, Any]], key: str) -> Iterable[Mapping[str, Any]]:
    if not parameters:
        return ()
    return parameters.get(key) or ()


def sum_offer_end_amounts(parameters: Optional[Mapping[str, Any]]) -> int:
    """Sum the endAmount of every item on the offer side of the order."""
    return sum(to_int(item.get('endAmount')) for item in _items(parameters, 'offer'))


def get_order_quantity(parameters: Optional[Mapping[str, Any]]) -> int:
    """
    Number of items an order covers, read from its consideration.

    A criteria item (collection or trait offer) carries the quantity in its
    endAmount, or startAmount when endAmount is missing. Otherwise the
    endAmounts of the NFT consideration items are summed.

    Returns:
        Quantity, 1 when nothing in the consideration describes one
    """
    consideration = list(_items(parameters, 'consideration'))

    for item in consideration:
        if _item_type(item) in CRITERIA_ITEM_TYPES:
            quantity = to_int(item.get('endAmount')) or to_int(item.get('startAmount'))
            return quantity or 1

    quantity = 0
    for item in consideration:
        if _item_type(item) in NFT_ITEM_TYPES:
            quantity += to_int(item.get('endAmount')) or to_int(item.get('startAmount')) or 1
    return quantity or 1


def get_listing_quantity(parameters: Optional[Mapping[str, Any]]) -> int:
    """Number of tokens a listing sells: the end amounts on its offer side."""
    return sum_offer_end_amounts(parameters) or 1


def get_item_quantity(parameters: Optional[Mapping[str, Any]], side: OrderSide) -> int:
    """Quantity for either side of the book."""
    if side is OrderSide.LISTING:
        return get_listing_quantity(parameters)
    return get_order_quantity(parameters)


def get_price_per_item(price_total: int, parameters: Optional[Mapping[str, Any]], side: OrderSide) -> int:
    """
    Per-item price of an order, floor-divided.

    Args:
        price_total: Full order price in the smallest unit
        parameters: Seaport order parameters
        side: LISTING divides by the tokens on the offer side, OFFER divides
              by the quantity in the consideration

    Returns:
        Non-negative per-item price
    """
    return max(price_total, 0) // get_item_quantity(parameters, side)


def get_currency_token(parameters: Optional[Mapping[str, Any]], side: OrderSide) -> Optional[Dict[str, Any]]:
    """
    The first currency item of an order.

    Listings are paid in their consideration; offers pay with their offer side.
    """
    key = 'consideration' if side is OrderSide.LISTING else 'offer'
    for item in _items(parameters, key):
        if _item_type(item) in CURRENCY_ITEM_TYPES:
            return dict(item)
    return None


# ============================================================================
# ROUNDING
# ============================================================================

def round_down_to_increment(amount: int, increment: int) -> int:
    return (amount // increment) * increment


def round_up_to_increment(amount: int, increment: int) -> int:
    return -(-amount // increment) * increment


def round_down_to_four_decimals(amount: int) -> int:
    """Truncate a wei amount to 0.0001 ETH."""
    return round_down_to_increment(amount, PRICE_INCREMENT_4_DECIMALS)


def round_up_to_three_decimals(amount: int) -> int:
    """Round a wei amount up to the next 0.001 ETH."""
    return round_up_to_increment(amount, PRICE_INCREMENT_3_DECIMALS)


# ============================================================================
# EXPIRATION
# ============================================================================

def now_seconds() -> int:
    return int(time.time())


def derive_expiration_time(previous_end_time: Optional[int], horizon_sec: int, now: Optional[int] = None) -> int:
    """
    Reuse a competitor's end time while it is still in the future.

    Returns:
        previous_end_time if it is later than now, else now + horizon_sec
    """
    current = now_seconds() if now is None else now
    if previous_end_time and previous_end_time > current:
        return previous_end_time
    return current + horizon_sec
