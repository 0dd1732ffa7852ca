"""
Order and Target Value Objects

Immutable records shared by the query, pricing and strategy layers:
- OfferScope and its inference from the optional tokenId / trait fields
- CompetingOrder, the uniform shape of a listing or offer read from the marketplace
- Page, one page of an order feed
- SubmittedOrder, what a successful submission produced

Every record here is built fresh per polling cycle and never mutated.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class OrderSide(str, Enum):
    """Which side of the book an order sits on"""
    LISTING = 'listing'
    OFFER = 'offer'


class OfferScope(str, Enum):
    """What an offer can be redeemed against"""
    SINGLE = 'single'
    COLLECTION = 'collection'
    TRAIT = 'trait'


@dataclass(frozen=True)
class Trait:
    """A trait criterion such as Background = Blue"""
    trait_type: str
    value: str

    def matches(self, other: Optional['Trait']) -> bool:
        return other is not None and other.trait_type == self.trait_type and other.value == self.value

    def __str__(self) -> str:
        return f"{self.trait_type}={self.value}"


def infer_offer_scope(token_id: Optional[str], trait: Optional[Trait]) -> OfferScope:
    """
    Derive the scope of an offer target from its optional fields.

    Args:
        token_id: Token the offer targets, if any
        trait: Trait the offer targets, if any

    Returns:
        SINGLE when a token id is set, TRAIT when a trait is set, else COLLECTION

    Raises:
        ValueError: If both token_id and trait are set
    """
    if token_id is not None and trait is not None:
        raise ValueError("tokenId and trait are mutually exclusive")
    if token_id is not None:
        return OfferScope.SINGLE
    if trait is not None:
        return OfferScope.TRAIT
    return OfferScope.COLLECTION


@dataclass(frozen=True)
class CompetingOrder:
    """
    A listing or offer read from the marketplace.

    price_total is the full order price in the smallest currency unit and
    quantity the number of items it covers; price_per_item is the key every
    comparison uses.
    """
    order_hash: Optional[str]
    owner_address: str
    price_total: int
    price_currency: str
    quantity: int
    end_time: int
    start_time: int
    side: OrderSide
    scope: OfferScope = OfferScope.SINGLE
    token_ids: Tuple[str, ...] = ()
    trait: Optional[Trait] = None
    protocol_address: Optional[str] = None
    protocol_data: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        if self.quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {self.quantity}")
        if self.price_total < 0:
            raise ValueError(f"price_total must be >= 0, got {self.price_total}")

    @property
    def price_per_item(self) -> int:
        return self.price_total // self.quantity

    def covers_token(self, token_id: str) -> bool:
        return str(token_id) in self.token_ids


@dataclass(frozen=True)
class Page:
    """One page of an order feed. next_cursor is None on the last page."""
    orders: Tuple[CompetingOrder, ...]
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class PriceDecision:
    """
    Outcome of a pricing engine for one target: submit `price` (per item, wei)
    expiring at `expiration_time`, or leave the market alone.
    """
    submit: bool
    reason: str
    price: Optional[int] = None
    expiration_time: Optional[int] = None

    @classmethod
    def skip(cls, reason: str) -> 'PriceDecision':
        return cls(submit=False, reason=reason)

    @classmethod
    def place(cls, price: int, expiration_time: int, reason: str) -> 'PriceDecision':
        return cls(submit=True, reason=reason, price=price, expiration_time=expiration_time)


@dataclass(frozen=True)
class SubmittedOrder:
    """Result of a listing or offer submission"""
    order_hash: Optional[str]
    price_per_item: int
    quantity: int
    total_price: int
    expiration_time: int
    response: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)
