"""
Marketplace Capability

Abstract boundary between the pricing engines and a concrete marketplace:
paged order queries, order submission and cancellation. The engines only
ever talk to MarketplaceClient, so tests run against an in-memory fake and
the OpenSea implementation lives in core.opensea_client.

Order signing is delegated to an OrderSigner loaded at start-up
(ORDER_SIGNER=module:Class); the bot itself builds no signatures.
"""

import importlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.models import OrderSide, Page, Trait
from utils.exceptions import ConfigurationError
from config.constants import DEFAULT_PAGE_SIZE, SINGLE_TOKEN_PAGE_SIZE


class MarketplaceClient(ABC):
    """
    Per-chain marketplace operations used by the bot.

    Amounts are integers in wei; `amount` is always the TOTAL order price
    (per-item price times quantity for collection and trait offers).
    """

    chain: str

    # ========================================================================
    # QUERIES
    # ========================================================================

    @abstractmethod
    async def get_orders_page(
        self,
        side: OrderSide,
        collection_slug: str,
        cursor: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE
    ) -> Page:
        """One page of every live listing or offer in a collection, unsorted."""

    @abstractmethod
    async def get_token_orders_page(
        self,
        side: OrderSide,
        token_address: str,
        token_id: str,
        cursor: Optional[str] = None,
        page_size: int = SINGLE_TOKEN_PAGE_SIZE
    ) -> Page:
        """
        One page of orders for a single token, sorted best price first.

        Raises:
            APIError: With the server's "Sorting by price is only supported for
                      a single token" message when the token id does not
                      resolve to exactly one token
        """

    # ========================================================================
    # SUBMISSION
    # ========================================================================

    @abstractmethod
    async def create_listing(
        self,
        token_address: str,
        token_id: str,
        amount: int,
        expiration_time: int,
        account_address: str
    ) -> Dict[str, Any]:
        """Post a listing. Returns the marketplace response (contains the order hash)."""

    @abstractmethod
    async def create_offer(
        self,
        token_address: str,
        token_id: str,
        amount: int,
        expiration_time: int,
        account_address: str,
        payment_token_address: str
    ) -> Dict[str, Any]:
        """Post an offer on one token."""

    @abstractmethod
    async def create_collection_offer(
        self,
        collection_slug: str,
        amount: int,
        quantity: int,
        expiration_time: int,
        account_address: str,
        payment_token_address: str,
        trait: Optional[Trait] = None
    ) -> Dict[str, Any]:
        """Post a collection offer, or a trait offer when `trait` is given."""

    @abstractmethod
    async def cancel_order(self, order_hash: str, account_address: str) -> Dict[str, Any]:
        """Cancel one order."""

    @abstractmethod
    async def cancel_orders(self, order_hashes: List[str], account_address: str) -> Dict[str, Any]:
        """Cancel several orders in one request."""

    async def close(self) -> None:
        """Release network resources."""


# ============================================================================
# ORDER SIGNING BOUNDARY
# ============================================================================

@dataclass(frozen=True)
class OrderRequest:
    """
    Everything a signer needs to produce Seaport protocol data.

    `build` carries marketplace-provided order fragments (consideration and
    criteria for collection offers) when the marketplace supplies them.
    """
    chain: str
    side: OrderSide
    account_address: str
    amount: int
    expiration_time: int
    payment_token_address: str
    token_address: Optional[str] = None
    token_id: Optional[str] = None
    collection_slug: Optional[str] = None
    quantity: int = 1
    trait: Optional[Trait] = None
    build: Dict[str, Any] = field(default_factory=dict)


class OrderSigner(ABC):
    """Produces signed protocol data ({'parameters': ..., 'signature': ...}) for an order."""

    @abstractmethod
    async def sign_order(self, request: OrderRequest) -> Dict[str, Any]:
        ...

    async def sign_cancellation(self, chain: str, order_hash: str, account_address: str) -> Optional[str]:
        """Signature authorizing an off-chain cancel. None lets the API key authorize it."""
        return None


def load_order_signer(import_path: str, **kwargs) -> OrderSigner:
    """
    Instantiate an OrderSigner from a "package.module:ClassName" reference.

    Raises:
        ConfigurationError: If the reference is malformed, cannot be imported
                            or does not name an OrderSigner
    """
    module_name, _, class_name = (import_path or '').partition(':')
    if not module_name or not class_name:
        raise ConfigurationError(
            f"ORDER_SIGNER must look like 'package.module:ClassName', got {import_path!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import order signer module {module_name!r}", original_error=e)

    signer_cls = getattr(module, class_name, None)
    if signer_cls is None or not isinstance(signer_cls, type) or not issubclass(signer_cls, OrderSigner):
        raise ConfigurationError(f"{import_path!r} is not an OrderSigner subclass")
    return signer_cls(**kwargs)
