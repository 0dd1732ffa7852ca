"""
Test Configuration Module
Provides fixtures and shared test utilities
"""

import pytest
import sys
import os
from typing import Any, Dict, List, Optional

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from config.targets import TrackedListingTarget, TrackedOfferTarget
from core.marketplace import MarketplaceClient
from core.models import CompetingOrder, OfferScope, OrderSide, Page, Trait
from core.networks import ChainClients, ClientRegistry


OWNER = '0x1111111111111111111111111111111111111111'
COMPETITOR = '0x2222222222222222222222222222222222222222'
TOKEN_ADDRESS = '0x3333333333333333333333333333333333333333'
ETH = 10 ** 18
NOW = 1_700_000_000


def make_order(
    price_total: int,
    owner: str = COMPETITOR,
    currency: str = 'ETH',
    quantity: int = 1,
    side: OrderSide = OrderSide.LISTING,
    scope: OfferScope = OfferScope.SINGLE,
    token_ids=('1',),
    trait: Optional[Trait] = None,
    end_time: int = NOW + 3600,
    order_hash: Optional[str] = None,
) -> CompetingOrder:
    """Build a CompetingOrder with sensible defaults"""
    return CompetingOrder(
        order_hash=order_hash if order_hash is not None else f"0xorder{price_total}",
        owner_address=owner,
        price_total=price_total,
        price_currency=currency,
        quantity=quantity,
        end_time=end_time,
        start_time=NOW - 60,
        side=side,
        scope=scope,
        token_ids=tuple(token_ids),
        trait=trait,
    )


def make_offer(price_total: int, **kwargs) -> CompetingOrder:
    kwargs.setdefault('currency', 'WETH')
    return make_order(price_total, side=OrderSide.OFFER, **kwargs)


def pages_of(*chunks) -> List[Page]:
    """Pages chained by cursors "1", "2", ..."""
    pages = []
    for index, chunk in enumerate(chunks):
        next_cursor = str(index + 1) if index + 1 < len(chunks) else None
        pages.append(Page(orders=tuple(chunk), next_cursor=next_cursor))
    return pages


class FakeMarketplace(MarketplaceClient):
    """
    In-memory marketplace.

    Feeds are lists of pages served by cursor index; every call is recorded
    in `calls` as (method, kwargs). Exceptions queued in `errors[method]` are
    raised, one per call, before the call succeeds.
    """

    def __init__(self, chain: str = 'ethereum'):
        self.chain = chain
        self.collection_pages: Dict[OrderSide, List[Page]] = {OrderSide.LISTING: [], OrderSide.OFFER: []}
        self.token_pages: Dict[OrderSide, List[Page]] = {OrderSide.LISTING: [], OrderSide.OFFER: []}
        self.errors: Dict[str, List[Exception]] = {}
        self.calls: List[tuple] = []
        self.closed = False

    def set_collection_orders(self, side: OrderSide, *chunks) -> None:
        self.collection_pages[side] = pages_of(*chunks)

    def set_token_orders(self, side: OrderSide, *chunks) -> None:
        self.token_pages[side] = pages_of(*chunks)

    def fail(self, method: str, *errors: Exception) -> None:
        self.errors.setdefault(method, []).extend(errors)

    def calls_to(self, method: str) -> List[Dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def _record(self, method: str, **kwargs) -> None:
        self.calls.append((method, kwargs))
        queued = self.errors.get(method)
        if queued:
            raise queued.pop(0)

    @staticmethod
    def _serve(pages: List[Page], cursor: Optional[str]) -> Page:
        if not pages:
            return Page(orders=())
        return pages[0 if cursor is None else int(cursor)]

    async def get_orders_page(self, side, collection_slug, cursor=None, page_size=100):
        self._record('get_orders_page', side=side, collection_slug=collection_slug, cursor=cursor)
        return self._serve(self.collection_pages[side], cursor)

    async def get_token_orders_page(self, side, token_address, token_id, cursor=None, page_size=50):
        self._record(
            'get_token_orders_page', side=side, token_address=token_address, token_id=token_id, cursor=cursor
        )
        return self._serve(self.token_pages[side], cursor)

    async def create_listing(self, token_address, token_id, amount, expiration_time, account_address):
        self._record(
            'create_listing', token_address=token_address, token_id=token_id, amount=amount,
            expiration_time=expiration_time, account_address=account_address,
        )
        return {'order_hash': f"0xlisting{len(self.calls)}"}

    async def create_offer(self, token_address, token_id, amount, expiration_time, account_address,
                           payment_token_address):
        self._record(
            'create_offer', token_address=token_address, token_id=token_id, amount=amount,
            expiration_time=expiration_time, account_address=account_address,
            payment_token_address=payment_token_address,
        )
        return {'order_hash': f"0xoffer{len(self.calls)}"}

    async def create_collection_offer(self, collection_slug, amount, quantity, expiration_time,
                                      account_address, payment_token_address, trait=None):
        self._record(
            'create_collection_offer', collection_slug=collection_slug, amount=amount, quantity=quantity,
            expiration_time=expiration_time, account_address=account_address,
            payment_token_address=payment_token_address, trait=trait,
        )
        return {'order': {'order_hash': f"0xcollection{len(self.calls)}"}}

    async def cancel_order(self, order_hash, account_address):
        self._record('cancel_order', order_hash=order_hash, account_address=account_address)
        return {'cancelled': [order_hash]}

    async def cancel_orders(self, order_hashes, account_address):
        self._record('cancel_orders', order_hashes=list(order_hashes), account_address=account_address)
        return {'cancelled': list(order_hashes)}

    async def close(self):
        self.closed = True


@pytest.fixture
def marketplace():
    """Fake marketplace for the ethereum chain"""
    return FakeMarketplace()


@pytest.fixture
def registry(marketplace):
    """Registry with a single ethereum chain backed by the fake marketplace"""
    return ClientRegistry({
        'ethereum': ChainClients(
            label='ethereum',
            chain_id=1,
            marketplace_chain='ethereum',
            marketplace=marketplace,
        )
    })


@pytest.fixture
def listing_target():
    """Token 1 listed between 0.3 and 0.5 ETH"""
    return TrackedListingTarget(
        chain='ethereum',
        collection_slug='test-collection',
        token_address=TOKEN_ADDRESS,
        token_id='1',
        default_price=5 * ETH // 10,
        min_price=3 * ETH // 10,
    )


@pytest.fixture
def single_offer_target():
    """Single token offer between 0.1 and 0.2 ETH"""
    return TrackedOfferTarget(
        chain='ethereum',
        collection_slug='test-collection',
        token_address=TOKEN_ADDRESS,
        token_id='1',
        default_price=ETH // 10,
        max_price=2 * ETH // 10,
    )


@pytest.fixture
def collection_offer_target():
    """Collection offer for 3 items between 0.1 and 0.2 ETH each"""
    return TrackedOfferTarget(
        chain='ethereum',
        collection_slug='test-collection',
        token_address=TOKEN_ADDRESS,
        default_price=ETH // 10,
        max_price=2 * ETH // 10,
        quantity=3,
    )


@pytest.fixture
def trait_offer_target():
    """Trait offer for Eyes = Blue between 0.1 and 0.2 ETH"""
    return TrackedOfferTarget(
        chain='ethereum',
        collection_slug='test-collection',
        token_address=TOKEN_ADDRESS,
        trait=Trait('Eyes', 'Blue'),
        default_price=ETH // 10,
        max_price=2 * ETH // 10,
    )
