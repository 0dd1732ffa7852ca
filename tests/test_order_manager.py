"""
Tests for order submission
"""

import logging

import pytest
from unittest.mock import AsyncMock, patch

from conftest import ETH, OWNER
from config.constants import MAINNET_WETH_ADDRESS, MIN_EXPIRATION_SEC
from core.order_manager import OrderManager, extract_order_hash, is_precision_error
from utils.exceptions import APIError, OrderRejectionError, PricePrecisionError, RateLimitError


FAR_FUTURE = 4_000_000_000
BP = 10 ** 14


@pytest.fixture
def manager(marketplace):
    return OrderManager(marketplace, OWNER)


class TestHelpers:
    def test_extract_order_hash(self):
        assert extract_order_hash({'order_hash': '0xa'}) == '0xa'
        assert extract_order_hash({'orderHash': '0xb'}) == '0xb'
        assert extract_order_hash({'order': {'order_hash': '0xc'}}) == '0xc'
        assert extract_order_hash({}) is None
        assert extract_order_hash(None) is None

    def test_is_precision_error(self):
        assert is_precision_error(APIError('Invalid price: only 3 decimals allowed'))
        assert not is_precision_error(APIError('Insufficient balance'))

    def test_min_expiration_floor(self):
        assert OrderManager.enforce_min_expiration(100, now=1000) == 1000 + MIN_EXPIRATION_SEC
        assert OrderManager.enforce_min_expiration(5000, now=1000) == 5000

    def test_requires_marketplace(self):
        with pytest.raises(ValueError):
            OrderManager(None, OWNER)


@pytest.mark.asyncio
class TestListings:
    async def test_create_listing(self, manager, marketplace, listing_target):
        order = await manager.create_listing(listing_target, 4 * ETH // 10, FAR_FUTURE)

        [call] = marketplace.calls_to('create_listing')
        assert call['amount'] == 4 * ETH // 10
        assert call['token_id'] == '1'
        assert order.order_hash is not None
        assert order.total_price == 4 * ETH // 10

    async def test_expiration_floor_applied(self, manager, marketplace, listing_target):
        with patch('core.order_manager.now_seconds', return_value=1000):
            await manager.create_listing(listing_target, ETH, 1001)

        [call] = marketplace.calls_to('create_listing')
        assert call['expiration_time'] == 1000 + MIN_EXPIRATION_SEC

    async def test_empty_response_rejected(self, manager, marketplace, listing_target):
        marketplace.create_listing = AsyncMock(return_value={})

        with pytest.raises(OrderRejectionError):
            await manager.create_listing(listing_target, ETH, FAR_FUTURE)

    async def test_rate_limit_retried(self, manager, marketplace, listing_target):
        marketplace.fail('create_listing', RateLimitError('Too many requests', retry_after=1))

        with patch('utils.helpers.asyncio.sleep', new=AsyncMock()):
            order = await manager.create_listing(listing_target, ETH, FAR_FUTURE)

        assert order is not None
        assert len(marketplace.calls_to('create_listing')) == 2

    async def test_dry_run(self, marketplace, listing_target, caplog):
        manager = OrderManager(marketplace, OWNER, dry_run=True)

        with caplog.at_level(logging.INFO, logger='core.order_manager'):
            assert await manager.create_listing(listing_target, ETH, FAR_FUTURE) is None

        assert marketplace.calls == []
        assert f"[DRY-RUN] Would create listing for {listing_target.token_address}:1 at 1 ETH" in caplog.text


@pytest.mark.asyncio
class TestOffers:
    async def test_single_offer(self, manager, marketplace, single_offer_target):
        order = await manager.create_offer(single_offer_target, 1500 * BP, FAR_FUTURE, MAINNET_WETH_ADDRESS)

        [call] = marketplace.calls_to('create_offer')
        assert call['amount'] == 1500 * BP
        assert call['payment_token_address'] == MAINNET_WETH_ADDRESS
        assert order.quantity == 1

    async def test_collection_offer_total(self, manager, marketplace, collection_offer_target):
        order = await manager.create_offer(collection_offer_target, 1500 * BP, FAR_FUTURE, MAINNET_WETH_ADDRESS)

        [call] = marketplace.calls_to('create_collection_offer')
        assert call['amount'] == 4500 * BP
        assert call['quantity'] == 3
        assert order.order_hash.startswith('0xcollection')

    async def test_three_decimal_fallback(self, manager, marketplace, collection_offer_target):
        marketplace.fail('create_collection_offer', APIError('Invalid price: only 3 decimals allowed'))

        order = await manager.create_offer(collection_offer_target, 1234 * BP, FAR_FUTURE, MAINNET_WETH_ADDRESS)

        first, second = marketplace.calls_to('create_collection_offer')
        assert first['amount'] == 1234 * BP * 3
        assert second['amount'] == 1240 * BP * 3
        assert order.price_per_item == 1240 * BP
        assert order.total_price == 1240 * BP * 3

    async def test_second_precision_rejection(self, manager, marketplace, collection_offer_target):
        marketplace.fail(
            'create_collection_offer',
            APIError('Invalid price: only 3 decimals allowed'),
            APIError('Invalid price: only 3 decimals allowed'),
        )

        with pytest.raises(PricePrecisionError):
            await manager.create_offer(collection_offer_target, 1234 * BP, FAR_FUTURE, MAINNET_WETH_ADDRESS)
        assert len(marketplace.calls_to('create_collection_offer')) == 2

    async def test_other_rejection_propagates(self, manager, marketplace, collection_offer_target):
        marketplace.fail('create_collection_offer', APIError('Insufficient WETH balance'))

        with pytest.raises(APIError, match='Insufficient'):
            await manager.create_offer(collection_offer_target, 1234 * BP, FAR_FUTURE, MAINNET_WETH_ADDRESS)
        assert len(marketplace.calls_to('create_collection_offer')) == 1

    async def test_dry_run(self, marketplace, trait_offer_target, caplog):
        manager = OrderManager(marketplace, OWNER, dry_run=True)

        with caplog.at_level(logging.INFO, logger='core.order_manager'):
            assert await manager.create_offer(trait_offer_target, 1234 * BP, FAR_FUTURE, MAINNET_WETH_ADDRESS) is None

        assert marketplace.calls == []
        assert (
            "[DRY-RUN] Would create trait offer for test-collection (Eyes: Blue) at 0.1234 WETH per item"
            in caplog.text
        )


@pytest.mark.asyncio
class TestCancellation:
    async def test_cancel_orders_single_call(self, manager, marketplace):
        cancelled = await manager.cancel_orders(['0xa', '0xb'])

        assert cancelled == ['0xa', '0xb']
        [call] = marketplace.calls_to('cancel_orders')
        assert call['order_hashes'] == ['0xa', '0xb']
        assert call['account_address'] == OWNER

    async def test_cancel_orders_empty(self, manager, marketplace):
        assert await manager.cancel_orders([]) == []
        assert marketplace.calls == []

    async def test_cancel_orders_dry_run(self, marketplace, caplog):
        manager = OrderManager(marketplace, OWNER, dry_run=True)

        with caplog.at_level(logging.INFO, logger='core.order_manager'):
            assert await manager.cancel_orders(['0xa', '0xb']) == []

        assert marketplace.calls == []
        assert "[DRY-RUN] Would cancel 2 order(s): 0xa, 0xb" in caplog.text

