"""
Tests for the listing pricing engine
"""

import logging

import pytest

from conftest import ETH, NOW, OWNER, TOKEN_ADDRESS, make_order
from config.constants import DEFAULT_EXPIRATION_SEC, FLOOR_EXPIRATION_SEC
from core.models import OrderSide
from strategies.listing_strategy import ListingStrategy, undercut_price


FAR_FUTURE = 4_000_000_000


@pytest.fixture
def strategy(registry, listing_target):
    return ListingStrategy(registry, OWNER, [listing_target])


class TestUndercutPrice:
    def test_truncates_then_undercuts(self):
        assert undercut_price(123456789, 10 ** 18) == 123455000

    def test_capped_at_default(self):
        assert undercut_price(8 * ETH // 10, 5 * ETH // 10) == 5 * ETH // 10


@pytest.mark.asyncio
class TestListingDecision:
    """Test decide() branches"""

    async def test_no_competitor_lists_at_default(self, strategy, listing_target):
        decision = await strategy.decide(listing_target, None, now=NOW)

        assert decision.submit
        assert decision.price == listing_target.default_price
        assert decision.expiration_time == NOW + DEFAULT_EXPIRATION_SEC

    async def test_competitor_at_min_is_undercut(self, strategy, listing_target):
        best = make_order(listing_target.min_price, end_time=NOW + 7200)

        decision = await strategy.decide(listing_target, best, now=NOW)

        assert decision.submit
        assert decision.price == listing_target.min_price - 1000
        assert decision.expiration_time == NOW + 7200

    async def test_competitor_above_default_capped(self, strategy, listing_target):
        decision = await strategy.decide(listing_target, make_order(8 * ETH // 10), now=NOW)

        assert decision.price == listing_target.default_price

    async def test_owner_holds_best_listing(self, strategy, listing_target, marketplace):
        decision = await strategy.decide(listing_target, make_order(4 * ETH // 10, owner=OWNER.lower()), now=NOW)

        assert not decision.submit
        assert marketplace.calls == []

    async def test_non_eth_currency_skipped(self, strategy, listing_target):
        decision = await strategy.decide(listing_target, make_order(4 * ETH // 10, currency='USDC'), now=NOW)

        assert not decision.submit

    async def test_below_min_lists_at_min_for_twelve_hours(self, strategy, listing_target, marketplace):
        best = make_order(listing_target.min_price - 1)

        decision = await strategy.decide(listing_target, best, now=NOW)

        assert decision.submit
        assert decision.price == listing_target.min_price
        assert decision.expiration_time == NOW + FLOOR_EXPIRATION_SEC
        assert len(marketplace.calls_to('get_orders_page')) == 1

    async def test_below_min_with_own_listing_at_min(self, strategy, listing_target, marketplace):
        marketplace.set_collection_orders(
            OrderSide.LISTING, [make_order(listing_target.min_price, owner=OWNER)]
        )

        decision = await strategy.decide(listing_target, make_order(listing_target.min_price - 1), now=NOW)

        assert not decision.submit

    async def test_below_min_with_own_listing_above_min(self, strategy, listing_target, marketplace):
        marketplace.set_collection_orders(
            OrderSide.LISTING, [make_order(listing_target.default_price, owner=OWNER)]
        )

        decision = await strategy.decide(listing_target, make_order(listing_target.min_price - 1), now=NOW)

        assert decision.submit
        assert decision.price == listing_target.min_price


@pytest.mark.asyncio
class TestListingEvaluation:
    """Test the full read-decide-submit cycle"""

    async def test_undercuts_competitor(self, strategy, listing_target, marketplace):
        marketplace.set_token_orders(OrderSide.LISTING, [make_order(4 * ETH // 10, end_time=FAR_FUTURE)])

        order = await strategy.evaluate_target(listing_target)

        [call] = marketplace.calls_to('create_listing')
        assert call['amount'] == 4 * ETH // 10 - 1000
        assert call['expiration_time'] == FAR_FUTURE
        assert call['token_address'] == TOKEN_ADDRESS
        assert call['account_address'] == OWNER
        assert order.price_per_item == 4 * ETH // 10 - 1000

    async def test_owner_already_cheapest(self, strategy, listing_target, marketplace):
        marketplace.set_token_orders(OrderSide.LISTING, [make_order(4 * ETH // 10, owner=OWNER)])

        assert await strategy.evaluate_target(listing_target) is None
        assert marketplace.calls_to('create_listing') == []

    async def test_compare_across_collection(self, registry, marketplace):
        from config.targets import TrackedListingTarget

        target = TrackedListingTarget(
            chain='ethereum', collection_slug='test-collection', token_address=TOKEN_ADDRESS,
            token_id='1', default_price=5 * ETH // 10, min_price=3 * ETH // 10,
            compare_across_collection=True,
        )
        marketplace.set_collection_orders(
            OrderSide.LISTING, [make_order(45 * ETH // 100, token_ids=('9',), end_time=FAR_FUTURE)]
        )

        await ListingStrategy(registry, OWNER, [target]).evaluate_target(target)

        assert marketplace.calls_to('get_token_orders_page') == []
        [call] = marketplace.calls_to('create_listing')
        assert call['amount'] == 45 * ETH // 100 - 1000

    @pytest.mark.parametrize('competing_price, logged_price', [
        (None, '0.5'),
        (4 * ETH // 10, '0.399999999999999'),
        (2 * ETH // 10, '0.3'),
    ], ids=['default', 'undercut', 'min-price'])
    async def test_dry_run_logs_instead_of_listing(
        self, registry, listing_target, marketplace, caplog, competing_price, logged_price
    ):
        if competing_price is not None:
            marketplace.set_token_orders(OrderSide.LISTING, [make_order(competing_price, end_time=FAR_FUTURE)])
        strategy = ListingStrategy(registry, OWNER, [listing_target], dry_run=True)

        with caplog.at_level(logging.INFO):
            assert await strategy.evaluate_target(listing_target) is None

        assert marketplace.calls_to('create_listing') == []
        assert (
            f"[DRY-RUN] Would create listing for {TOKEN_ADDRESS}:1 at {logged_price} ETH" in caplog.text
        )
