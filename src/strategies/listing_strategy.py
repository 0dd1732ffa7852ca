"""
Listing Strategy

Keeps each tracked token listed as the cheapest listing without going below
its minimum price.

Decision per token:
- no competing listing: list at the default price for 5 months
- competitor is the owner: nothing to do
- competitor not priced in ETH: skip
- competitor at or above the minimum: undercut it by 1000 wei (after
  truncating to a multiple of 1000 wei), capped at the default price, and
  reuse its expiration
- competitor below the minimum: list at the minimum for 12 hours, unless the
  owner is already listed at or below it
"""

from typing import Optional

from config.constants import (
    DEFAULT_EXPIRATION_SEC,
    FLOOR_EXPIRATION_SEC,
    LISTING_UNDERCUT_WEI,
)
from config.targets import TrackedListingTarget
from core.aggregator import ScopeFilter
from core.models import CompetingOrder, OrderSide, PriceDecision, SubmittedOrder
from core.order_queries import get_best_collection_order, get_single_best_order
from core.payment_tokens import is_eth_equivalent
from core.pricing import now_seconds, round_down_to_increment
from strategies.base_strategy import BaseStrategy
from utils.helpers import format_eth, same_address
from utils.logger import get_logger


logger = get_logger(__name__)


def undercut_price(competing_price: int, default_price: int) -> int:
    """floor(p / 1000) * 1000 - 1000, never above the default price."""
    undercut = round_down_to_increment(competing_price, LISTING_UNDERCUT_WEI) - LISTING_UNDERCUT_WEI
    return min(undercut, default_price)


class ListingStrategy(BaseStrategy):
    """Reprices the owner's listings against the cheapest competing listing"""

    def _marketplace(self, target: TrackedListingTarget):
        return self.registry.get(target.chain).marketplace

    async def find_best_listing(self, target: TrackedListingTarget) -> Optional[CompetingOrder]:
        marketplace = self._marketplace(target)
        if target.compare_across_collection:
            return await get_best_collection_order(marketplace, OrderSide.LISTING, target.collection_slug)
        return await get_single_best_order(
            marketplace,
            OrderSide.LISTING,
            target.collection_slug,
            target.token_address,
            target.token_id,
        )

    async def find_own_listing(self, target: TrackedListingTarget) -> Optional[CompetingOrder]:
        return await get_best_collection_order(
            self._marketplace(target),
            OrderSide.LISTING,
            target.collection_slug,
            ScopeFilter(token_id=target.token_id, offerer=self.owner_address),
        )

    async def decide(
        self,
        target: TrackedListingTarget,
        best: Optional[CompetingOrder],
        now: Optional[int] = None
    ) -> PriceDecision:
        """
        Decide the listing price for a target given the best competing listing.

        Args:
            target: Listing target
            best: Cheapest competing listing, None when there is none
            now: Current unix time (defaults to the clock)

        Returns:
            PriceDecision to submit or skip
        """
        now = now_seconds() if now is None else now
        label = target.describe()

        if best is None:
            logger.info(f"Did not find a listing for {label}")
            return PriceDecision.place(
                target.default_price, now + DEFAULT_EXPIRATION_SEC, 'no competing listing'
            )

        if not is_eth_equivalent(best.price_currency):
            logger.error(f"Best listing for {label} is not in ETH ({best.price_currency}). Skipping...")
            return PriceDecision.skip(f"unsupported currency {best.price_currency}")

        price = best.price_per_item
        if same_address(best.owner_address, self.owner_address):
            logger.info(
                f"Already have the lowest listing for {label} at price {format_eth(price)} ETH. Skipping..."
            )
            return PriceDecision.skip('owner holds the best listing')

        logger.info(f"Found best listing for {label} at {format_eth(price)} ETH")

        if price >= target.min_price:
            new_price = undercut_price(price, target.default_price)
            if new_price <= 0:
                logger.warning(
                    f"Undercutting {format_eth(price)} ETH for {label} leaves no positive price. Skipping..."
                )
                return PriceDecision.skip('undercut price not positive')
            return PriceDecision.place(new_price, best.end_time, 'undercut competing listing')

        own = await self.find_own_listing(target)
        if own is not None and is_eth_equivalent(own.price_currency) and own.price_per_item <= target.min_price:
            logger.info(
                f"Our {label} is already listed at price {format_eth(own.price_per_item)} ETH which is "
                f"equal or lower than min price {format_eth(target.min_price)} ETH. Skipping..."
            )
            return PriceDecision.skip('owner already listed at or below min price')

        return PriceDecision.place(target.min_price, now + FLOOR_EXPIRATION_SEC, 'market below min price')

    async def evaluate_target(self, target: TrackedListingTarget) -> Optional[SubmittedOrder]:
        logger.debug(f"Checking {target.describe()} ...")
        best = await self.find_best_listing(target)
        decision = await self.decide(target, best)
        if not decision.submit:
            return None

        logger.info(f"Listing {target.describe()} at {format_eth(decision.price)} ETH ({decision.reason}) ...")
        return await self.order_manager(target.chain).create_listing(
            target, decision.price, decision.expiration_time
        )
