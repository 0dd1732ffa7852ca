"""
Offer Strategy

Keeps each tracked offer (single token, whole collection or trait) the
highest offer in its scope without going above its maximum price.

Decision per offer:
- no competing offer: offer the default price
- competitor is the owner: nothing to do
- competitor not priced in ETH or WETH: skip
- competitor at or below the maximum: outbid it by 0.0001 ETH, at least the
  default price
- competitor above the maximum: offer the maximum, unless the owner already
  has an offer at or above it in the same scope

Expiration reuses the competitor's end time while it is in the future, else
5 months. Offers are paid in WETH and priced per item in steps of 0.0001 ETH.
"""

from typing import Optional

from config.constants import DEFAULT_EXPIRATION_SEC, OFFER_INCREMENT_WEI, WETH_SYMBOL
from config.targets import TrackedOfferTarget
from core.aggregator import ScopeFilter
from core.models import CompetingOrder, OfferScope, OrderSide, PriceDecision, SubmittedOrder
from core.order_queries import get_best_collection_order, get_single_best_order
from core.payment_tokens import get_payment_token_address, is_eth_equivalent
from core.pricing import derive_expiration_time, now_seconds, round_down_to_four_decimals
from strategies.base_strategy import BaseStrategy
from utils.helpers import format_eth, same_address
from utils.logger import get_logger


logger = get_logger(__name__)


def outbid_price(competing_price: int, default_price: int) -> int:
    """Competing price plus one increment, never below the default price."""
    return max(competing_price + OFFER_INCREMENT_WEI, default_price)


def competitor_filter(target: TrackedOfferTarget) -> ScopeFilter:
    """Which offers compete with the target. Collection offers compete with every offer."""
    if target.scope is OfferScope.TRAIT:
        return ScopeFilter(trait=target.trait)
    return ScopeFilter()


def own_offer_filter(target: TrackedOfferTarget, owner_address: str) -> ScopeFilter:
    """The owner's offers in exactly the target's scope."""
    if target.scope is OfferScope.SINGLE:
        return ScopeFilter(token_id=target.token_id, offerer=owner_address, scope=OfferScope.SINGLE)
    if target.scope is OfferScope.TRAIT:
        return ScopeFilter(trait=target.trait, offerer=owner_address, scope=OfferScope.TRAIT)
    return ScopeFilter(offerer=owner_address, scope=OfferScope.COLLECTION)


class OfferStrategy(BaseStrategy):
    """Reprices the owner's offers against the highest competing offer"""

    def _marketplace(self, target: TrackedOfferTarget):
        return self.registry.get(target.chain).marketplace

    async def find_best_offer(self, target: TrackedOfferTarget) -> Optional[CompetingOrder]:
        marketplace = self._marketplace(target)
        if target.scope is OfferScope.SINGLE and not target.compare_across_collection:
            return await get_single_best_order(
                marketplace,
                OrderSide.OFFER,
                target.collection_slug,
                target.token_address,
                target.token_id,
            )
        return await get_best_collection_order(
            marketplace, OrderSide.OFFER, target.collection_slug, competitor_filter(target)
        )

    async def find_own_offer(self, target: TrackedOfferTarget) -> Optional[CompetingOrder]:
        return await get_best_collection_order(
            self._marketplace(target),
            OrderSide.OFFER,
            target.collection_slug,
            own_offer_filter(target, self.owner_address),
        )

    async def decide(
        self,
        target: TrackedOfferTarget,
        best: Optional[CompetingOrder],
        now: Optional[int] = None
    ) -> PriceDecision:
        """
        Decide the per-item offer price for a target given the best competing offer.

        Args:
            target: Offer target
            best: Highest competing offer, None when there is none
            now: Current unix time (defaults to the clock)

        Returns:
            PriceDecision with the per-item price (before rounding) to submit, or a skip
        """
        now = now_seconds() if now is None else now
        label = target.describe()
        expiration = derive_expiration_time(best.end_time if best else None, DEFAULT_EXPIRATION_SEC, now)

        if best is None:
            logger.info(f"Did not find an offer for {label}")
            return PriceDecision.place(target.default_price, expiration, 'no competing offer')

        if not is_eth_equivalent(best.price_currency):
            logger.error(
                f"Best offer for {label} is not in ETH or WETH (currency: {best.price_currency}). Skipping..."
            )
            return PriceDecision.skip(f"unsupported currency {best.price_currency}")

        price = best.price_per_item
        quantity_text = f" (quantity: {best.quantity})" if target.has_quantity else ''
        if same_address(best.owner_address, self.owner_address):
            logger.info(
                f"Already have the highest offer for {label} at price {format_eth(price)} "
                f"{WETH_SYMBOL} per item{quantity_text}. Skipping..."
            )
            return PriceDecision.skip('owner holds the best offer')

        logger.info(f"Found best offer for {label} at {format_eth(price)} {best.price_currency} per item{quantity_text}")

        if price <= target.max_price:
            return PriceDecision.place(
                outbid_price(price, target.default_price), expiration, 'outbid competing offer'
            )

        own = await self.find_own_offer(target)
        if own is not None and is_eth_equivalent(own.price_currency) and own.price_per_item >= target.max_price:
            logger.info(
                f"Our {label} is already at price {format_eth(own.price_per_item)} {own.price_currency} "
                f"which is equal or higher than max price {format_eth(target.max_price)}. Skipping..."
            )
            return PriceDecision.skip('owner already offering at or above max price')

        return PriceDecision.place(target.max_price, expiration, 'market above max price')

    async def evaluate_target(self, target: TrackedOfferTarget) -> Optional[SubmittedOrder]:
        logger.debug(f"Checking {target.describe()} ...")
        best = await self.find_best_offer(target)
        decision = await self.decide(target, best)
        if not decision.submit:
            return None

        unit_price = round_down_to_four_decimals(decision.price)
        if unit_price <= 0:
            logger.warning(
                f"Price {format_eth(decision.price)} for {target.describe()} rounds to zero. Skipping..."
            )
            return None

        clients = self.registry.get(target.chain)
        payment_token = get_payment_token_address(WETH_SYMBOL, clients.chain_id)
        quantity_text = f" x {target.quantity}" if target.has_quantity else ''
        logger.info(
            f"Creating {target.describe()} at {format_eth(unit_price)} {WETH_SYMBOL} per item"
            f"{quantity_text} ({decision.reason}) ..."
        )
        return await self.order_manager(target.chain).create_offer(
            target, unit_price, decision.expiration_time, payment_token
        )
