"""
Order Manager
Submits listings, offers and cancellations for one chain
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from config.constants import (
    DRY_RUN_PREFIX,
    ETH_SYMBOL,
    MIN_EXPIRATION_SEC,
    PRICE_PRECISION_ERROR_PATTERNS,
)
from config.targets import TrackedListingTarget, TrackedOfferTarget
from core.marketplace import MarketplaceClient
from core.models import OfferScope, SubmittedOrder
from core.payment_tokens import get_currency_from_address
from core.pricing import now_seconds, round_up_to_three_decimals
from utils.exceptions import OrderRejectionError, PricePrecisionError
from utils.helpers import format_eth, with_rate_limit_retry
from utils.logger import get_logger, log_order_event


logger = get_logger(__name__)


def is_precision_error(error: Exception) -> bool:
    message = str(error)
    return any(pattern in message for pattern in PRICE_PRECISION_ERROR_PATTERNS)


def extract_order_hash(response: Optional[Dict[str, Any]]) -> Optional[str]:
    """Order hash from a marketplace response, wherever it is nested."""
    if not response:
        return None
    for key in ('order_hash', 'orderHash'):
        if response.get(key):
            return response[key]
    nested = response.get('order')
    if isinstance(nested, dict):
        return extract_order_hash(nested)
    return None


def _iso(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class OrderManager:
    """
    Submits orders on one chain on behalf of the owner.

    Every submission:
    - moves the expiration to at least now + 11 minutes (marketplace minimum)
    - goes through the rate-limit retry wrapper
    - is only logged, never sent, in dry-run mode
    """

    def __init__(self, marketplace: MarketplaceClient, owner_address: str, dry_run: bool = False):
        if marketplace is None:
            raise ValueError("MarketplaceClient cannot be None")
        self.marketplace = marketplace
        self.owner_address = owner_address
        self.dry_run = dry_run

    @staticmethod
    def enforce_min_expiration(expiration_time: int, now: Optional[int] = None) -> int:
        current = now_seconds() if now is None else now
        return max(expiration_time, current + MIN_EXPIRATION_SEC)

    # ========================================================================
    # LISTINGS
    # ========================================================================

    async def create_listing(
        self,
        target: TrackedListingTarget,
        price: int,
        expiration_time: int
    ) -> Optional[SubmittedOrder]:
        """
        List the target token at `price` wei (native ETH).

        Returns:
            The submitted order, or None in dry-run mode

        Raises:
            OrderRejectionError: If the marketplace returned nothing
        """
        expiration = self.enforce_min_expiration(expiration_time)
        description = f"listing for {target.token_address}:{target.token_id}"

        if self.dry_run:
            logger.info(
                f"{DRY_RUN_PREFIX} Would create {description} at {format_eth(price)} {ETH_SYMBOL} "
                f"(expires: {_iso(expiration)})"
            )
            return None

        response = await with_rate_limit_retry(lambda: self.marketplace.create_listing(
            target.token_address,
            target.token_id,
            price,
            expiration,
            self.owner_address,
        ))
        if not response:
            raise OrderRejectionError(f"Failed to create {description}")

        order = SubmittedOrder(
            order_hash=extract_order_hash(response),
            price_per_item=price,
            quantity=1,
            total_price=price,
            expiration_time=expiration,
            response=response,
        )
        log_order_event(
            logger, 'LISTING_CREATED',
            chain=target.chain, collection=target.collection_slug, token_id=target.token_id,
            price_eth=format_eth(price), order_hash=order.order_hash, expiration=expiration,
        )
        logger.info(f"Successfully listed {target.token_address}:{target.token_id} at {format_eth(price)} {ETH_SYMBOL}")
        return order

    # ========================================================================
    # OFFERS
    # ========================================================================

    async def create_offer(
        self,
        target: TrackedOfferTarget,
        price_per_item: int,
        expiration_time: int,
        payment_token_address: str
    ) -> Optional[SubmittedOrder]:
        """
        Place an offer for the target at `price_per_item` wei per item.

        Single-token offers submit the price directly. Collection and trait
        offers submit price_per_item * quantity; if the marketplace rejects
        the per-item price for having more than 3 decimals, they are retried
        once with the per-item price rounded up to 0.001.

        Returns:
            The submitted order (carrying the price actually used), or None in dry-run mode

        Raises:
            OrderRejectionError: If the marketplace returned nothing
        """
        expiration = self.enforce_min_expiration(expiration_time)
        currency = get_currency_from_address(payment_token_address)
        description = target.describe()
        quantity = target.quantity if target.has_quantity else 1
        quantity_text = f" (quantity: {quantity})" if target.has_quantity else ''

        if self.dry_run:
            logger.info(
                f"{DRY_RUN_PREFIX} Would create {description} at {format_eth(price_per_item)} {currency} "
                f"per item{quantity_text}, expires: {_iso(expiration)}"
            )
            return None

        if target.scope is OfferScope.SINGLE:
            used_price = price_per_item
            response = await with_rate_limit_retry(lambda: self.marketplace.create_offer(
                target.token_address,
                target.token_id,
                price_per_item,
                expiration,
                self.owner_address,
                payment_token_address,
            ))
        else:
            used_price, response = await self._create_collection_offer(
                target, price_per_item, quantity, expiration, payment_token_address
            )

        if not response:
            raise OrderRejectionError(f"Failed to create {description}")

        order = SubmittedOrder(
            order_hash=extract_order_hash(response),
            price_per_item=used_price,
            quantity=quantity,
            total_price=used_price * quantity,
            expiration_time=expiration,
            response=response,
        )
        log_order_event(
            logger, 'OFFER_CREATED',
            chain=target.chain, collection=target.collection_slug, scope=target.scope.value,
            price_eth=format_eth(used_price), quantity=quantity, currency=currency,
            order_hash=order.order_hash, expiration=expiration,
        )
        logger.info(f"Successfully created {description} at {format_eth(used_price)} {currency}{quantity_text}")
        return order

    async def _create_collection_offer(
        self,
        target: TrackedOfferTarget,
        price_per_item: int,
        quantity: int,
        expiration: int,
        payment_token_address: str
    ):
        async def submit(unit_price: int) -> Dict[str, Any]:
            return await with_rate_limit_retry(lambda: self.marketplace.create_collection_offer(
                target.collection_slug,
                unit_price * quantity,
                quantity,
                expiration,
                self.owner_address,
                payment_token_address,
                trait=target.trait,
            ))

        try:
            return price_per_item, await submit(price_per_item)
        except Exception as e:
            if not is_precision_error(e):
                raise
            rounded = round_up_to_three_decimals(price_per_item)
            logger.info(
                f"Marketplace requires 3 decimals for {target.describe()}, "
                f"retrying at {format_eth(rounded)} per item"
            )
            try:
                return rounded, await submit(rounded)
            except Exception as retry_error:
                if is_precision_error(retry_error):
                    raise PricePrecisionError(
                        f"Marketplace rejected {format_eth(rounded)} per item for {target.describe()} "
                        f"even at 3 decimals",
                        original_error=retry_error
                    )
                raise

    # ========================================================================
    # CANCELLATION
    # ========================================================================

    async def cancel_orders(self, order_hashes: Iterable[str]) -> List[str]:
        """
        Cancel a batch of orders with one marketplace call.

        Returns:
            The hashes sent for cancellation; empty in dry-run mode or for an empty batch
        """
        hashes = [h for h in order_hashes if h]
        if not hashes:
            return []
        if self.dry_run:
            logger.info(f"{DRY_RUN_PREFIX} Would cancel {len(hashes)} order(s): {', '.join(hashes)}")
            return []
        await with_rate_limit_retry(lambda: self.marketplace.cancel_orders(hashes, self.owner_address))
        log_order_event(
            logger, 'ORDERS_CANCELLED',
            chain=self.marketplace.chain, count=len(hashes), order_hashes=hashes,
        )
        return hashes
