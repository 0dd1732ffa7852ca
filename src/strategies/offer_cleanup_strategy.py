"""
Redundant Offer Cleanup Strategy

Races between polling cycles (or manual edits) can leave the owner with
several live offers for the same target. For every offer target this
strategy keeps the owner's highest offer in the target's scope and cancels
the rest, batching all cancellations of a chain into a single call.
"""

from collections import OrderedDict
from typing import Dict, List, Sequence

from config.constants import DRY_RUN_PREFIX
from config.targets import TrackedOfferTarget
from core.models import CompetingOrder, OrderSide
from core.order_queries import get_all_orders
from strategies.base_strategy import BaseStrategy
from strategies.offer_strategy import own_offer_filter
from utils.helpers import format_eth
from utils.logger import get_logger, log_error_with_context


logger = get_logger(__name__)


def select_redundant_offers(offers: Sequence[CompetingOrder]) -> List[CompetingOrder]:
    """
    Offers to cancel: all but the highest price per item.

    The sort is stable, so among equal prices the first one seen is kept.
    """
    if len(offers) <= 1:
        return []
    ranked = sorted(offers, key=lambda order: order.price_per_item, reverse=True)
    return ranked[1:]


class OfferCleanupStrategy(BaseStrategy):
    """Cancels the owner's duplicate offers, one batch per chain"""

    async def evaluate_target(self, target: TrackedOfferTarget) -> List[CompetingOrder]:
        """The owner's redundant offers for one target."""
        owned = await get_all_orders(
            self.registry.get(target.chain).marketplace,
            OrderSide.OFFER,
            target.collection_slug,
            own_offer_filter(target, self.owner_address),
        )
        redundant = select_redundant_offers(owned)
        if redundant:
            logger.info(
                f"Found {len(owned)} offers for {target.describe()}, "
                f"keeping {format_eth(max(o.price_per_item for o in owned))} per item, "
                f"{len(redundant)} redundant"
            )
        return redundant

    def _targets_by_chain(self) -> Dict[str, List[TrackedOfferTarget]]:
        grouped: Dict[str, List[TrackedOfferTarget]] = OrderedDict()
        for target in self.targets:
            grouped.setdefault(target.chain, []).append(target)
        return grouped

    async def execute(self) -> Dict[str, int]:
        """
        Find and cancel redundant offers for every target.

        Returns:
            Counts of targets that failed and orders sent for cancellation
        """
        failed = 0
        cancelled = 0
        for chain, targets in self._targets_by_chain().items():
            try:
                to_cancel: List[CompetingOrder] = []
                for target in targets:
                    try:
                        to_cancel.extend(await self.evaluate_target(target))
                    except Exception as e:
                        failed += 1
                        log_error_with_context(
                            logger,
                            f"Error getting offers to cancel for {target.describe()}",
                            e,
                            strategy=self.name,
                            chain=chain,
                        )

                if not to_cancel:
                    continue

                hashes: List[str] = []
                for offer in to_cancel:
                    if not offer.order_hash:
                        logger.warning(
                            f"Cannot cancel offer at {format_eth(offer.price_per_item)} "
                            f"{offer.price_currency} without an order hash. Skipping..."
                        )
                        continue
                    hashes.append(offer.order_hash)
                hashes = list(dict.fromkeys(hashes))

                if not hashes:
                    logger.warning(f"No offers with order hash found to cancel for chain {chain}")
                    continue

                prefix = f"{DRY_RUN_PREFIX} " if self.dry_run else ''
                logger.info(
                    f"{prefix}Canceling {len(hashes)} offer(s) across {len(targets)} target(s) on chain {chain}"
                )
                sent = await self.order_manager(chain).cancel_orders(hashes)
                cancelled += len(sent)
                for offer in to_cancel:
                    if offer.order_hash in sent:
                        logger.info(
                            f"Successfully canceled offer {offer.order_hash}, price: "
                            f"{format_eth(offer.price_per_item)} {offer.price_currency}, quantity: {offer.quantity}"
                        )
            except Exception as e:
                log_error_with_context(logger, f"Failed to cancel offers for chain {chain}", e, chain=chain)

        self.cycles += 1
        return {'evaluated': len(self.targets), 'failed': failed, 'cancelled': cancelled}
