"""
Best-Order Queries

Combines the marketplace feeds with the paginated aggregator:
- single-token queries use the server-sorted token feed and stop at the
  first eligible order; when the marketplace refuses to sort (the token id
  does not resolve to exactly one token) they fall back to walking the
  whole collection feed filtered by token id
- collection-wide queries always walk every page

Every page request is wrapped in rate-limit retry, itself wrapped in the
generic transient-error retry.
"""

from typing import List, Optional

from config.constants import DEFAULT_PAGE_SIZE, SCOPE_QUERY_UNSUPPORTED_MESSAGE
from core.aggregator import PageFetcher, PriceOrdering, ScopeFilter, collect_orders, find_best_order
from core.marketplace import MarketplaceClient
from core.models import CompetingOrder, OrderSide, Page
from utils.helpers import with_rate_limit_retry, with_retry
from utils.logger import get_logger


logger = get_logger(__name__)


def ordering_for(side: OrderSide) -> PriceOrdering:
    """Cheapest listing wins, highest offer wins."""
    return PriceOrdering.ASCENDING if side is OrderSide.LISTING else PriceOrdering.DESCENDING


def collection_page_fetcher(
    marketplace: MarketplaceClient,
    side: OrderSide,
    collection_slug: str,
    page_size: int = DEFAULT_PAGE_SIZE
) -> PageFetcher:
    async def fetch(cursor: Optional[str]) -> Page:
        return await with_retry(lambda: with_rate_limit_retry(
            lambda: marketplace.get_orders_page(side, collection_slug, cursor=cursor, page_size=page_size)
        ))
    return fetch


def token_page_fetcher(
    marketplace: MarketplaceClient,
    side: OrderSide,
    token_address: str,
    token_id: str
) -> PageFetcher:
    async def fetch(cursor: Optional[str]) -> Page:
        return await with_retry(lambda: with_rate_limit_retry(
            lambda: marketplace.get_token_orders_page(side, token_address, token_id, cursor=cursor)
        ))
    return fetch


def is_scope_query_unsupported(error: Exception) -> bool:
    return SCOPE_QUERY_UNSUPPORTED_MESSAGE in str(error)


async def get_best_collection_order(
    marketplace: MarketplaceClient,
    side: OrderSide,
    collection_slug: str,
    scope_filter: ScopeFilter = ScopeFilter()
) -> Optional[CompetingOrder]:
    """Best matching order across the full collection feed."""
    return await find_best_order(
        collection_page_fetcher(marketplace, side, collection_slug),
        scope_filter,
        ordering_for(side),
    )


async def get_single_best_order(
    marketplace: MarketplaceClient,
    side: OrderSide,
    collection_slug: str,
    token_address: str,
    token_id: str
) -> Optional[CompetingOrder]:
    """
    Best order for one token.

    Returns:
        The best listing (cheapest) or offer (highest) covering the token, or None

    Raises:
        APIError: Any query failure other than the unsupported-sort rejection
    """
    token_filter = ScopeFilter(token_id=str(token_id))
    try:
        return await find_best_order(
            token_page_fetcher(marketplace, side, token_address, token_id),
            token_filter,
            ordering_for(side),
            stop_at_first_match=True,
        )
    except Exception as e:
        if not is_scope_query_unsupported(e):
            raise
        logger.info(
            f"Price sort unsupported for {collection_slug} token {token_id}, "
            f"scanning the full {side.value} feed"
        )
    return await get_best_collection_order(marketplace, side, collection_slug, token_filter)


async def get_all_orders(
    marketplace: MarketplaceClient,
    side: OrderSide,
    collection_slug: str,
    scope_filter: ScopeFilter
) -> List[CompetingOrder]:
    """Every matching order across the full collection feed."""
    return await collect_orders(
        collection_page_fetcher(marketplace, side, collection_slug),
        scope_filter,
    )
