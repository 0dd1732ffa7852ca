"""
Paginated Best-Price Aggregator

Walks a cursor-paged order feed, keeps the orders that match a scope filter
and folds them into the single best candidate under a price ordering:
ascending for listings (cheapest wins), descending for offers (highest wins).

Pages are consumed with an explicit loop carrying the best-so-far order and
the cursor, so feeds of any length run in constant stack depth. Ties keep
the order seen first.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from core.models import CompetingOrder, OfferScope, Page, Trait
from utils.exceptions import InvalidResponseError
from utils.helpers import same_address
from utils.logger import get_logger


logger = get_logger(__name__)

# Fetches the page at `cursor` (None = first page)
PageFetcher = Callable[[Optional[str]], Awaitable[Page]]


class PriceOrdering(Enum):
    """Which end of the price range is best"""
    ASCENDING = 'ascending'
    DESCENDING = 'descending'

    def prefers(self, candidate: CompetingOrder, incumbent: Optional[CompetingOrder]) -> bool:
        """True when candidate strictly beats incumbent. Equal prices keep the incumbent."""
        if incumbent is None:
            return True
        if self is PriceOrdering.ASCENDING:
            return candidate.price_per_item < incumbent.price_per_item
        return candidate.price_per_item > incumbent.price_per_item


@dataclass(frozen=True)
class ScopeFilter:
    """
    Which orders of a feed are relevant.

    Every field is optional; an unset field matches everything.

    Attributes:
        token_id: Order must cover this token
        offerer: Order must be made by this address (checksum-insensitive)
        trait: Order must carry this trait criterion
        scope: Order must have exactly this scope
    """
    token_id: Optional[str] = None
    offerer: Optional[str] = None
    trait: Optional[Trait] = None
    scope: Optional[OfferScope] = None

    def matches(self, order: CompetingOrder) -> bool:
        if order.price_total <= 0:
            return False
        if self.token_id is not None and not order.covers_token(self.token_id):
            return False
        if self.offerer is not None and not same_address(order.owner_address, self.offerer):
            return False
        if self.trait is not None and not self.trait.matches(order.trait):
            return False
        if self.scope is not None and order.scope is not self.scope:
            return False
        return True


def best_of(orders, ordering: PriceOrdering) -> Optional[CompetingOrder]:
    """Best order of an iterable, first-seen on ties."""
    best = None
    for order in orders:
        if ordering.prefers(order, best):
            best = order
    return best


async def _walk_pages(fetch_page: PageFetcher):
    """Yield pages until the feed ends. A cursor that comes back twice is an error."""
    cursor: Optional[str] = None
    seen_cursors = set()
    while True:
        page = await fetch_page(cursor)
        yield page
        if not page.next_cursor:
            return
        if page.next_cursor in seen_cursors:
            raise InvalidResponseError(
                f"Pagination cursor repeated: {page.next_cursor}",
                error_code='CURSOR_LOOP'
            )
        seen_cursors.add(page.next_cursor)
        cursor = page.next_cursor


async def find_best_order(
    fetch_page: PageFetcher,
    scope_filter: ScopeFilter,
    ordering: PriceOrdering,
    stop_at_first_match: bool = False
) -> Optional[CompetingOrder]:
    """
    Find the best matching order across every page of a feed.

    Args:
        fetch_page: Page fetcher, called with None then with each next cursor
        scope_filter: Which orders are eligible; zero-priced orders never are
        ordering: Price ordering that defines "best"
        stop_at_first_match: Return the first eligible order without paging on.
                             Only valid for feeds the server already sorted,
                             such as single-token queries.

    Returns:
        The best eligible order, or None when no order matches
    """
    best: Optional[CompetingOrder] = None
    pages = 0
    async for page in _walk_pages(fetch_page):
        pages += 1
        matching = [order for order in page.orders if scope_filter.matches(order)]
        if stop_at_first_match and matching:
            return matching[0]
        page_best = best_of(matching, ordering)
        if page_best is not None and ordering.prefers(page_best, best):
            best = page_best

    logger.debug(
        f"Aggregated {pages} page(s), best price per item: "
        f"{best.price_per_item if best else None}"
    )
    return best


async def collect_orders(fetch_page: PageFetcher, scope_filter: ScopeFilter) -> List[CompetingOrder]:
    """Every matching order across all pages, in feed order."""
    collected: List[CompetingOrder] = []
    async for page in _walk_pages(fetch_page):
        collected.extend(order for order in page.orders if scope_filter.matches(order))
    return collected
