"""
OpenSea API Client
Implements MarketplaceClient over the OpenSea v2 REST API with aiohttp
"""

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiohttp
from web3 import Web3

from config.constants import (
    API_TIMEOUT_SEC,
    DEFAULT_PAGE_SIZE,
    ETH_PAYMENT_TOKEN,
    ETH_SYMBOL,
    OPENSEA_API_URL,
    SEAPORT_ADDRESS,
    SINGLE_TOKEN_PAGE_SIZE,
    UNKNOWN_CURRENCY,
)
from core.marketplace import MarketplaceClient, OrderRequest, OrderSigner
from core.models import CompetingOrder, OfferScope, OrderSide, Page, Trait
from core.payment_tokens import get_currency_from_address
from core.pricing import (
    ITEM_TYPE_NATIVE,
    NFT_ITEM_TYPES,
    get_currency_token,
    get_item_quantity,
    to_int,
)
from utils.exceptions import (
    APIError,
    APITimeoutError,
    AuthenticationError,
    ConfigurationError,
    InvalidResponseError,
    NetworkError,
    RateLimitError,
)
from utils.helpers import with_rate_limit_retry
from utils.logger import get_logger
from utils.rate_limiter import (
    OPENSEA_READ_RATE_LIMITER,
    OPENSEA_WRITE_RATE_LIMITER,
    TokenBucketRateLimiter,
)


logger = get_logger(__name__)


# ============================================================================
# RESPONSE PARSING
# ============================================================================

def _unwrap_price(price: Optional[Mapping[str, Any]]) -> Tuple[int, Optional[str]]:
    """Price value and currency from either {value, currency} or {current: {...}}."""
    if not price:
        return 0, None
    if price.get('value') in (None, '') and isinstance(price.get('current'), Mapping):
        price = price['current']
    return to_int(price.get('value')), price.get('currency')


def derive_currency(parameters: Optional[Mapping[str, Any]], side: OrderSide) -> str:
    """Currency symbol from the order's first currency item."""
    item = get_currency_token(parameters, side)
    if item is None:
        return UNKNOWN_CURRENCY
    if to_int(item.get('itemType'), default=-1) == ITEM_TYPE_NATIVE:
        return ETH_SYMBOL
    return get_currency_from_address(item.get('token', ''))


def _token_ids(parameters: Mapping[str, Any], side: OrderSide) -> Tuple[str, ...]:
    # Listings sell tokens on the offer side; offers ask for them in the consideration
    key = 'offer' if side is OrderSide.LISTING else 'consideration'
    return tuple(
        str(to_int(item.get('identifierOrCriteria')))
        for item in parameters.get(key) or ()
        if to_int(item.get('itemType'), default=-1) in NFT_ITEM_TYPES
    )


def _scope_from_criteria(criteria: Optional[Mapping[str, Any]]) -> Tuple[OfferScope, Optional[Trait]]:
    if not criteria:
        return OfferScope.SINGLE, None
    trait = criteria.get('trait')
    if trait and trait.get('type') is not None:
        return OfferScope.TRAIT, Trait(str(trait['type']), str(trait.get('value')))
    return OfferScope.COLLECTION, None


def build_competing_order(
    side: OrderSide,
    order_hash: Optional[str],
    protocol_data: Optional[Mapping[str, Any]],
    price_total: int,
    currency: Optional[str] = None,
    protocol_address: Optional[str] = None,
    criteria: Optional[Mapping[str, Any]] = None,
) -> CompetingOrder:
    """
    Normalize a raw marketplace order into a CompetingOrder.

    Raises:
        InvalidResponseError: If the order has no protocol parameters or offerer
    """
    parameters = (protocol_data or {}).get('parameters')
    if not parameters or not parameters.get('offerer'):
        raise InvalidResponseError(
            f"Order {order_hash or '<no hash>'} has no protocol parameters",
            error_code='MALFORMED_ORDER'
        )

    scope, trait = (
        _scope_from_criteria(criteria) if side is OrderSide.OFFER else (OfferScope.SINGLE, None)
    )
    return CompetingOrder(
        order_hash=order_hash or None,
        owner_address=Web3.to_checksum_address(parameters['offerer']),
        price_total=price_total,
        price_currency=(currency or derive_currency(parameters, side)).upper(),
        quantity=get_item_quantity(parameters, side),
        end_time=to_int(parameters.get('endTime')),
        start_time=to_int(parameters.get('startTime')),
        side=side,
        scope=scope,
        token_ids=_token_ids(parameters, side),
        trait=trait,
        protocol_address=protocol_address,
        protocol_data=dict(protocol_data),
    )


def parse_collection_order(raw: Mapping[str, Any], side: OrderSide) -> CompetingOrder:
    """Parse an entry of the collection listings/offers feeds."""
    price_total, currency = _unwrap_price(raw.get('price'))
    return build_competing_order(
        side,
        raw.get('order_hash'),
        raw.get('protocol_data'),
        price_total,
        currency=currency,
        protocol_address=raw.get('protocol_address'),
        criteria=raw.get('criteria'),
    )


def parse_order_v2(raw: Mapping[str, Any], side: OrderSide) -> CompetingOrder:
    """Parse an entry of the single-token orders feed; the currency comes from the order items."""
    return build_competing_order(
        side,
        raw.get('order_hash'),
        raw.get('protocol_data'),
        to_int(raw.get('current_price')),
        protocol_address=raw.get('protocol_address'),
        criteria=raw.get('criteria'),
    )


def _parse_entries(entries, side: OrderSide, parser) -> Tuple[CompetingOrder, ...]:
    orders = []
    for raw in entries or ():
        try:
            orders.append(parser(raw, side))
        except (InvalidResponseError, ValueError, TypeError) as e:
            logger.warning(f"Skipping malformed {side.value}: {e}")
    return tuple(orders)


def _error_message(body: str) -> str:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body.strip() or 'no response body'
    if isinstance(data, dict):
        errors = data.get('errors') or data.get('detail') or data.get('message')
        if isinstance(errors, list):
            return '; '.join(str(e) for e in errors)
        if errors:
            return str(errors)
    return str(data)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


# ============================================================================
# CLIENT
# ============================================================================

class OpenSeaClient(MarketplaceClient):
    """
    OpenSea v2 client bound to one chain.

    Reads go through the shared read limiter and writes through the shared
    write limiter. Order creation needs an OrderSigner; without one only
    queries and cancellations are available.
    """

    def __init__(
        self,
        chain: str,
        api_key: str,
        base_url: str = OPENSEA_API_URL,
        signer: Optional[OrderSigner] = None,
        read_limiter: Optional[TokenBucketRateLimiter] = OPENSEA_READ_RATE_LIMITER,
        write_limiter: Optional[TokenBucketRateLimiter] = OPENSEA_WRITE_RATE_LIMITER,
        timeout: float = API_TIMEOUT_SEC,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.chain = chain
        self._api_key = api_key
        self._base_url = base_url.rstrip('/')
        self._signer = signer
        self._read_limiter = read_limiter
        self._write_limiter = write_limiter
        self._timeout = timeout
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={
                    'X-API-KEY': self._api_key,
                    'Accept': 'application/json',
                    'User-Agent': 'opensea-market-maker/1.0',
                }
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            logger.info(f"Closed OpenSea session for {self.chain}")

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
        write: bool = False
    ) -> Any:
        """
        Perform one HTTP request and decode the JSON body.

        Raises:
            RateLimitError: HTTP 429, with the Retry-After hint
            AuthenticationError: HTTP 401 or 403
            APIError: Any other HTTP error, carrying the server message
            APITimeoutError: Request timed out
            NetworkError: Connection failed
            InvalidResponseError: Body is not JSON
        """
        limiter = self._write_limiter if write else self._read_limiter
        if limiter is not None:
            await limiter.acquire()

        url = f"{self._base_url}{path}"
        logger.debug(f"OpenSea request: {method} {path} params={params}")
        try:
            async with self._get_session().request(method, url, params=params, json=payload) as response:
                body = await response.text()
                if response.status == 429:
                    raise RateLimitError(
                        f"Rate limited by OpenSea on {path}",
                        retry_after=_parse_retry_after(response.headers.get('Retry-After')),
                        status_code=429,
                        response_data=body,
                    )
                if response.status in (401, 403):
                    raise AuthenticationError(
                        f"OpenSea rejected the API key (HTTP {response.status}) for {path}: {_error_message(body)}",
                        error_code=f"HTTP_{response.status}",
                        details={'path': path}
                    )
                if response.status >= 400:
                    raise APIError(
                        f"OpenSea returned HTTP {response.status} for {path}: {_error_message(body)}",
                        status_code=response.status,
                        response_data=body,
                    )
        except asyncio.TimeoutError as e:
            raise APITimeoutError(
                f"Request timed out: {method} {path}",
                error_code='ETIMEDOUT',
                original_error=e
            )
        except aiohttp.ClientConnectionError as e:
            raise NetworkError(f"Cannot connect to host for {path}: {e}", original_error=e)

        if not body:
            return {}
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise InvalidResponseError(
                f"Invalid JSON from {path}: {e}",
                response_data=body[:500],
                original_error=e
            )

    # ========================================================================
    # QUERIES
    # ========================================================================

    async def get_orders_page(
        self,
        side: OrderSide,
        collection_slug: str,
        cursor: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE
    ) -> Page:
        feed = 'listings' if side is OrderSide.LISTING else 'offers'
        params: Dict[str, Any] = {'limit': page_size}
        if cursor:
            params['next'] = cursor
        data = await self._request('GET', f"/api/v2/{feed}/collection/{collection_slug}/all", params=params)
        return Page(
            orders=_parse_entries(data.get(feed), side, parse_collection_order),
            next_cursor=data.get('next') or None,
        )

    async def get_token_orders_page(
        self,
        side: OrderSide,
        token_address: str,
        token_id: str,
        cursor: Optional[str] = None,
        page_size: int = SINGLE_TOKEN_PAGE_SIZE
    ) -> Page:
        feed = 'listings' if side is OrderSide.LISTING else 'offers'
        params: Dict[str, Any] = {
            'asset_contract_address': token_address,
            'token_ids': str(token_id),
            'order_by': 'eth_price',
            'order_direction': 'asc' if side is OrderSide.LISTING else 'desc',
            'limit': page_size,
        }
        if cursor:
            params['cursor'] = cursor
        data = await self._request('GET', f"/api/v2/orders/{self.chain}/seaport/{feed}", params=params)
        return Page(
            orders=_parse_entries(data.get('orders'), side, parse_order_v2),
            next_cursor=data.get('next') or None,
        )

    # ========================================================================
    # SUBMISSION
    # ========================================================================

    def _require_signer(self) -> OrderSigner:
        if self._signer is None:
            raise ConfigurationError(
                "No order signer configured. Set ORDER_SIGNER or run with DRY_RUN=true"
            )
        return self._signer

    async def _post_signed_order(self, request: OrderRequest, feed: str) -> Dict[str, Any]:
        protocol_data = await self._require_signer().sign_order(request)
        return await self._request(
            'POST',
            f"/api/v2/orders/{self.chain}/seaport/{feed}",
            payload={
                'parameters': protocol_data.get('parameters'),
                'signature': protocol_data.get('signature'),
                'protocol_address': SEAPORT_ADDRESS,
            },
            write=True
        )

    async def create_listing(
        self,
        token_address: str,
        token_id: str,
        amount: int,
        expiration_time: int,
        account_address: str
    ) -> Dict[str, Any]:
        request = OrderRequest(
            chain=self.chain,
            side=OrderSide.LISTING,
            account_address=account_address,
            amount=amount,
            expiration_time=expiration_time,
            payment_token_address=ETH_PAYMENT_TOKEN,
            token_address=token_address,
            token_id=str(token_id),
        )
        return await self._post_signed_order(request, 'listings')

    async def create_offer(
        self,
        token_address: str,
        token_id: str,
        amount: int,
        expiration_time: int,
        account_address: str,
        payment_token_address: str
    ) -> Dict[str, Any]:
        request = OrderRequest(
            chain=self.chain,
            side=OrderSide.OFFER,
            account_address=account_address,
            amount=amount,
            expiration_time=expiration_time,
            payment_token_address=payment_token_address,
            token_address=token_address,
            token_id=str(token_id),
        )
        return await self._post_signed_order(request, 'offers')

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
        signer = self._require_signer()
        criteria: Dict[str, Any] = {'collection': {'slug': collection_slug}}
        if trait is not None:
            criteria['trait'] = {'type': trait.trait_type, 'value': trait.value}

        build = await self._request(
            'POST',
            '/api/v2/offers/build',
            payload={
                'offerer': account_address,
                'quantity': quantity,
                'criteria': criteria,
                'protocol_address': SEAPORT_ADDRESS,
            },
            write=True
        )
        request = OrderRequest(
            chain=self.chain,
            side=OrderSide.OFFER,
            account_address=account_address,
            amount=amount,
            expiration_time=expiration_time,
            payment_token_address=payment_token_address,
            collection_slug=collection_slug,
            quantity=quantity,
            trait=trait,
            build=build,
        )
        protocol_data = await signer.sign_order(request)
        return await self._request(
            'POST',
            '/api/v2/offers',
            payload={
                'protocol_data': protocol_data,
                'criteria': build.get('criteria', criteria),
                'protocol_address': SEAPORT_ADDRESS,
            },
            write=True
        )

    async def cancel_order(self, order_hash: str, account_address: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self._signer is not None:
            signature = await self._signer.sign_cancellation(self.chain, order_hash, account_address)
            if signature:
                payload['offerer_signature'] = signature
        return await self._request(
            'POST',
            f"/api/v2/orders/chain/{self.chain}/protocol/{SEAPORT_ADDRESS}/{order_hash}/cancel",
            payload=payload,
            write=True
        )

    async def cancel_orders(self, order_hashes: List[str], account_address: str) -> Dict[str, Any]:
        """
        Cancel several orders through the off-chain cancel endpoint.

        Every hash is attempted. A rate-limited hash is retried after the
        server's Retry-After hint before moving on; other failures are
        collected and raised together.

        Raises:
            APIError: If at least one cancellation failed
        """
        cancelled: List[str] = []
        failed: Dict[str, str] = {}
        for order_hash in order_hashes:
            try:
                await with_rate_limit_retry(
                    lambda order_hash=order_hash: self.cancel_order(order_hash, account_address)
                )
                cancelled.append(order_hash)
            except APIError as e:
                failed[order_hash] = str(e)

        if failed:
            raise APIError(
                f"Failed to cancel {len(failed)}/{len(order_hashes)} orders on {self.chain}",
                response_data={'cancelled': cancelled, 'failed': failed},
            )
        return {'cancelled': cancelled}

