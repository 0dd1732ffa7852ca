"""
Tracked Target Configuration

Loads the JSON file describing which listings and offers the bot maintains:

    {
      "listings": [{"chain": "ethereum", "collectionSlug": "...", "tokenAddress": "0x...",
                    "tokenId": "1", "defaultPriceETH": "0.5", "minPriceETH": "0.3",
                    "shouldCompareToRest": false}],
      "offers":   [{"chain": "ethereum", "collectionSlug": "...", "tokenAddress": "0x...",
                    "tokenId": "1", "trait": {"traitType": "Eyes", "value": "Blue"},
                    "defaultPriceETH": "0.1", "maxPriceETH": "0.2", "quantity": 1}]
    }

A bare JSON array is read as the listings list. Entries are validated with
pydantic and converted into frozen targets holding prices in wei; the offer
scope is decided once here. Any problem raises ConfigurationError so the
bot stops before its loops start.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.models import OfferScope, Trait, infer_offer_scope
from core.pricing import to_int
from utils.exceptions import ConfigurationError, DataValidationError
from utils.helpers import format_eth, parse_eth, to_checksum
from utils.logger import get_logger


logger = get_logger(__name__)


# ============================================================================
# TARGETS
# ============================================================================

@dataclass(frozen=True)
class TrackedListingTarget:
    """A token the owner keeps listed as the cheapest, never below min_price."""
    chain: str
    collection_slug: str
    token_address: str
    token_id: str
    default_price: int
    min_price: int
    compare_across_collection: bool = False

    def __post_init__(self):
        if self.min_price <= 0 or self.default_price <= 0:
            raise ConfigurationError(
                f"Prices must be positive for {self.describe()}",
                details={'default_price': self.default_price, 'min_price': self.min_price}
            )
        if self.min_price > self.default_price:
            raise ConfigurationError(
                f"Min price must be less than or equal to default price for {self.describe()}",
                details={
                    'default_price_eth': format_eth(self.default_price),
                    'min_price_eth': format_eth(self.min_price),
                }
            )

    def describe(self) -> str:
        return f"{self.collection_slug} (tokenId={self.token_id})"


@dataclass(frozen=True)
class TrackedOfferTarget:
    """An offer the owner keeps as the highest, never above max_price."""
    chain: str
    collection_slug: str
    token_address: str
    default_price: int
    max_price: int
    token_id: Optional[str] = None
    trait: Optional[Trait] = None
    quantity: int = 1
    compare_across_collection: bool = False
    scope: OfferScope = field(init=False)

    def __post_init__(self):
        try:
            scope = infer_offer_scope(self.token_id, self.trait)
        except ValueError as e:
            raise ConfigurationError(
                f"tokenId and trait cannot both be set for {self.collection_slug}",
                original_error=e
            )
        object.__setattr__(self, 'scope', scope)

        if self.default_price <= 0 or self.max_price <= 0:
            raise ConfigurationError(
                f"Prices must be positive for {self.describe()}",
                details={'default_price': self.default_price, 'max_price': self.max_price}
            )
        if self.default_price > self.max_price:
            raise ConfigurationError(
                f"Default price must be less than or equal to max price for {self.describe()}",
                details={
                    'default_price_eth': format_eth(self.default_price),
                    'max_price_eth': format_eth(self.max_price),
                }
            )
        if self.quantity < 1:
            raise ConfigurationError(f"Quantity must be at least 1 for {self.describe()}")

    @property
    def has_quantity(self) -> bool:
        """Collection and trait offers carry a quantity; single-token offers do not."""
        return self.scope is not OfferScope.SINGLE

    def describe(self) -> str:
        if self.scope is OfferScope.COLLECTION:
            return f"collection offer for {self.collection_slug}"
        if self.scope is OfferScope.TRAIT:
            return f"trait offer for {self.collection_slug} ({self.trait.trait_type}: {self.trait.value})"
        return f"single token offer for {self.collection_slug} (tokenId={self.token_id})"


@dataclass(frozen=True)
class TargetConfig:
    listings: Tuple[TrackedListingTarget, ...] = ()
    offers: Tuple[TrackedOfferTarget, ...] = ()

    @property
    def chains(self) -> Tuple[str, ...]:
        seen = dict.fromkeys(t.chain for t in (*self.listings, *self.offers))
        return tuple(seen)


# ============================================================================
# FILE ENTRIES
# ============================================================================

def _normalize_token_id(value: Any) -> Optional[str]:
    # Decimal and 0x-prefixed hex ids collapse to one canonical decimal string
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        token_id = to_int(text)
    except ValueError:
        raise ValueError(f"tokenId must be a decimal or 0x-prefixed hex integer, got {text!r}")
    if token_id < 0:
        raise ValueError(f"tokenId must not be negative, got {text!r}")
    return str(token_id)


def _eth_string(value: Any) -> Any:
    # Integers are exact; anything else stays as given and is parsed as a decimal string
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class TraitEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    trait_type: str = Field(alias='traitType', min_length=1)
    value: str

    @field_validator('value', mode='before')
    @classmethod
    def stringify_value(cls, v):
        return str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v


class _TargetEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    chain: str = Field(min_length=1)
    collection_slug: str = Field(alias='collectionSlug', min_length=1)
    token_address: str = Field(alias='tokenAddress')
    default_price_eth: str = Field(alias='defaultPriceETH')
    should_compare_to_rest: bool = Field(default=False, alias='shouldCompareToRest')

    @field_validator('token_address')
    @classmethod
    def checksum_address(cls, v: str) -> str:
        try:
            return to_checksum(v)
        except DataValidationError as e:
            raise ValueError(e.message)

    @field_validator('default_price_eth', mode='before')
    @classmethod
    def default_price_string(cls, v):
        return _eth_string(v)

    @staticmethod
    def wei_amount(value: str, name: str) -> int:
        try:
            return parse_eth(value)
        except DataValidationError as e:
            raise ConfigurationError(f"Invalid {name}: {e.message}", details={name: value})


class ListingEntry(_TargetEntry):
    token_id: str = Field(alias='tokenId')
    min_price_eth: str = Field(alias='minPriceETH')

    @field_validator('token_id', mode='before')
    @classmethod
    def normalize_token_id(cls, v):
        token_id = _normalize_token_id(v)
        if token_id is None:
            raise ValueError('tokenId is required for listings')
        return token_id

    @field_validator('min_price_eth', mode='before')
    @classmethod
    def min_price_string(cls, v):
        return _eth_string(v)

    def to_target(self) -> TrackedListingTarget:
        return TrackedListingTarget(
            chain=self.chain,
            collection_slug=self.collection_slug,
            token_address=self.token_address,
            token_id=self.token_id,
            default_price=self.wei_amount(self.default_price_eth, 'defaultPriceETH'),
            min_price=self.wei_amount(self.min_price_eth, 'minPriceETH'),
            compare_across_collection=self.should_compare_to_rest,
        )


class OfferEntry(_TargetEntry):
    token_id: Optional[str] = Field(default=None, alias='tokenId')
    trait: Optional[TraitEntry] = None
    quantity: int = Field(default=1, ge=1)
    max_price_eth: str = Field(alias='maxPriceETH')

    @field_validator('token_id', mode='before')
    @classmethod
    def normalize_token_id(cls, v):
        return _normalize_token_id(v)

    @field_validator('max_price_eth', mode='before')
    @classmethod
    def max_price_string(cls, v):
        return _eth_string(v)

    def to_target(self) -> TrackedOfferTarget:
        return TrackedOfferTarget(
            chain=self.chain,
            collection_slug=self.collection_slug,
            token_address=self.token_address,
            token_id=self.token_id,
            trait=Trait(self.trait.trait_type, self.trait.value) if self.trait else None,
            quantity=self.quantity,
            default_price=self.wei_amount(self.default_price_eth, 'defaultPriceETH'),
            max_price=self.wei_amount(self.max_price_eth, 'maxPriceETH'),
            compare_across_collection=self.should_compare_to_rest,
        )


class TargetFile(BaseModel):
    listings: List[ListingEntry] = Field(default_factory=list)
    offers: List[OfferEntry] = Field(default_factory=list)


# ============================================================================
# LOADING
# ============================================================================

def parse_targets(data: Any, known_chains: Optional[Iterable[str]] = None) -> TargetConfig:
    """
    Validate decoded target data.

    Args:
        data: Decoded JSON (object with listings/offers, or a bare listings array)
        known_chains: Chain labels with configured clients; None skips the check

    Returns:
        TargetConfig with every target converted

    Raises:
        ConfigurationError: On any invalid entry, price bound violation or unknown chain
    """
    if isinstance(data, list):
        data = {'listings': data}
    try:
        parsed = TargetFile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid target configuration: {e.error_count()} error(s)",
            details={'errors': [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            ]},
            original_error=e
        )

    config = TargetConfig(
        listings=tuple(entry.to_target() for entry in parsed.listings),
        offers=tuple(entry.to_target() for entry in parsed.offers),
    )

    if known_chains is not None:
        known = set(known_chains)
        for target in (*config.listings, *config.offers):
            if target.chain not in known:
                raise ConfigurationError(
                    f"No RPC provider configured for chain {target.chain} "
                    f"(needed by {target.describe()})",
                    error_code='UNKNOWN_CHAIN'
                )
    return config


def load_targets(path: str, known_chains: Optional[Iterable[str]] = None) -> TargetConfig:
    """
    Read and validate the target file.

    Raises:
        ConfigurationError: If the file is missing, is not JSON or fails validation
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Target file not found: {path}", original_error=e)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Target file is not valid JSON: {path}: {e}", original_error=e)

    config = parse_targets(data, known_chains)
    for target in config.listings:
        logger.info(
            f"Tracking listing {target.describe()} on {target.chain} "
            f"(default {format_eth(target.default_price)} ETH, min {format_eth(target.min_price)} ETH)"
        )
    for target in config.offers:
        logger.info(
            f"Tracking {target.describe()} on {target.chain} "
            f"(default {format_eth(target.default_price)} ETH, max {format_eth(target.max_price)} ETH)"
        )
    logger.info(f"Tracking {len(config.listings)} listing(s) and {len(config.offers)} offer(s)")
    return config
