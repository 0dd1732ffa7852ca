"""
Chain Client Registry

Builds, once at start-up, the per-chain clients every strategy needs: an
async Web3 RPC connection and a marketplace client bound to the chain the
RPC endpoint reports. The resulting registry is immutable and handed to the
strategies explicitly.

RPC endpoints are configured as "label::url" pairs, for example
"ethereum::https://eth.llamarpc.com". Targets refer to chains by label.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider

from config.constants import CHAIN_NAMES
from core.marketplace import MarketplaceClient
from utils.exceptions import ConfigurationError
from utils.helpers import async_retry_with_backoff
from utils.logger import get_logger


logger = get_logger(__name__)

# Builds the marketplace client for (label, marketplace chain name)
MarketplaceFactory = Callable[[str, str], MarketplaceClient]


def get_chain_from_chain_id(chain_id: int) -> str:
    """
    Marketplace chain name for an EVM chain id.

    Raises:
        ConfigurationError: If the chain is not supported by the marketplace
    """
    try:
        return CHAIN_NAMES[chain_id]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported chain ID: {chain_id}",
            error_code='UNSUPPORTED_CHAIN',
            details={'supported': sorted(CHAIN_NAMES)}
        )


def parse_rpc_endpoints(entries: Iterable[str]) -> List[Tuple[str, str]]:
    """
    Split "label::url" entries.

    Raises:
        ConfigurationError: On a malformed entry or a duplicated label
    """
    parsed: List[Tuple[str, str]] = []
    seen = set()
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        label, sep, url = entry.partition('::')
        label, url = label.strip(), url.strip()
        if not sep or not label or not url:
            raise ConfigurationError(
                f"Invalid RPC endpoint {entry!r}, expected 'chain::url'",
                error_code='INVALID_RPC_ENDPOINT'
            )
        if label in seen:
            raise ConfigurationError(f"RPC endpoint for chain {label!r} configured twice")
        seen.add(label)
        parsed.append((label, url))
    return parsed


@dataclass(frozen=True)
class ChainClients:
    """Clients for one configured chain"""
    label: str
    chain_id: int
    marketplace_chain: str
    marketplace: MarketplaceClient
    web3: Optional[AsyncWeb3] = None


class ClientRegistry:
    """Read-only mapping of chain label to ChainClients."""

    def __init__(self, clients: Mapping[str, ChainClients]):
        self._clients = MappingProxyType(dict(clients))

    def get(self, label: str) -> ChainClients:
        try:
            return self._clients[label]
        except KeyError:
            raise ConfigurationError(
                f"No RPC provider configured for chain {label!r}",
                error_code='UNKNOWN_CHAIN',
                details={'configured': sorted(self._clients)}
            )

    def __contains__(self, label: object) -> bool:
        return label in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(self._clients)

    async def close(self) -> None:
        for clients in self._clients.values():
            try:
                await clients.marketplace.close()
            except Exception as e:
                logger.warning(f"Error closing marketplace client for {clients.label}: {e}")


@async_retry_with_backoff()
async def fetch_chain_id(web3: AsyncWeb3) -> int:
    return int(await web3.eth.chain_id)


async def initialize_clients(
    rpc_endpoints: Iterable[str],
    marketplace_factory: MarketplaceFactory,
    web3_factory: Callable[[str], AsyncWeb3] = lambda url: AsyncWeb3(AsyncHTTPProvider(url)),
) -> ClientRegistry:
    """
    Connect to every configured chain and build the registry.

    Args:
        rpc_endpoints: "label::url" entries
        marketplace_factory: Builds the marketplace client for a chain
        web3_factory: Builds the RPC connection for a URL

    Returns:
        Immutable ClientRegistry keyed by chain label

    Raises:
        ConfigurationError: Malformed endpoint, unsupported chain id or no endpoints
    """
    clients: Dict[str, ChainClients] = {}
    for label, url in parse_rpc_endpoints(rpc_endpoints):
        logger.info(f"Initializing clients for chain {label} ...")
        web3 = web3_factory(url)
        chain_id = await fetch_chain_id(web3)
        marketplace_chain = get_chain_from_chain_id(chain_id)
        logger.info(f"Chain ID for {label}: {chain_id} ({marketplace_chain})")

        clients[label] = ChainClients(
            label=label,
            chain_id=chain_id,
            marketplace_chain=marketplace_chain,
            marketplace=marketplace_factory(label, marketplace_chain),
            web3=web3,
        )

    if not clients:
        raise ConfigurationError("No RPC endpoints configured (RPC_ENDPOINTS is empty)")
    return ClientRegistry(clients)
