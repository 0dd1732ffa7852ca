"""
Base Strategy Abstract Class
Defines the polling loop shared by the listing, offer and cleanup strategies
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence
import asyncio

from config.constants import DEFAULT_POLLING_INTERVAL_SEC, ERROR_BACKOFF_SEC
from core.networks import ClientRegistry
from core.order_manager import OrderManager
from utils.logger import get_logger, log_error_with_context
from utils.exceptions import StrategyError


logger = get_logger(__name__)


class BaseStrategy(ABC):
    """
    Abstract base class for polling strategies.

    Subclasses implement evaluate_target(); execute() runs it for every target
    in order, one at a time, and a failing target never stops the others.
    """

    def __init__(
        self,
        registry: ClientRegistry,
        owner_address: str,
        targets: Sequence[Any],
        dry_run: bool = False,
        interval_sec: float = DEFAULT_POLLING_INTERVAL_SEC,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize strategy

        Args:
            registry: Per-chain clients
            owner_address: Checksummed address of the wallet whose orders are managed
            targets: Targets evaluated on every cycle
            dry_run: Log intended submissions instead of sending them
            interval_sec: Pause between cycles
            config: Strategy-specific configuration (error_backoff_sec, ...)
        """
        self.registry = registry
        self.owner_address = owner_address
        self.targets = tuple(targets)
        self.dry_run = dry_run
        self.interval_sec = interval_sec
        self.config = config or {}
        self.is_running = False
        self.cycles = 0
        self._stop_event = asyncio.Event()
        self._order_managers: Dict[str, OrderManager] = {
            label: OrderManager(registry.get(label).marketplace, owner_address, dry_run)
            for label in registry.labels
        }

        self.name = self.__class__.__name__
        logger.info(
            f"Strategy initialized: {self.name} "
            f"({len(self.targets)} target(s), every {interval_sec}s, dry_run={dry_run})"
        )

    def order_manager(self, chain: str) -> OrderManager:
        if chain not in self._order_managers:
            # Raises ConfigurationError for an unknown chain
            self.registry.get(chain)
        return self._order_managers[chain]

    @abstractmethod
    async def evaluate_target(self, target: Any) -> None:
        """
        Run one read-decide-submit cycle for a single target.
        Must be implemented by subclasses
        """

    async def execute(self) -> Dict[str, int]:
        """
        Evaluate every target once, sequentially.

        Returns:
            Counts of evaluated and failed targets
        """
        failed = 0
        for target in self.targets:
            try:
                await self.evaluate_target(target)
            except Exception as e:
                failed += 1
                log_error_with_context(
                    logger,
                    f"Error evaluating {target.describe()}",
                    e,
                    strategy=self.name,
                    chain=target.chain,
                    collection=target.collection_slug,
                )
        self.cycles += 1
        return {'evaluated': len(self.targets), 'failed': failed}

    async def _wait(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        """
        Main strategy loop
        Executes one cycle per interval until stopped
        """
        if self.is_running:
            logger.warning(f"Strategy {self.name} is already running")
            return

        self.is_running = True
        logger.info(f"Starting strategy: {self.name}")

        try:
            await self.on_start()

            while self.is_running and not self._stop_event.is_set():
                try:
                    await self.execute()
                    logger.debug(f"{self.name} waiting {self.interval_sec}s for next poll ...")
                    await self._wait(self.interval_sec)
                except Exception as e:
                    logger.error(f"Error in strategy execution: {e}", exc_info=True)
                    await self.on_error(e)
                    await self._wait(self.config.get('error_backoff_sec', ERROR_BACKOFF_SEC))

        except Exception as e:
            logger.error(f"Fatal error in strategy {self.name}: {e}", exc_info=True)
            raise StrategyError(f"Strategy {self.name} failed: {e}", original_error=e)
        finally:
            await self.on_stop()
            self.is_running = False
            logger.info(f"Strategy stopped: {self.name}")

    async def stop(self) -> None:
        """Stop the strategy gracefully"""
        if not self.is_running:
            logger.warning(f"Strategy {self.name} is not running")
            return

        logger.info(f"Stopping strategy: {self.name}")
        self.is_running = False
        self._stop_event.set()

    async def on_start(self) -> None:
        """
        Hook called when strategy starts
        Override in subclass for custom initialization
        """
        logger.debug(f"Strategy {self.name} starting")

    async def on_stop(self) -> None:
        """
        Hook called when strategy stops
        Override in subclass for custom cleanup
        """
        logger.debug(f"Strategy {self.name} stopping")

    async def on_error(self, error: Exception) -> None:
        """
        Hook called when a whole cycle fails

        Args:
            error: The exception that occurred
        """
        logger.error(f"Strategy {self.name} error: {error}")

    def get_status(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'is_running': self.is_running,
            'targets': len(self.targets),
            'cycles': self.cycles,
            'dry_run': self.dry_run,
        }
