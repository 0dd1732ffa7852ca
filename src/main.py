"""
Main Entry Point for the NFT Market-Making Bot
Runs the listing, offer and offer-cleanup loops until SIGINT/SIGTERM
"""

import os
import sys
import signal
import asyncio
from typing import Optional, List
from datetime import datetime
from eth_account import Account

# Add src to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config.aws_config import resolve_credentials
from config.settings import BotSettings, get_settings
from config.targets import TargetConfig, load_targets
from core.marketplace import OrderSigner, load_order_signer
from core.networks import ClientRegistry, initialize_clients
from core.opensea_client import OpenSeaClient
from strategies.base_strategy import BaseStrategy
from strategies.listing_strategy import ListingStrategy
from strategies.offer_cleanup_strategy import OfferCleanupStrategy
from strategies.offer_strategy import OfferStrategy
from utils.logger import get_logger, setup_logging
from utils.exceptions import ConfigurationError, MarketBotError


logger = get_logger(__name__)


def derive_owner_address(private_key: str) -> str:
    """Checksummed wallet address for a private key."""
    try:
        return Account.from_key(private_key).address
    except Exception as e:
        raise ConfigurationError("PRIVATE_KEY is not a valid private key", original_error=e)


class NFTMarketBot:
    """
    Main bot orchestrator
    Wires settings, clients and targets into the three polling strategies
    """

    def __init__(self, settings: Optional[BotSettings] = None):
        self.settings = settings or get_settings()
        self.registry: Optional[ClientRegistry] = None
        self.targets: Optional[TargetConfig] = None
        self.owner_address: Optional[str] = None
        self.signer: Optional[OrderSigner] = None
        self.strategies: List[BaseStrategy] = []
        self.is_running = False
        self.start_time: Optional[datetime] = None
        self._shutdown_event = asyncio.Event()

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals gracefully"""
        signal_name = signal.Signals(signum).name
        logger.info(f"Received {signal_name} signal, initiating graceful shutdown...")
        self.is_running = False
        if not self._shutdown_event.is_set():
            self._shutdown_event.set()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    def _build_marketplace(self, api_key: str):
        def factory(label: str, marketplace_chain: str) -> OpenSeaClient:
            return OpenSeaClient(
                marketplace_chain,
                api_key,
                base_url=self.settings.opensea_api_url,
                signer=self.signer,
            )
        return factory

    async def initialize(self) -> None:
        """
        Resolve credentials, connect to every chain and load the targets.

        Raises:
            ConfigurationError: On any configuration problem, before any loop starts
        """
        settings = self.settings
        logger.info("Initializing bot components...")

        private_key, api_key = resolve_credentials(
            settings.private_key,
            settings.opensea_api_key,
            aws_secret_id=settings.aws_secret_id,
            aws_region=settings.aws_region,
        )
        self.owner_address = derive_owner_address(private_key)

        if settings.order_signer:
            self.signer = load_order_signer(settings.order_signer, private_key=private_key)
            logger.info(f"Order signer loaded: {settings.order_signer}")
        elif not settings.dry_run:
            raise ConfigurationError(
                "ORDER_SIGNER is required unless DRY_RUN is enabled",
                error_code='MISSING_SIGNER'
            )

        self.registry = await initialize_clients(
            settings.rpc_endpoint_list, self._build_marketplace(api_key)
        )
        try:
            self.targets = load_targets(settings.collection_path, known_chains=self.registry.labels)
        except ConfigurationError:
            await self.registry.close()
            raise

        idle = [label for label in self.registry.labels if label not in self.targets.chains]
        if idle:
            logger.warning(f"No listings or offers configured for chain(s): {', '.join(idle)}")

        common = dict(registry=self.registry, owner_address=self.owner_address, dry_run=settings.dry_run)
        self.strategies = [
            ListingStrategy(
                targets=self.targets.listings,
                interval_sec=settings.polling_interval_seconds,
                **common
            ),
            OfferStrategy(
                targets=self.targets.offers,
                interval_sec=settings.offer_polling_interval_seconds,
                **common
            ),
            OfferCleanupStrategy(
                targets=self.targets.offers,
                interval_sec=settings.cleanup_polling_interval_seconds,
                **common
            ),
        ]
        logger.info(f"Bot initialized with {len(self.strategies)} strategies")

    async def start(self) -> None:
        """Run every strategy until shutdown is requested or all of them end"""
        if self.is_running:
            logger.warning("Bot is already running")
            return

        self.is_running = True
        self.start_time = datetime.now()

        logger.info("=" * 80)
        logger.info("Starting NFT Market-Making Bot")
        logger.info(f"Wallet Address: {self.owner_address}")
        logger.info(f"Chains: {', '.join(self.registry.labels)}")
        logger.info(f"Listings: {len(self.targets.listings)}, Offers: {len(self.targets.offers)}")
        logger.info(f"Dry Run: {'ENABLED' if self.settings.dry_run else 'DISABLED'}")
        logger.info("=" * 80)

        shutdown_task = asyncio.create_task(self._shutdown_event.wait())
        pending = {asyncio.create_task(strategy.run()) for strategy in self.strategies}
        try:
            # A strategy that ends does not stop the others
            while pending and not shutdown_task.done():
                done, pending = await asyncio.wait(
                    pending | {shutdown_task}, return_when=asyncio.FIRST_COMPLETED
                )
                pending.discard(shutdown_task)
                for task in done:
                    if task is shutdown_task or task.cancelled():
                        continue
                    if task.exception() is not None:
                        logger.error(f"Strategy task failed: {task.exception()}")
                    else:
                        logger.info("Strategy task finished")
            if shutdown_task.done():
                logger.info("Shutdown event detected, stopping bot...")
        finally:
            for task in list(pending) + [shutdown_task]:
                task.cancel()
            await asyncio.gather(*pending, shutdown_task, return_exceptions=True)
            await self.shutdown()

    async def stop(self) -> None:
        """Stop the bot gracefully"""
        logger.info("Stopping bot...")
        self.is_running = False
        for strategy in self.strategies:
            if strategy.is_running:
                await strategy.stop()

    async def shutdown(self) -> None:
        """Stop strategies, close client sessions and log final statistics"""
        logger.info("Shutting down bot...")
        try:
            await self.stop()
            if self.registry:
                await self.registry.close()
            self._log_final_stats()
            logger.info("Bot shutdown complete")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)

    def _log_final_stats(self) -> None:
        """Log final statistics on shutdown"""
        if not self.start_time:
            return

        runtime = datetime.now() - self.start_time

        logger.info("=" * 80)
        logger.info("BOT FINAL STATISTICS")
        logger.info("=" * 80)
        logger.info(f"Runtime: {runtime}")
        for strategy in self.strategies:
            status = strategy.get_status()
            logger.info(f"Strategy {status['name']}: cycles={status['cycles']}, targets={status['targets']}")
        logger.info("=" * 80)


async def main() -> int:
    """Main entry point. Returns the process exit status."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, settings.log_file, settings.structured_logging)

        logger.info("Starting NFT Market-Making Bot...")

        bot = NFTMarketBot(settings)
        bot.install_signal_handlers()
        await bot.initialize()
        await bot.start()
        return 0

    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        return 1
    except MarketBotError as e:
        logger.error(f"Bot error: {e}")
        return 1
    except Exception as e:
        logger.critical(f"Unexpected error: {e}", exc_info=True)
        return 1


def cli() -> None:
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")


if __name__ == "__main__":
    cli()
