#!/usr/bin/env python3
"""
Buy Bot entry point

Watches the presale contract and posts every purchase to Telegram.

Usage:
    buybot                  # live mode
    buybot --demo           # simulated purchases only
    buybot --log-level DEBUG
"""

import argparse
import asyncio
import signal
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from buybot.core.config import Settings, get_settings
from buybot.core.logging import setup_logging
from buybot.services.chain.client import TRANSPORT_ERRORS, ChainClient
from buybot.services.chain.errors import ChainError
from buybot.services.demo import DemoPurchaseSimulator
from buybot.services.ingestion.coordinator import IngestionConfig, IngestionCoordinator
from buybot.services.ingestion.timers import DeferredTask
from buybot.services.notifier.telegram import TelegramNotifier
from buybot.services.pricing.price_feed import EthPriceFeed


class BuyBotApp:
    """Wires collaborators together and owns the process lifecycle"""

    def __init__(self, settings: Settings, demo: bool = False):
        self.settings = settings
        self.demo = demo

        self.price_feed: Optional[EthPriceFeed] = None
        self.notifier: Optional[TelegramNotifier] = None
        self.chain: Optional[ChainClient] = None
        self.coordinator: Optional[IngestionCoordinator] = None
        self.simulator: Optional[DemoPurchaseSimulator] = None

        self._heartbeat = DeferredTask("heartbeat", on_error=self.on_fatal)
        self._shutdown: Optional[asyncio.Event] = None
        self.fatal_error: Optional[BaseException] = None

    def request_shutdown(self):
        logger.info("Shutdown requested")
        if self._shutdown is not None:
            self._shutdown.set()

    def on_fatal(self, exc: BaseException):
        """Unknown fault: stop everything and exit for the supervisor to restart us"""
        if self.fatal_error is None:
            self.fatal_error = exc
        self.request_shutdown()

    def _loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]):
        exc = context.get('exception')
        message = context.get('message', 'Unhandled exception in event loop')

        # Transport tasks inside web3 may die with the connection; the push
        # channel recovers from those on its own
        if exc is None or isinstance(exc, (ChainError, *TRANSPORT_ERRORS)):
            logger.opt(exception=exc).warning(f"⚠️ {message}")
            return

        logger.opt(exception=exc).error(f"❌ {message}")
        self.on_fatal(exc)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop):
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                pass

    def _build(self):
        settings = self.settings
        self.price_feed = EthPriceFeed.from_settings(settings)
        self.notifier = TelegramNotifier.from_settings(
            settings,
            price_feed=self.price_feed,
            include_explorer_link=not self.demo,
        )

        if self.demo:
            self.simulator = DemoPurchaseSimulator.from_settings(
                settings, self.notifier, self.price_feed, on_error=self.on_fatal
            )
            return

        self.chain = ChainClient(
            http_url=settings.RPC_URL,
            ws_url=settings.WS_RPC_URL,
            contract_address=settings.PRESALE_CONTRACT,
            query_timeout=settings.QUERY_TIMEOUT,
            bonus_multiplier=settings.BONUS_MULTIPLIER,
        )
        self.coordinator = IngestionCoordinator(
            self.chain,
            self.notifier,
            config=IngestionConfig.from_settings(settings),
            on_fatal=self.on_fatal,
        )

    async def _heartbeat_loop(self):
        while True:
            await asyncio.sleep(self.settings.HEARTBEAT_INTERVAL)
            if self.coordinator is not None:
                state = self.coordinator.state
                logger.info(
                    f"💚 Bot alive - {datetime.now():%H:%M:%S} | "
                    f"block {state.last_known_block} | "
                    f"push {'up' if state.ws_connected else 'down'} | "
                    f"delivered {self.coordinator.total_delivered}"
                )
            else:
                logger.info(f"💚 Bot running - {datetime.now():%H:%M:%S}")

    async def _start(self):
        await self.price_feed.refresh()
        self.price_feed.start()
        await self.notifier.start()

        if self.demo:
            self.simulator.start()
        else:
            await self.coordinator.start()
            logger.info(f"📡 Monitoring: {self.settings.PRESALE_CONTRACT}")

        logger.info(f"💬 Posting to: {self.settings.GROUP_ID}")
        logger.info(f"⏰ {datetime.now():%Y-%m-%d %H:%M:%S}")
        logger.info('━' * 50)

        self._heartbeat.arm(0, self._heartbeat_loop)

    async def _stop(self):
        await self._heartbeat.wait_cancelled()
        if self.simulator is not None:
            await self.simulator.stop()
        if self.coordinator is not None:
            await self.coordinator.stop()
        if self.chain is not None:
            await self.chain.close()
        if self.notifier is not None:
            await self.notifier.stop()
        if self.price_feed is not None:
            await self.price_feed.stop()

    async def run(self) -> int:
        """
        Run until a signal or a fatal fault.

        Returns:
            Process exit code
        """
        loop = asyncio.get_running_loop()
        self._shutdown = asyncio.Event()
        loop.set_exception_handler(self._loop_exception_handler)
        self._install_signal_handlers(loop)

        logger.info(f"🤖 MMV {'DEMO ' if self.demo else ''}Buy Bot Starting...")

        try:
            self._build()
            await self._start()
        except Exception as e:
            logger.opt(exception=e).error(f"❌ Startup failed: {e}")
            self.on_fatal(e)

        try:
            await self._shutdown.wait()
        finally:
            await self._stop()

        if self.fatal_error is not None:
            delay = self.settings.FATAL_EXIT_DELAY
            logger.critical(
                f"Exiting in {delay:.0f}s after fatal fault: {self.fatal_error!r}"
            )
            await asyncio.sleep(delay)
            return 1

        logger.info("Buy bot stopped")
        return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Presale buy alert bot")
    parser.add_argument('--demo', action='store_true', help="Post simulated purchases")
    parser.add_argument('--log-level', default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> int:
    settings = get_settings()
    setup_logging(settings, args.log_level)

    missing = settings.missing_demo_settings() if args.demo else settings.missing_live_settings()
    if missing:
        logger.error(f"Missing required settings: {', '.join(missing)}")
        return 2

    return await BuyBotApp(settings, demo=args.demo).run()


def run(argv: Optional[List[str]] = None):
    sys.exit(asyncio.run(main(parse_args(argv))))


if __name__ == "__main__":
    run()
