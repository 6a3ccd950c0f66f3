"""
Ingestion Coordinator

Single owner of the ingestion state. Routes purchases from the push channel,
the standby poller and catch-up runs through the dedup ledger to the sink.

Features:
- Monotonic block watermark across all sources
- Outage tracking between disconnect and reconnect
- Gap catch-up on reconnect
- Serialized handlers (one asyncio.Lock for every state mutation)
"""

import asyncio
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from loguru import logger

from buybot.core.config import Settings
from buybot.services.chain.client import ChainClient
from buybot.services.chain.errors import ChainQueryError
from buybot.services.chain.events import PurchaseEvent
from buybot.services.ingestion.catch_up import CatchUpFetcher
from buybot.services.ingestion.dedup import DEFAULT_CAPACITY, DedupLedger
from buybot.services.ingestion.poller import StandbyPoller
from buybot.services.ingestion.push_channel import PushChannelManager
from buybot.services.ingestion.state import IngestionState
from buybot.services.notifier.base import NotificationSink


@dataclass
class IngestionConfig:
    """Configuration for purchase ingestion"""
    # Dedup
    dedup_capacity: int = DEFAULT_CAPACITY

    # Push channel reconnect backoff
    reconnect_base_delay: float = 2.0  # seconds
    reconnect_max_delay: float = 60.0  # seconds

    # Standby polling
    poll_grace_period: float = 120.0  # seconds after disconnect
    poll_interval: float = 60.0  # seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestionConfig":
        return cls(
            dedup_capacity=settings.DEDUP_CAPACITY,
            reconnect_base_delay=settings.RECONNECT_BASE_DELAY,
            reconnect_max_delay=settings.RECONNECT_MAX_DELAY,
            poll_grace_period=settings.POLL_GRACE_PERIOD,
            poll_interval=settings.POLL_INTERVAL,
        )


class IngestionCoordinator:
    """
    Reliable, deduplicated purchase ingestion.

    Example:
        ```python
        coordinator = IngestionCoordinator(chain, notifier)
        await coordinator.start()
        ...
        await coordinator.stop()
        ```
    """

    def __init__(
        self,
        chain: ChainClient,
        sink: NotificationSink,
        config: Optional[IngestionConfig] = None,
        on_fatal: Optional[Callable[[BaseException], None]] = None
    ):
        """
        Args:
            chain: Push and pull access to purchase events
            sink: Receives each admitted purchase once
            config: Ingestion configuration (uses defaults if None)
            on_fatal: Called when a background task fails unexpectedly
        """
        self.config = config or IngestionConfig()
        self.chain = chain
        self.sink = sink
        self._on_fatal = on_fatal

        self.state = IngestionState()
        self.ledger = DedupLedger(self.config.dedup_capacity)
        self._lock = asyncio.Lock()

        self.poller = StandbyPoller(
            chain,
            self.state,
            self._dispatch,
            self._lock,
            grace_period=self.config.poll_grace_period,
            interval=self.config.poll_interval,
            on_error=self._handle_fatal
        )
        self.catch_up = CatchUpFetcher(chain, self._dispatch)
        self.push_channel = PushChannelManager(
            chain,
            self,
            base_delay=self.config.reconnect_base_delay,
            max_delay=self.config.reconnect_max_delay,
            on_error=self._handle_fatal
        )

        self.is_running: bool = False

        # Statistics
        self.admitted_by_source: Counter = Counter()
        self.total_delivered: int = 0
        self.total_delivery_failures: int = 0

        logger.info("IngestionCoordinator initialized")

    async def start(self):
        """
        Seed the watermark from the chain head and open the push channel.

        Raises:
            ChainQueryError: If the initial head query fails
        """
        if self.is_running:
            logger.warning("Ingestion already running")
            return

        head = await self.chain.get_head()
        self.state.advance_watermark(head)
        self.is_running = True

        logger.info(f"Starting ingestion from block {head}")
        await self.push_channel.start()

    async def stop(self):
        """Cancel all timers and unsubscribe"""
        self.is_running = False
        await self.poller.stop()
        await self.push_channel.stop()
        logger.info("Ingestion stopped")

    async def on_live_event(self, event: PurchaseEvent):
        """Push channel delivered a purchase"""
        async with self._lock:
            self.state.advance_watermark(event.block_number)
            await self._dispatch(event, "live")

    async def on_channel_up(self):
        """Push channel (re)connected"""
        async with self._lock:
            self.state.ws_connected = True
            self.state.reconnect_attempts = 0
            self.poller.disarm()

            if self.state.in_outage:
                await self.catch_up.run(self.state)

            # The outage ends with the reconnect whether or not catch-up succeeded
            self.state.clear_outage()

    async def on_channel_down(self, reason: Optional[str] = None):
        """Push channel dropped or failed to connect"""
        async with self._lock:
            self.state.ws_connected = False

            if self.state.outage_start_block == 0:
                try:
                    outage_start = await self.chain.get_head()
                except ChainQueryError as e:
                    outage_start = self.state.last_known_block
                    logger.warning(
                        f"Head query failed at disconnect, using watermark "
                        f"{outage_start}: {e}"
                    )
                self.state.outage_start_block = outage_start
                logger.warning(f"Push channel down at block {outage_start}: {reason}")

            self.poller.arm()

    def record_reconnect_attempt(self) -> int:
        self.state.reconnect_attempts += 1
        return self.state.reconnect_attempts

    async def _dispatch(self, event: PurchaseEvent, source: str) -> bool:
        """
        Admit through the ledger and forward to the sink. Caller holds the lock.

        Returns:
            True if the event was new
        """
        if not self.ledger.admit(event.tx_hash):
            return False

        self.admitted_by_source[source] += 1

        try:
            delivered = await self.sink.deliver(event)
        except Exception as e:
            logger.error(f"Error in sink while delivering {event.tx_hash}: {e}")
            delivered = False

        if delivered:
            self.total_delivered += 1
            logger.info(
                f"Purchase delivered ({source}): {event.tx_hash} "
                f"block {event.block_number}"
            )
        else:
            self.total_delivery_failures += 1
            logger.error(f"Delivery failed for {event.tx_hash}, dropping")

        return True

    def _handle_fatal(self, exc: BaseException):
        logger.critical(f"Unrecoverable ingestion fault: {exc!r}")
        if self._on_fatal is not None:
            self._on_fatal(exc)

    def get_status(self) -> Dict[str, Any]:
        """Get ingestion status"""
        return {
            'is_running': self.is_running,
            'state': self.state.to_dict(),
            'push_channel': self.push_channel.get_status(),
            'poller': self.poller.get_status(),
            'catch_up_runs': self.catch_up.total_runs,
            'ledger': self.ledger.get_status(),
            'admitted_by_source': dict(self.admitted_by_source),
            'total_delivered': self.total_delivered,
            'total_delivery_failures': self.total_delivery_failures,
        }
