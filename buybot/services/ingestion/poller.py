"""
Standby Poller

Pull-channel safety net for sustained push-channel outages:
- Armed on disconnect, activates only after a grace period
- Scans (watermark, head] on a fixed interval while the push channel is down
- Stands down as soon as the push channel reports healthy
"""

import asyncio
from typing import Any, Callable, Dict, Optional

from loguru import logger

from buybot.services.chain.client import ChainClient
from buybot.services.chain.errors import ChainQueryError
from buybot.services.ingestion.catch_up import Dispatch
from buybot.services.ingestion.state import IngestionState
from buybot.services.ingestion.timers import DeferredTask


class StandbyPoller:
    """
    Periodic range scanner driven by push-channel health.

    Example:
        ```python
        poller = StandbyPoller(chain, state, coordinator._dispatch, lock)

        poller.arm()     # on disconnect
        poller.arm()     # no-op, already armed
        poller.disarm()  # on reconnect
        ```
    """

    def __init__(
        self,
        chain: ChainClient,
        state: IngestionState,
        dispatch: Dispatch,
        lock: asyncio.Lock,
        grace_period: float = 120.0,
        interval: float = 60.0,
        on_error: Optional[Callable[[BaseException], None]] = None
    ):
        """
        Args:
            chain: Pull-channel client
            state: Coordinator-owned state (mutated only under ``lock``)
            dispatch: Coroutine admitting and forwarding an event
            lock: Coordinator lock serializing all state mutations
            grace_period: Seconds to wait after disconnect before polling
            interval: Seconds between poll cycles
            on_error: Escalation hook for unexpected failures
        """
        self._chain = chain
        self._state = state
        self._dispatch = dispatch
        self._lock = lock
        self.grace_period = grace_period
        self.interval = interval

        self._handle = DeferredTask("standby-poller", on_error=on_error)

        # Statistics
        self.total_activations: int = 0
        self.total_cycles: int = 0
        self.total_failures: int = 0
        self.total_events_found: int = 0

    @property
    def armed(self) -> bool:
        """Waiting out the grace period"""
        return self._handle.armed

    @property
    def active(self) -> bool:
        """Armed or polling"""
        return self._handle.active

    def arm(self) -> bool:
        """
        Schedule activation after the grace period.

        Returns:
            False if already armed or running
        """
        if self._handle.active:
            return False

        logger.info(
            f"Standby poller armed, activating in {self.grace_period:.0f}s "
            f"if push channel stays down"
        )
        return self._handle.arm(self.grace_period, self._run)

    def disarm(self) -> bool:
        """Cancel a pending activation or a running poll loop"""
        cancelled = self._handle.cancel()
        if cancelled:
            logger.info("Standby poller disarmed")
        return cancelled

    async def stop(self):
        await self._handle.wait_cancelled()

    async def _run(self):
        if self._state.ws_connected:
            logger.info("Push channel recovered during grace period, poller not activated")
            self._handle.cancel()
            return

        self.total_activations += 1
        logger.warning(
            f"Push channel still down after {self.grace_period:.0f}s, "
            f"polling every {self.interval:.0f}s"
        )

        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            if not await self.run_cycle():
                return
            await asyncio.sleep(self.next_delay(loop.time() - started))

    def next_delay(self, elapsed: float) -> float:
        """Time left in the current interval after a cycle that took ``elapsed``"""
        return max(self.interval - elapsed, 0.0)

    async def run_cycle(self) -> bool:
        """
        Run one poll cycle under the coordinator lock.

        Returns:
            False once the push channel is healthy and polling should stop
        """
        async with self._lock:
            if self._state.ws_connected:
                logger.info("Push channel healthy, stopping standby polling")
                self.disarm()
                return False

            await self._scan()
            return True

    async def _scan(self):
        self.total_cycles += 1
        watermark = self._state.last_known_block

        try:
            head = await self._chain.get_head()

            if head <= watermark:
                logger.debug(f"No new blocks (head {head}, watermark {watermark})")
                return

            if watermark <= 0:
                logger.warning(f"No watermark yet, starting standby scan from head {head}")
                self._state.advance_watermark(head)
                return

            events = await self._chain.query_range(watermark + 1, head)

        except ChainQueryError as e:
            self.total_failures += 1
            logger.error(f"Standby poll failed, retrying in {self.interval:.0f}s: {e}")
            return

        admitted = 0
        for event in events:
            if await self._dispatch(event, "poll"):
                admitted += 1

        # Watermark tracks blocks scanned, not events found
        self._state.advance_watermark(head)
        self.total_events_found += len(events)

        logger.info(
            f"Standby poll: blocks {watermark + 1}-{head}, "
            f"{len(events)} events found, {admitted} new"
        )

    def get_status(self) -> Dict[str, Any]:
        return {
            'armed': self.armed,
            'active': self.active,
            'grace_period': self.grace_period,
            'interval': self.interval,
            'total_activations': self.total_activations,
            'total_cycles': self.total_cycles,
            'total_failures': self.total_failures,
            'total_events_found': self.total_events_found,
        }
