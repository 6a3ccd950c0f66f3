"""
Push Channel Manager

Subscribe / reconnect / backoff state machine around the WebSocket log
subscription. Retries forever until stopped.
"""

from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

from loguru import logger

from buybot.services.chain.client import ChainClient, PurchaseSubscription
from buybot.services.chain.errors import ChainConnectionError
from buybot.services.chain.events import PurchaseEvent
from buybot.services.ingestion.timers import DeferredTask


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"
    ERRORED = "errored"


class ChannelListener(Protocol):
    """What the manager reports to (implemented by the coordinator)"""

    async def on_live_event(self, event: PurchaseEvent) -> None: ...

    async def on_channel_up(self) -> None: ...

    async def on_channel_down(self, reason: Optional[str] = None) -> None: ...

    def record_reconnect_attempt(self) -> int: ...


def reconnect_delay(attempt: int, base_delay: float = 2.0, max_delay: float = 60.0) -> float:
    """
    Backoff before reconnect attempt ``attempt`` (1-based).

    Doubles from ``base_delay`` and saturates at ``max_delay``.
    """
    exponent = min(max(attempt, 1) - 1, 32)
    return min(base_delay * 2 ** exponent, max_delay)


class PushChannelManager:
    """
    Keeps a single live subscription open and feeds its events to a listener.

    States: DISCONNECTED -> CONNECTING -> CONNECTED -> (CLOSED | ERRORED)
    -> DISCONNECTED, with a backoff-delayed reconnect after every drop.
    """

    def __init__(
        self,
        chain: ChainClient,
        listener: ChannelListener,
        base_delay: float = 2.0,
        max_delay: float = 60.0,
        on_error: Optional[Callable[[BaseException], None]] = None
    ):
        self._chain = chain
        self._listener = listener
        self.base_delay = base_delay
        self.max_delay = max_delay

        self.state: ChannelState = ChannelState.DISCONNECTED
        self._subscription: Optional[PurchaseSubscription] = None
        self._reader = DeferredTask("push-channel-reader", on_error=on_error)
        self._reconnect = DeferredTask("push-channel-reconnect", on_error=on_error)
        self._stopping: bool = False

        # Statistics
        self.total_connects: int = 0
        self.total_drops: int = 0
        self.total_events: int = 0

    @property
    def connected(self) -> bool:
        return self.state == ChannelState.CONNECTED

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect.armed

    def _set_state(self, state: ChannelState):
        if state != self.state:
            logger.debug(f"Push channel {self.state.value} -> {state.value}")
            self.state = state

    async def start(self):
        """Open the channel, also after a previous stop()"""
        self._stopping = False
        await self.connect()

    async def connect(self):
        """
        Open a fresh subscription, replacing any previous one.

        A failed subscribe is handled like a dropped connection.
        """
        if self._stopping:
            return

        await self._teardown()
        self._set_state(ChannelState.CONNECTING)

        try:
            subscription = await self._chain.subscribe()
        except ChainConnectionError as e:
            await self._handle_drop(ChannelState.ERRORED, str(e))
            return

        if self._stopping:
            await subscription.close()
            return

        self._subscription = subscription
        self._set_state(ChannelState.CONNECTED)
        self.total_connects += 1
        logger.info("Push channel connected")

        await self._listener.on_channel_up()

        self._reader.arm(0, lambda: self._consume(subscription))

    async def stop(self):
        """Cancel pending reconnects and unsubscribe"""
        self._stopping = True
        await self._reconnect.wait_cancelled()
        await self._reader.wait_cancelled()
        await self._close_subscription()
        self._set_state(ChannelState.DISCONNECTED)
        logger.info("Push channel stopped")

    async def _consume(self, subscription: PurchaseSubscription):
        try:
            async for event in subscription:
                self.total_events += 1
                await self._listener.on_live_event(event)
        except ChainConnectionError as e:
            await self._handle_drop(ChannelState.ERRORED, str(e))
            return

        await self._handle_drop(ChannelState.CLOSED, "stream closed")

    async def _handle_drop(self, state: ChannelState, reason: str):
        if self._stopping:
            return

        self._set_state(state)
        self.total_drops += 1

        if state == ChannelState.ERRORED:
            logger.error(f"Push channel error: {reason}")
        else:
            logger.warning(f"Push channel closed: {reason}")

        await self._close_subscription()
        self._set_state(ChannelState.DISCONNECTED)

        await self._listener.on_channel_down(reason)
        self._schedule_reconnect()

    def _schedule_reconnect(self):
        attempt = self._listener.record_reconnect_attempt()
        delay = reconnect_delay(attempt, self.base_delay, self.max_delay)

        logger.warning(f"Reconnecting push channel in {delay:.0f}s (attempt {attempt})")
        self._reconnect.arm(delay, self.connect)

    async def _teardown(self):
        """Stop the previous reader and drop its subscription"""
        await self._reader.wait_cancelled()
        await self._close_subscription()

    async def _close_subscription(self):
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.close()

    def get_status(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'reconnect_scheduled': self.reconnect_scheduled,
            'total_connects': self.total_connects,
            'total_drops': self.total_drops,
            'total_events': self.total_events,
        }
