"""
Shared fixtures: in-memory chain client, recording sink and event factory.
"""

import asyncio
from decimal import Decimal
from typing import List, Optional

import pytest

from buybot.services.chain.events import PurchaseEvent


BUYER = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb1"
ZERO_ADDRESS = "0x" + "0" * 40


def build_event(
    tx_hash: str,
    block_number: int,
    base_amount: str = "10000",
    paid_amount: str = "0.5",
    payment_method: str = "ETH",
    bonus_multiplier: int = 2
) -> PurchaseEvent:
    base = Decimal(base_amount)
    return PurchaseEvent(
        tx_hash=tx_hash,
        block_number=block_number,
        buyer=BUYER,
        base_amount=base,
        bonus_amount=base * bonus_multiplier,
        paid_amount=Decimal(paid_amount),
        payment_method=payment_method,
        referrer=ZERO_ADDRESS,
    )


class FakeSubscription:
    """Live stream fed by the test through a queue"""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def __aiter__(self):
        return self._events()

    async def _events(self):
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    def push(self, event: PurchaseEvent):
        self._queue.put_nowait(event)

    def fail(self, exc: BaseException):
        self._queue.put_nowait(exc)

    def end(self):
        self._queue.put_nowait(None)

    async def close(self):
        self.closed = True


class FakeChainClient:
    """Chain client backed by an in-memory list of purchases"""

    def __init__(self, head: int = 0):
        self.head = head
        self.events: List[PurchaseEvent] = []

        # Heads returned (in order) before falling back to ``head``
        self.scheduled_heads: List[int] = []

        # Seconds each head query takes
        self.head_delay: float = 0.0
        self.head_times: List[float] = []

        self.head_error: Optional[BaseException] = None
        self.query_error: Optional[BaseException] = None
        self.subscribe_errors: List[BaseException] = []

        self.head_queries = 0
        self.range_queries: List[tuple] = []
        self.subscriptions: List[FakeSubscription] = []

    def add_event(self, tx_hash: str, block_number: int, **kwargs) -> PurchaseEvent:
        event = build_event(tx_hash, block_number, **kwargs)
        self.events.append(event)
        return event

    async def get_head(self) -> int:
        self.head_queries += 1
        self.head_times.append(asyncio.get_running_loop().time())
        if self.head_delay:
            await asyncio.sleep(self.head_delay)
        if self.head_error is not None:
            raise self.head_error
        if self.scheduled_heads:
            return self.scheduled_heads.pop(0)
        return self.head

    async def query_range(self, from_block: int, to_block: int) -> List[PurchaseEvent]:
        self.range_queries.append((from_block, to_block))
        if self.query_error is not None:
            raise self.query_error
        return [e for e in self.events if from_block <= e.block_number <= to_block]

    async def subscribe(self) -> FakeSubscription:
        if self.subscribe_errors:
            raise self.subscribe_errors.pop(0)
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        return subscription

    async def close(self):
        pass


class RecordingSink:
    """Notification sink that remembers what it was given"""

    def __init__(self, result: bool = True, error: Optional[BaseException] = None):
        self.result = result
        self.error = error
        self.delivered: List[PurchaseEvent] = []

    @property
    def tx_hashes(self) -> List[str]:
        return [e.tx_hash for e in self.delivered]

    async def deliver(self, event: PurchaseEvent) -> bool:
        if self.error is not None:
            raise self.error
        self.delivered.append(event)
        return self.result


@pytest.fixture
def chain():
    return FakeChainClient(head=100)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_event():
    """Factory for PurchaseEvent"""
    return build_event


@pytest.fixture
def wait_until():
    """Poll a condition until it holds or the timeout expires"""

    async def _wait_until(predicate, timeout: float = 2.0, interval: float = 0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(interval)

    return _wait_until


@pytest.fixture
def make_sink():
    """Factory for RecordingSink with a fixed result or error"""
    return RecordingSink
