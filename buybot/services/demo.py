"""
Demo Purchase Simulator

Posts simulated purchases to the sink at random intervals, for showing the
alert format without on-chain activity.
"""

import asyncio
import random
from decimal import Decimal
from typing import Callable, Optional

from loguru import logger

from buybot.core.config import Settings
from buybot.services.chain.events import PurchaseEvent
from buybot.services.ingestion.timers import DeferredTask
from buybot.services.notifier.base import NotificationSink
from buybot.services.pricing.price_feed import EthPriceFeed


ZERO_ADDRESS = '0x' + '0' * 40

# Weighted towards stablecoin payments
PAYMENT_METHODS = ['ETH', 'USDT', 'USDT']


def random_address(rng: random.Random) -> str:
    return '0x' + ''.join(rng.choice('0123456789abcdef') for _ in range(40))


class DemoPurchaseSimulator:
    """Generates 2-3 fake purchases per hour by default"""

    MIN_BASE_AMOUNT = 2500
    MAX_BASE_AMOUNT = 12249

    def __init__(
        self,
        sink: NotificationSink,
        price_feed: EthPriceFeed,
        token_price_usd: float = 0.008,
        bonus_multiplier: int = 2,
        min_delay: float = 1200.0,
        max_delay: float = 1800.0,
        rng: Optional[random.Random] = None,
        on_error: Optional[Callable[[BaseException], None]] = None
    ):
        self.sink = sink
        self.price_feed = price_feed
        self.token_price_usd = Decimal(str(token_price_usd))
        self.bonus_multiplier = bonus_multiplier
        self.min_delay = min_delay
        self.max_delay = max_delay
        self._rng = rng or random.Random()
        self._task = DeferredTask("demo-simulator", on_error=on_error)

        self.total_simulated: int = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        sink: NotificationSink,
        price_feed: EthPriceFeed,
        on_error: Optional[Callable[[BaseException], None]] = None
    ) -> "DemoPurchaseSimulator":
        return cls(
            sink=sink,
            price_feed=price_feed,
            token_price_usd=settings.TOKEN_PRICE_USD,
            bonus_multiplier=settings.BONUS_MULTIPLIER,
            min_delay=settings.DEMO_MIN_DELAY,
            max_delay=settings.DEMO_MAX_DELAY,
            on_error=on_error,
        )

    def generate(self) -> PurchaseEvent:
        """Build one random purchase"""
        base_amount = Decimal(self._rng.randint(self.MIN_BASE_AMOUNT, self.MAX_BASE_AMOUNT))
        usd_amount = base_amount * self.token_price_usd
        method = self._rng.choice(PAYMENT_METHODS)

        if method == 'ETH':
            eth_price = Decimal(str(self.price_feed.price))
            paid_amount = (usd_amount / eth_price).quantize(Decimal('0.0001'))
        else:
            paid_amount = usd_amount.quantize(Decimal('0.01'))

        return PurchaseEvent(
            tx_hash='0x' + '%064x' % self._rng.getrandbits(256),
            block_number=0,
            buyer=random_address(self._rng),
            base_amount=base_amount,
            bonus_amount=base_amount * self.bonus_multiplier,
            paid_amount=paid_amount,
            payment_method=method,
            referrer=ZERO_ADDRESS,
        )

    def next_delay(self) -> float:
        return self._rng.uniform(self.min_delay, self.max_delay)

    async def simulate_once(self) -> bool:
        event = self.generate()
        self.total_simulated += 1
        delivered = await self.sink.deliver(event)
        logger.info(
            f"Simulated purchase: {event.base_amount} base tokens, "
            f"{event.paid_amount} {event.payment_method}"
        )
        return delivered

    def start(self):
        logger.info(
            f"🎯 Simulating purchases every {self.min_delay:.0f}-{self.max_delay:.0f}s"
        )
        self._task.arm(0, self._run)

    async def _run(self):
        while True:
            await asyncio.sleep(self.next_delay())
            await self.simulate_once()

    async def stop(self):
        await self._task.wait_cancelled()
