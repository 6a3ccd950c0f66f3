"""
ETH Price Feed

ETH/USD from CoinGecko with periodic refresh. Failures keep the last known
(or fallback) price.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from buybot.core.config import Settings
from buybot.services.ingestion.timers import DeferredTask


class EthPriceFeed:
    """
    Cached ETH/USD price.

    Example:
        ```python
        feed = EthPriceFeed(api_url=settings.PRICE_API_URL)
        await feed.refresh()
        feed.start()        # refresh every refresh_interval seconds
        print(feed.price)
        await feed.stop()
        ```
    """

    def __init__(
        self,
        api_url: str,
        fallback_price: float = 2500.0,
        refresh_interval: float = 600.0,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_url = api_url
        self.refresh_interval = refresh_interval
        self.price: float = fallback_price
        self.last_updated: Optional[datetime] = None

        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._refresh_task = DeferredTask("price-refresh")

        # Statistics
        self.total_refreshes: int = 0
        self.total_failures: int = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> "EthPriceFeed":
        return cls(
            api_url=settings.PRICE_API_URL,
            fallback_price=settings.FALLBACK_ETH_PRICE,
            refresh_interval=settings.PRICE_REFRESH_INTERVAL,
        )

    async def refresh(self) -> float:
        """
        Fetch the current price.

        Returns:
            The new price, or the previous one if the request failed
        """
        self.total_refreshes += 1

        try:
            response = await self._client.get(self.api_url)
            response.raise_for_status()
            price = float(response.json()['ethereum']['usd'])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            self.total_failures += 1
            logger.warning(f"⚠️ Using fallback ETH price: ${self.price} ({e})")
            return self.price

        self.price = price
        self.last_updated = datetime.now(timezone.utc)
        logger.info(f"💰 ETH Price: ${price}")
        return price

    def start(self):
        """Refresh periodically in the background"""
        self._refresh_task.arm(self.refresh_interval, self._refresh_loop)

    async def _refresh_loop(self):
        while True:
            await self.refresh()
            await asyncio.sleep(self.refresh_interval)

    async def stop(self):
        await self._refresh_task.wait_cancelled()
        await self._client.aclose()

    def get_status(self) -> Dict[str, Any]:
        return {
            'price': self.price,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None,
            'total_refreshes': self.total_refreshes,
            'total_failures': self.total_failures,
        }
