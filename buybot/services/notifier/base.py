"""Notification sink interface"""

from typing import Protocol

from buybot.services.chain.events import PurchaseEvent


class NotificationSink(Protocol):
    """Accepts purchases for delivery. Delivery is best-effort."""

    async def deliver(self, event: PurchaseEvent) -> bool:
        """Return True if the notification went out, False if it was dropped"""
        ...
