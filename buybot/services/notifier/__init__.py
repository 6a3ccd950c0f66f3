"""
Notifier Package

Sink interface and buy alert formatting. The Telegram sink lives in
buybot.services.notifier.telegram.
"""

from buybot.services.notifier.base import NotificationSink
from buybot.services.notifier.formatting import (
    Tier,
    build_caption,
    format_address,
    format_number,
    get_tier
)

__all__ = [
    'NotificationSink',
    'Tier',
    'build_caption',
    'format_address',
    'format_number',
    'get_tier',
]
