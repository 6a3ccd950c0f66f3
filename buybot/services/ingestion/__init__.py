"""
Ingestion Services Package

Exactly-once purchase delivery across the push channel, the standby poller
and reconnect catch-up.
"""

from buybot.services.ingestion.timers import DeferredTask
from buybot.services.ingestion.dedup import DedupLedger
from buybot.services.ingestion.state import IngestionState
from buybot.services.ingestion.catch_up import CatchUpFetcher, CatchUpResult
from buybot.services.ingestion.poller import StandbyPoller
from buybot.services.ingestion.push_channel import (
    ChannelState,
    PushChannelManager,
    reconnect_delay
)
from buybot.services.ingestion.coordinator import (
    IngestionConfig,
    IngestionCoordinator
)

__all__ = [
    'DeferredTask',
    'DedupLedger',
    'IngestionState',
    'CatchUpFetcher',
    'CatchUpResult',
    'StandbyPoller',
    'ChannelState',
    'PushChannelManager',
    'reconnect_delay',
    'IngestionConfig',
    'IngestionCoordinator',
]
