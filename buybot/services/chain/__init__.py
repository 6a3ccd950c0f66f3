"""
Chain Services Package

Presale contract access: live log subscription, range queries, decoding.
"""

from buybot.services.chain.errors import (
    ErrorCategory,
    ChainError,
    ChainConnectionError,
    ChainQueryError,
    ChainTimeoutError,
    EventDecodeError
)
from buybot.services.chain.contracts import (
    PRESALE_ABI,
    PRESALE_CONTRACT_ADDRESS,
    PURCHASE_EVENT_NAME,
    PURCHASE_EVENT_TOPIC
)
from buybot.services.chain.events import (
    PurchaseEvent,
    decode_purchase
)
from buybot.services.chain.client import (
    ChainClient,
    PurchaseSubscription
)

__all__ = [
    # Errors
    'ErrorCategory',
    'ChainError',
    'ChainConnectionError',
    'ChainQueryError',
    'ChainTimeoutError',
    'EventDecodeError',

    # Contracts
    'PRESALE_ABI',
    'PRESALE_CONTRACT_ADDRESS',
    'PURCHASE_EVENT_NAME',
    'PURCHASE_EVENT_TOPIC',

    # Events
    'PurchaseEvent',
    'decode_purchase',

    # Client
    'ChainClient',
    'PurchaseSubscription',
]
