"""
Purchase Events

Typed representation of a decoded TokensPurchased log and the decoding
boundary that rejects malformed payloads.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, Mapping

from eth_utils import to_checksum_address
from web3 import Web3

from buybot.services.chain.contracts import TOKEN_DECIMALS, get_payment_decimals
from buybot.services.chain.errors import EventDecodeError


@dataclass(frozen=True)
class PurchaseEvent:
    """Standardized purchase object"""
    # Transaction info
    tx_hash: str
    block_number: int

    # Buyer info
    buyer: str  # Checksummed address

    # Amounts (token units, already scaled by decimals)
    base_amount: Decimal
    bonus_amount: Decimal
    paid_amount: Decimal

    # Payment
    payment_method: str  # "ETH", "USDT", ...
    referrer: str

    log_index: int = 0

    @property
    def total_amount(self) -> Decimal:
        return self.base_amount + self.bonus_amount

    @property
    def is_eth_payment(self) -> bool:
        return self.payment_method == 'ETH'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        data = asdict(self)
        for key in ('base_amount', 'bonus_amount', 'paid_amount'):
            data[key] = str(data[key])
        data['total_amount'] = str(self.total_amount)
        return data


def scale_amount(raw: Any, decimals: int) -> Decimal:
    """Convert an integer on-chain amount into token units"""
    return Decimal(int(raw)) / (Decimal(10) ** decimals)


def decode_purchase(event_data: Mapping[str, Any], bonus_multiplier: int = 2) -> PurchaseEvent:
    """
    Build a PurchaseEvent from a decoded web3 event.

    Args:
        event_data: EventData as returned by ``contract.events.X().process_log``
        bonus_multiplier: Stage bonus applied on top of the purchased amount

    Returns:
        Parsed purchase

    Raises:
        EventDecodeError: If a required field is missing or malformed
    """
    try:
        args = event_data['args']
        raw_hash = event_data['transactionHash']
        block_number = int(event_data['blockNumber'])
        log_index = int(event_data.get('logIndex') or 0)

        payment_method = str(args['paymentMethod'])
        base_amount = scale_amount(args['amount'], TOKEN_DECIMALS)
        paid_amount = scale_amount(
            args['ethAmount'],
            get_payment_decimals(payment_method)
        )
        buyer = to_checksum_address(args['buyer'])
        referrer = to_checksum_address(args['referrer'])
    except (KeyError, TypeError, ValueError) as e:
        raise EventDecodeError(f"Malformed purchase event: {e}", cause=e) from e

    tx_hash = raw_hash if isinstance(raw_hash, str) else Web3.to_hex(raw_hash)

    if not tx_hash:
        raise EventDecodeError("Purchase event without transaction hash")
    if block_number <= 0:
        raise EventDecodeError(f"Invalid block number {block_number} for {tx_hash}")
    if base_amount < 0 or paid_amount < 0:
        raise EventDecodeError(f"Negative amount in {tx_hash}")

    return PurchaseEvent(
        tx_hash=tx_hash,
        block_number=block_number,
        buyer=buyer,
        base_amount=base_amount,
        bonus_amount=base_amount * bonus_multiplier,
        paid_amount=paid_amount,
        payment_method=payment_method,
        referrer=referrer,
        log_index=log_index,
    )
