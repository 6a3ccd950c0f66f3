"""
Buy alert formatting

Tier labels, number/address helpers and the HTML caption posted to Telegram.
"""

import html
from decimal import Decimal
from typing import NamedTuple, Optional, Union

from buybot.services.chain.events import PurchaseEvent


Number = Union[int, float, Decimal]


class Tier(NamedTuple):
    emoji: str
    label: str


# (minimum purchased tokens, emoji count, label); whale = $20k+ = 2.5M tokens
TIERS = [
    (2_500_000, 7, 'WHALE'),
    (1_000_000, 6, 'SHARK'),
    (500_000, 5, 'DOLPHIN'),
    (100_000, 4, 'FISH'),
    (50_000, 3, 'SHRIMP'),
    (10_000, 2, 'PLANKTON'),
]

TIER_EMOJI = '🤑'


def get_tier(amount: Number) -> Tier:
    """Tier for a purchase of ``amount`` base tokens"""
    for threshold, count, label in TIERS:
        if amount >= threshold:
            return Tier(TIER_EMOJI * count, label)
    return Tier(TIER_EMOJI, 'DUST')


def format_number(value: Number) -> str:
    """Whole number with thousands separators: 1234567.8 -> '1,234,568'"""
    return f"{Decimal(str(value)):,.0f}"


def format_address(address: str) -> str:
    """Shorten an address: 0x1234...abcd"""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def format_paid_amount(amount: Number, payment_method: str) -> str:
    """4 decimals for ETH, 2 for stablecoins"""
    decimals = 4 if payment_method == 'ETH' else 2
    return f"{Decimal(str(amount)):.{decimals}f} {html.escape(payment_method)}"


def estimate_usd(event: PurchaseEvent, eth_price: Optional[float]) -> Optional[Decimal]:
    """USD value of the payment, None for ETH payments without a price"""
    if event.is_eth_payment:
        if not eth_price:
            return None
        return event.paid_amount * Decimal(str(eth_price))
    return event.paid_amount


def build_caption(
    event: PurchaseEvent,
    eth_price: Optional[float] = None,
    token_symbol: str = 'MMV',
    explorer_tx_url: Optional[str] = 'https://etherscan.io/tx/'
) -> str:
    """
    HTML caption for a buy alert.

    Args:
        event: Purchase to announce
        eth_price: ETH/USD used for the dollar estimate of ETH payments
        token_symbol: Presale token symbol
        explorer_tx_url: Transaction link prefix, None to omit the link
    """
    tier = get_tier(event.base_amount)

    bonus_percent = 0
    multiplier = Decimal(1)
    if event.base_amount > 0:
        bonus_ratio = event.bonus_amount / event.base_amount
        bonus_percent = int(bonus_ratio * 100)
        multiplier = 1 + bonus_ratio

    display_amount = format_paid_amount(event.paid_amount, event.payment_method)
    usd_value = estimate_usd(event, eth_price)
    if usd_value is not None and event.is_eth_payment:
        display_amount += f" (≈ ${format_number(usd_value)})"

    lines = [
        f"{tier.emoji} <b>{tier.label} ALERT!</b>",
        "",
        f"💰 <b>{display_amount}</b> → <b>{format_number(event.total_amount)} ${token_symbol}</b>",
        f"🎁 Bonus: +{format_number(event.bonus_amount)} {token_symbol} ({bonus_percent}%)",
        "",
        f"👤 <code>{format_address(event.buyer)}</code>",
    ]

    if explorer_tx_url:
        lines.append(f'🔗 <a href="{explorer_tx_url}{event.tx_hash}">Etherscan</a>')

    lines += [
        "",
        f"⚡ Stage 1 won't last. Get {format_number(multiplier)}X tokens NOW.",
    ]
    return "\n".join(lines)
