"""ETH/USD pricing"""

from buybot.services.pricing.price_feed import EthPriceFeed

__all__ = ['EthPriceFeed']
