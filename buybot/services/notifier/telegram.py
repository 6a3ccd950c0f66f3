"""
Telegram Notifier

Posts buy alerts to a group as an animation with an HTML caption and
Buy / Lock buttons.
"""

from typing import Any, Dict, Optional

from loguru import logger
from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import TelegramError

from buybot.core.config import Settings
from buybot.services.chain.events import PurchaseEvent
from buybot.services.notifier.formatting import (
    build_caption, format_address, format_number, get_tier
)
from buybot.services.pricing.price_feed import EthPriceFeed


class TelegramNotifier:
    """Notification sink backed by a Telegram bot"""

    def __init__(
        self,
        bot: Bot,
        chat_id: str,
        animation_file_id: str,
        price_feed: Optional[EthPriceFeed] = None,
        token_symbol: str = 'MMV',
        buy_url: str = 'https://www.metamemevault.com/',
        lock_url: str = 'https://www.metamemevault.com/memetreasury',
        explorer_tx_url: Optional[str] = 'https://etherscan.io/tx/'
    ):
        """
        Args:
            bot: python-telegram-bot Bot
            chat_id: Group to post to
            animation_file_id: Telegram file id of the alert animation
            price_feed: Source of ETH/USD for dollar estimates
            token_symbol: Presale token symbol
            buy_url: Target of the Buy button
            lock_url: Target of the Lock button
            explorer_tx_url: Transaction link prefix, None to omit the link
        """
        self.bot = bot
        self.chat_id = chat_id
        self.animation_file_id = animation_file_id
        self.price_feed = price_feed
        self.token_symbol = token_symbol
        self.buy_url = buy_url
        self.lock_url = lock_url
        self.explorer_tx_url = explorer_tx_url

        # Statistics
        self.total_sent: int = 0
        self.total_failed: int = 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        price_feed: Optional[EthPriceFeed] = None,
        include_explorer_link: bool = True
    ) -> "TelegramNotifier":
        return cls(
            bot=Bot(settings.BOT_TOKEN),
            chat_id=settings.GROUP_ID,
            animation_file_id=settings.VIDEO_FILE_ID,
            price_feed=price_feed,
            token_symbol=settings.TOKEN_SYMBOL,
            buy_url=settings.BUY_URL,
            lock_url=settings.LOCK_URL,
            explorer_tx_url=settings.EXPLORER_TX_URL if include_explorer_link else None,
        )

    async def start(self):
        await self.bot.initialize()
        logger.info(f"Telegram notifier ready, posting to {self.chat_id}")

    async def stop(self):
        await self.bot.shutdown()

    def _keyboard(self) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup([
            [
                InlineKeyboardButton(f"🚀 Buy ${self.token_symbol}", url=self.buy_url),
                InlineKeyboardButton(f"🔒 Lock ${self.token_symbol}", url=self.lock_url),
            ]
        ])

    async def deliver(self, event: PurchaseEvent) -> bool:
        """
        Send a buy alert.

        Returns:
            False if Telegram rejected the message (logged, not retried)
        """
        eth_price = self.price_feed.price if self.price_feed else None
        caption = build_caption(
            event,
            eth_price=eth_price,
            token_symbol=self.token_symbol,
            explorer_tx_url=self.explorer_tx_url,
        )

        try:
            await self.bot.send_animation(
                chat_id=self.chat_id,
                animation=self.animation_file_id,
                caption=caption,
                parse_mode=ParseMode.HTML,
                reply_markup=self._keyboard(),
            )
        except TelegramError as e:
            self.total_failed += 1
            logger.error(f"❌ Error sending alert for {event.tx_hash}: {e}")
            return False

        self.total_sent += 1
        tier = get_tier(event.base_amount)
        logger.info(
            f"✅ {tier.label}: {format_number(event.total_amount)} {self.token_symbol} "
            f"by {format_address(event.buyer)}"
        )
        return True

    def get_status(self) -> Dict[str, Any]:
        return {
            'chat_id': self.chat_id,
            'total_sent': self.total_sent,
            'total_failed': self.total_failed,
        }
