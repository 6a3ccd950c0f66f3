from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Telegram
    BOT_TOKEN: Optional[str] = None
    GROUP_ID: Optional[str] = None
    VIDEO_FILE_ID: Optional[str] = None

    # Chain
    RPC_URL: Optional[str] = None
    WS_RPC_URL: Optional[str] = None
    PRESALE_CONTRACT: str = "0xC53fa85B734717CFd999343f6024165f0eC423b7"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # Ingestion
    DEDUP_CAPACITY: int = 500
    RECONNECT_BASE_DELAY: float = 2.0  # seconds
    RECONNECT_MAX_DELAY: float = 60.0  # seconds
    POLL_GRACE_PERIOD: float = 120.0  # seconds
    POLL_INTERVAL: float = 60.0  # seconds
    QUERY_TIMEOUT: float = 30.0  # seconds
    FATAL_EXIT_DELAY: float = 5.0  # seconds
    HEARTBEAT_INTERVAL: float = 300.0  # 5 minutes

    # Price feed
    PRICE_API_URL: str = (
        "https://api.coingecko.com/api/v3/simple/price?ids=ethereum&vs_currencies=usd"
    )
    PRICE_REFRESH_INTERVAL: float = 600.0  # 10 minutes
    FALLBACK_ETH_PRICE: float = 2500.0

    # Presale / presentation
    BONUS_MULTIPLIER: int = 2  # 200% bonus, stage 1
    TOKEN_SYMBOL: str = "MMV"
    BUY_URL: str = "https://www.metamemevault.com/"
    LOCK_URL: str = "https://www.metamemevault.com/memetreasury"
    EXPLORER_TX_URL: str = "https://etherscan.io/tx/"

    # Demo mode
    DEMO_MIN_DELAY: float = 1200.0  # 20 minutes
    DEMO_MAX_DELAY: float = 1800.0  # 30 minutes
    TOKEN_PRICE_USD: float = 0.008

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    def missing_live_settings(self) -> List[str]:
        """Names of settings a live (non-demo) run cannot start without"""
        required = ["BOT_TOKEN", "GROUP_ID", "VIDEO_FILE_ID", "RPC_URL", "WS_RPC_URL"]
        return [name for name in required if not getattr(self, name)]

    def missing_demo_settings(self) -> List[str]:
        required = ["BOT_TOKEN", "GROUP_ID", "VIDEO_FILE_ID"]
        return [name for name in required if not getattr(self, name)]


@lru_cache
def get_settings() -> Settings:
    return Settings()
