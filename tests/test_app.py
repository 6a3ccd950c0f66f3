"""
Tests for settings and the process entry point
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from buybot.core.config import Settings
from buybot.main import BuyBotApp, main, parse_args
from buybot.services.chain.errors import ChainQueryError


def make_settings(**overrides) -> Settings:
    values = {
        'BOT_TOKEN': '123:abc',
        'GROUP_ID': '-100123',
        'VIDEO_FILE_ID': 'file',
        'RPC_URL': 'http://localhost:8545',
        'WS_RPC_URL': 'ws://localhost:8546',
        'FATAL_EXIT_DELAY': 0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:

    def test_defaults(self):
        settings = make_settings()

        assert settings.DEDUP_CAPACITY == 500
        assert settings.RECONNECT_BASE_DELAY == 2.0
        assert settings.RECONNECT_MAX_DELAY == 60.0
        assert settings.POLL_GRACE_PERIOD == 120.0
        assert settings.POLL_INTERVAL == 60.0
        assert settings.FALLBACK_ETH_PRICE == 2500.0

    def test_missing_live_settings(self):
        settings = make_settings(RPC_URL=None, WS_RPC_URL=None)

        assert settings.missing_live_settings() == ['RPC_URL', 'WS_RPC_URL']
        assert settings.missing_demo_settings() == []

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv('POLL_INTERVAL', '15')

        settings = Settings(_env_file=None)

        assert settings.POLL_INTERVAL == 15.0


class TestEntryPoint:

    def test_parse_args(self):
        args = parse_args(['--demo', '--log-level', 'DEBUG'])

        assert args.demo is True
        assert args.log_level == 'DEBUG'

    @pytest.mark.asyncio
    async def test_missing_settings_exit_code(self):
        settings = make_settings(BOT_TOKEN=None)

        with patch('buybot.main.get_settings', return_value=settings), \
                patch('buybot.main.setup_logging'):
            assert await main(parse_args([])) == 2

    @pytest.mark.asyncio
    async def test_fatal_fault_exit_code(self):
        app = BuyBotApp(make_settings())
        app._build = Mock()

        async def failing_start():
            app.on_fatal(RuntimeError("boom"))

        app._start = failing_start

        assert await app.run() == 1
        assert isinstance(app.fatal_error, RuntimeError)

    @pytest.mark.asyncio
    async def test_startup_chain_error_is_fatal(self):
        app = BuyBotApp(make_settings())
        app._build = Mock()
        app._start = AsyncMock(side_effect=ChainQueryError("rpc down"))

        assert await app.run() == 1

    @pytest.mark.asyncio
    async def test_clean_shutdown(self):
        app = BuyBotApp(make_settings())
        app._build = Mock()

        async def start_then_stop():
            app.request_shutdown()

        app._start = start_then_stop

        assert await app.run() == 0
