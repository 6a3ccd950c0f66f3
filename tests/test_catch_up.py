"""
Unit Tests for the Catch-Up Fetcher
"""

import pytest

from buybot.services.chain.errors import ChainQueryError, ChainTimeoutError
from buybot.services.ingestion.catch_up import CatchUpFetcher
from buybot.services.ingestion.dedup import DedupLedger
from buybot.services.ingestion.state import IngestionState


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def fetcher(chain, dispatched):
    ledger = DedupLedger()

    async def dispatch(event, source):
        if not ledger.admit(event.tx_hash):
            return False
        dispatched.append((event.tx_hash, source))
        return True

    fetcher = CatchUpFetcher(chain, dispatch)
    fetcher.ledger = ledger
    return fetcher


def outage_state(start: int) -> IngestionState:
    return IngestionState(last_known_block=start, ws_connected=True, outage_start_block=start)


class TestCatchUpFetcher:
    """Test gap recovery after a reconnect"""

    @pytest.mark.asyncio
    async def test_queries_outage_range_once(self, chain, fetcher, dispatched):
        """Disconnect at B, reconnect at H > B: exactly [B, H] is queried"""
        chain.head = 310
        chain.add_event("0xa", 300)
        chain.add_event("0xb", 305)
        chain.add_event("0xc", 311)
        state = outage_state(300)

        result = await fetcher.run(state)

        assert chain.range_queries == [(300, 310)]
        assert dispatched == [("0xa", "catch_up"), ("0xb", "catch_up")]
        assert state.outage_start_block == 0
        assert state.last_known_block == 310

        assert result.from_block == 300
        assert result.to_block == 310
        assert result.events_found == 2
        assert result.events_admitted == 2

    @pytest.mark.asyncio
    async def test_no_query_without_gap(self, chain, fetcher):
        """head == B at reconnect performs no range query"""
        chain.head = 300
        state = outage_state(300)

        result = await fetcher.run(state)

        assert result is None
        assert chain.range_queries == []
        assert state.outage_start_block == 0
        assert state.last_known_block == 300

    @pytest.mark.asyncio
    async def test_noop_without_outage(self, chain, fetcher):
        state = IngestionState(last_known_block=100, ws_connected=True)

        assert await fetcher.run(state) is None
        assert chain.head_queries == 0
        assert fetcher.total_runs == 0

    @pytest.mark.asyncio
    async def test_noop_without_watermark(self, chain, fetcher):
        state = IngestionState(last_known_block=0, outage_start_block=50)

        assert await fetcher.run(state) is None
        assert chain.head_queries == 0

    @pytest.mark.asyncio
    async def test_duplicates_absorbed(self, chain, fetcher, dispatched):
        """Events already delivered live are not forwarded again"""
        chain.head = 310
        chain.add_event("0xa", 302)
        chain.add_event("0xb", 304)
        fetcher.ledger.admit("0xa")

        result = await fetcher.run(outage_state(300))

        assert dispatched == [("0xb", "catch_up")]
        assert result.events_found == 2
        assert result.events_admitted == 1

    @pytest.mark.asyncio
    async def test_query_failure_clears_outage_keeps_watermark(self, chain, fetcher, dispatched):
        chain.head = 310
        chain.query_error = ChainQueryError("rpc down")
        state = outage_state(300)

        result = await fetcher.run(state)

        assert result is None
        assert dispatched == []
        assert state.outage_start_block == 0
        assert state.in_outage is False
        assert state.last_known_block == 300
        assert fetcher.total_failures == 1

    @pytest.mark.asyncio
    async def test_head_timeout_clears_outage(self, chain, fetcher):
        chain.head_error = ChainTimeoutError("head timed out")
        state = outage_state(300)

        assert await fetcher.run(state) is None
        assert chain.range_queries == []
        assert state.outage_start_block == 0
        assert state.last_known_block == 300

    @pytest.mark.asyncio
    async def test_no_second_query_after_failure(self, chain, fetcher):
        """A failed run ends the outage; running again does not re-query"""
        chain.head = 310
        chain.query_error = ChainQueryError("rpc down")
        state = outage_state(300)
        await fetcher.run(state)

        chain.query_error = None
        chain.head = 320

        assert await fetcher.run(state) is None
        assert chain.range_queries == [(300, 310)]
        assert state.last_known_block == 300
