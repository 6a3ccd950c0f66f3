"""
Catch-Up Fetcher

Closes the gap left by a push-channel outage with one bounded range query
over [outage start, current head].
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from loguru import logger

from buybot.services.chain.client import ChainClient
from buybot.services.chain.errors import ChainQueryError
from buybot.services.chain.events import PurchaseEvent
from buybot.services.ingestion.state import IngestionState


Dispatch = Callable[[PurchaseEvent, str], Awaitable[bool]]


@dataclass
class CatchUpResult:
    """Outcome of a completed catch-up run"""
    from_block: int
    to_block: int
    events_found: int
    events_admitted: int


class CatchUpFetcher:
    """
    Runs once per reconnect. The caller holds the coordinator lock.

    The outage marker is cleared once the run ends. On success the
    watermark moves to the queried head; on a query failure it stays where
    it was, so a later standby poll rescans from there.
    """

    def __init__(self, chain: ChainClient, dispatch: Dispatch):
        self._chain = chain
        self._dispatch = dispatch

        # Statistics
        self.total_runs: int = 0
        self.total_failures: int = 0
        self.last_result: Optional[CatchUpResult] = None

    async def run(self, state: IngestionState) -> Optional[CatchUpResult]:
        """
        Fetch and dispatch events missed during the outage.

        Returns:
            The run's result, or None when there was nothing to do or the
            query failed
        """
        if not state.in_outage:
            return None

        start = state.outage_start_block
        self.total_runs += 1

        try:
            head = await self._chain.get_head()

            if head <= start:
                logger.info(f"No gap to catch up (outage block {start}, head {head})")
                state.clear_outage()
                return None

            logger.info(f"Catching up blocks {start}-{head}")
            events = await self._chain.query_range(start, head)

        except ChainQueryError as e:
            self.total_failures += 1
            logger.error(
                f"Catch-up from block {start} failed: {e}. "
                f"Watermark stays at {state.last_known_block}"
            )
            state.clear_outage()
            return None

        admitted = 0
        for event in events:
            if await self._dispatch(event, "catch_up"):
                admitted += 1

        state.advance_watermark(head)
        state.clear_outage()

        result = CatchUpResult(
            from_block=start,
            to_block=head,
            events_found=len(events),
            events_admitted=admitted,
        )
        self.last_result = result

        logger.info(
            f"Catch-up complete: blocks {start}-{head}, "
            f"{len(events)} events found, {admitted} new"
        )
        return result
