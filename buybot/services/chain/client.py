"""
Chain Client

Push and pull access to presale purchase events:
- WebSocket log subscription (push channel)
- Bounded eth_getLogs range queries (pull channel)
- Chain head queries
- ABI decoding into PurchaseEvent, dropping malformed logs
"""

import asyncio
from collections.abc import Mapping
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

import aiohttp
from loguru import logger
from web3 import AsyncWeb3, AsyncHTTPProvider, WebSocketProvider
from web3.exceptions import Web3Exception
from websockets.exceptions import ConnectionClosedOK, WebSocketException

from buybot.services.chain.contracts import (
    PRESALE_ABI, PRESALE_CONTRACT_ADDRESS, PURCHASE_EVENT_NAME, PURCHASE_EVENT_TOPIC
)
from buybot.services.chain.errors import (
    ChainConnectionError, ChainQueryError, ChainTimeoutError, EventDecodeError
)
from buybot.services.chain.events import PurchaseEvent, decode_purchase


# Failures raised by web3 transports that mean "try again later"
TRANSPORT_ERRORS = (Web3Exception, WebSocketException, aiohttp.ClientError, OSError, ValueError)

UNSUBSCRIBE_TIMEOUT = 5  # seconds


class PurchaseSubscription:
    """
    Live stream of purchase events from a WebSocket log subscription.

    Iterating yields decoded events until the connection closes (iteration
    ends) or fails (ChainConnectionError). Logs that cannot be decoded are
    logged and skipped.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        subscription_id: str,
        decode: Callable[[Any], PurchaseEvent]
    ):
        self._w3 = w3
        self.subscription_id = subscription_id
        self._decode = decode
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[PurchaseEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[PurchaseEvent]:
        try:
            async for payload in self._w3.socket.process_subscriptions():
                log = payload.get('result') if isinstance(payload, Mapping) else None
                if log is None:
                    continue
                try:
                    event = self._decode(log)
                except EventDecodeError as e:
                    logger.error(f"Dropping undecodable live log: {e}")
                    continue
                yield event
        except ConnectionClosedOK:
            logger.info(f"Subscription {self.subscription_id} closed by remote")
        except TRANSPORT_ERRORS as e:
            raise ChainConnectionError(f"Subscription stream failed: {e}", cause=e) from e

    async def close(self):
        """Unsubscribe and disconnect. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        try:
            await asyncio.wait_for(
                self._w3.eth.unsubscribe(self.subscription_id),
                timeout=UNSUBSCRIBE_TIMEOUT
            )
        except (asyncio.TimeoutError, *TRANSPORT_ERRORS) as e:
            # The connection is usually already gone when we tear down
            logger.debug(f"Unsubscribe of {self.subscription_id} failed: {e}")

        try:
            await self._w3.provider.disconnect()
        except TRANSPORT_ERRORS as e:
            logger.debug(f"WebSocket disconnect failed: {e}")


class ChainClient:
    """
    web3-backed access to presale purchase events.

    Example:
        ```python
        client = ChainClient(http_url=RPC_URL, ws_url=WS_RPC_URL)

        head = await client.get_head()
        events = await client.query_range(head - 10, head)

        subscription = await client.subscribe()
        async for event in subscription:
            print(event.tx_hash)
        ```
    """

    def __init__(
        self,
        http_url: str,
        ws_url: str,
        contract_address: str = PRESALE_CONTRACT_ADDRESS,
        query_timeout: float = 30.0,
        bonus_multiplier: int = 2
    ):
        self.http_url = http_url
        self.ws_url = ws_url
        self.contract_address = AsyncWeb3.to_checksum_address(contract_address)
        self.query_timeout = query_timeout
        self.bonus_multiplier = bonus_multiplier

        self._w3: Optional[AsyncWeb3] = None
        self._event = None

        logger.info(f"ChainClient initialized for contract {self.contract_address}")

    def _get_web3(self) -> AsyncWeb3:
        """HTTP connection used for pull queries, created on first use"""
        if self._w3 is None:
            self._w3 = AsyncWeb3(AsyncHTTPProvider(
                self.http_url,
                request_kwargs={'timeout': aiohttp.ClientTimeout(total=self.query_timeout)}
            ))
        return self._w3

    def _get_event(self):
        if self._event is None:
            contract = self._get_web3().eth.contract(
                address=self.contract_address,
                abi=PRESALE_ABI
            )
            self._event = getattr(contract.events, PURCHASE_EVENT_NAME)()
        return self._event

    @property
    def log_filter(self) -> dict:
        return {
            'address': self.contract_address,
            'topics': [PURCHASE_EVENT_TOPIC],
        }

    def decode_log(self, log: Any) -> PurchaseEvent:
        """
        Decode a raw log into a PurchaseEvent.

        Raises:
            EventDecodeError: If the log does not match the ABI or is malformed
        """
        try:
            event_data = self._get_event().process_log(log)
        except (Web3Exception, KeyError, TypeError, ValueError) as e:
            raise EventDecodeError(f"Cannot decode log: {e}", cause=e) from e
        return decode_purchase(event_data, self.bonus_multiplier)

    async def _bounded(self, awaitable: Awaitable, operation: str) -> Any:
        """Await a pull-channel call under the query timeout"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.query_timeout)
        except asyncio.TimeoutError as e:
            raise ChainTimeoutError(
                f"{operation} timed out after {self.query_timeout}s", cause=e
            ) from e
        except TRANSPORT_ERRORS as e:
            raise ChainQueryError(f"{operation} failed: {e}", cause=e) from e

    async def get_head(self) -> int:
        """
        Get the current chain head.

        Raises:
            ChainQueryError: On transport failure or timeout
        """
        w3 = self._get_web3()
        return int(await self._bounded(w3.eth.block_number, "get_head"))

    async def query_range(self, from_block: int, to_block: int) -> List[PurchaseEvent]:
        """
        Fetch purchase events in an inclusive block range.

        Args:
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            Decoded events in chain order; undecodable logs are dropped

        Raises:
            ValueError: If to_block < from_block
            ChainQueryError: On transport failure or timeout
        """
        if to_block < from_block:
            raise ValueError(f"Invalid block range {from_block}-{to_block}")

        w3 = self._get_web3()
        filter_params = {
            'fromBlock': from_block,
            'toBlock': to_block,
            **self.log_filter,
        }

        logs = await self._bounded(
            w3.eth.get_logs(filter_params),
            f"get_logs {from_block}-{to_block}"
        )

        events = []
        for log in logs:
            try:
                events.append(self.decode_log(log))
            except EventDecodeError as e:
                logger.error(f"Dropping undecodable log in {from_block}-{to_block}: {e}")

        logger.debug(f"Found {len(events)} purchase events in blocks {from_block}-{to_block}")
        return events

    async def subscribe(self) -> PurchaseSubscription:
        """
        Open a WebSocket subscription to purchase logs.

        Raises:
            ChainConnectionError: If the connection or subscription fails
        """
        w3 = None
        try:
            w3 = await asyncio.wait_for(
                AsyncWeb3(WebSocketProvider(self.ws_url)),
                timeout=self.query_timeout
            )
            subscription_id = await asyncio.wait_for(
                w3.eth.subscribe('logs', self.log_filter),
                timeout=self.query_timeout
            )
        except (asyncio.TimeoutError, *TRANSPORT_ERRORS) as e:
            if w3 is not None:
                try:
                    await w3.provider.disconnect()
                except TRANSPORT_ERRORS as disconnect_error:
                    logger.debug(f"WebSocket disconnect failed: {disconnect_error}")
            raise ChainConnectionError(f"Subscribe failed: {e!r}", cause=e) from e

        logger.info(f"Subscribed to {PURCHASE_EVENT_NAME} logs ({subscription_id})")
        return PurchaseSubscription(w3, subscription_id, self.decode_log)

    async def close(self):
        """Close the pull-channel connection"""
        if self._w3 and hasattr(self._w3.provider, 'disconnect'):
            await self._w3.provider.disconnect()
        logger.info("ChainClient closed")
