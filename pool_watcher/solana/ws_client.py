"""WebSocket client for pool account changes via Solana programSubscribe.

One connection per watched program. Yields RawAccountUpdate for every
programNotification; on disconnect it reconnects forever with exponential
backoff and escalates to ERROR once an outage outlasts the alert threshold.
Push delivery is best-effort: anything missed while disconnected is repaired
by the periodic resync, not here.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any

import websockets
from loguru import logger

from pool_watcher.exceptions import SubscriptionError
from pool_watcher.models.pool import RawAccountUpdate, UpdateSource, WatchedProgram
from pool_watcher.solana.backoff import ReconnectBackoff
from pool_watcher.solana.rpc_client import decode_account_data
from pool_watcher.watcher.metrics import WatcherMetrics

TRANSPORT_ERRORS = (
    websockets.WebSocketException,
    SubscriptionError,
    ConnectionError,
    OSError,
    TimeoutError,
)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ACTIVE = "active"


class ProgramSubscriptionClient:
    def __init__(
        self,
        ws_url: str,
        program: WatchedProgram,
        *,
        filters: list[dict] | None = None,
        commitment: str = "confirmed",
        open_timeout: float = 10.0,
        backoff: ReconnectBackoff | None = None,
        metrics: WatcherMetrics | None = None,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._ws_url = ws_url
        self._program = program
        self._filters = filters or []
        self._commitment = commitment
        self._open_timeout = open_timeout
        self._backoff = backoff or ReconnectBackoff()
        self._metrics = metrics
        self._connect = connect
        self._sleep = sleep
        self._ws: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._running = False
        self._message_count = 0
        self._reconnect_count = 0
        self._subscription_id: int | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def message_count(self) -> int:
        return self._message_count

    @property
    def reconnect_count(self) -> int:
        return self._reconnect_count

    @property
    def tag(self) -> str:
        return f"[FEED {self._program.label}]"

    async def updates(self) -> AsyncIterator[RawAccountUpdate]:
        """Account updates until ``stop()``; reconnects transparently."""
        self._running = True
        while self._running:
            try:
                self._state = ConnectionState.CONNECTING
                async with self._connect(
                    self._ws_url,
                    open_timeout=self._open_timeout,
                    ping_interval=30,
                    ping_timeout=10,
                    close_timeout=5,
                ) as ws:
                    self._ws = ws
                    self._state = ConnectionState.CONNECTED
                    await self._subscribe(ws)
                    self._state = ConnectionState.ACTIVE
                    outage = self._backoff.reset()
                    if outage > 0:
                        logger.info(f"{self.tag} Reconnected after {outage:.0f}s outage")
                    logger.info(f"{self.tag} programSubscribe active (id={self._subscription_id})")

                    async for message in ws:
                        if not self._running:
                            break
                        self._message_count += 1
                        update = self._parse_notification(message)
                        if update is not None:
                            yield update
                if self._running:
                    logger.warning(f"{self.tag} Server closed the subscription")
            except TRANSPORT_ERRORS as e:
                if self._running:
                    logger.warning(f"{self.tag} WS disconnected: {type(e).__name__}: {e}")
            finally:
                self._state = ConnectionState.DISCONNECTED
                self._ws = None
                self._subscription_id = None

            if self._running:
                await self._wait_before_reconnect()

    async def _wait_before_reconnect(self) -> None:
        self._reconnect_count += 1
        if self._metrics is not None:
            self._metrics.record_reconnect()
        delay = self._backoff.next_delay()
        if self._backoff.should_alert():
            logger.error(
                f"{self.tag} Push feed down for {self._backoff.outage_seconds():.0f}s "
                f"({self._backoff.attempts} attempts), still retrying"
            )
        logger.info(f"{self.tag} Reconnecting in {delay:.1f}s (reconnect #{self._reconnect_count})")
        await self._sleep(delay)

    async def _subscribe(self, ws: Any) -> None:
        params: dict[str, Any] = {"encoding": "base64", "commitment": self._commitment}
        if self._filters:
            params["filters"] = self._filters
        await ws.send(json.dumps({
            "jsonrpc": "2.0",
            "id": 1,
            "method": "programSubscribe",
            "params": [self._program.program_id, params],
        }))
        try:
            response = await asyncio.wait_for(ws.recv(), timeout=self._open_timeout)
            data = json.loads(response)
        except json.JSONDecodeError as e:
            raise SubscriptionError(f"bad subscribe confirmation: {e}") from e
        if "error" in data:
            raise SubscriptionError(f"programSubscribe rejected: {data['error']}")
        self._subscription_id = data.get("result")

    def _parse_notification(self, message: str | bytes) -> RawAccountUpdate | None:
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            return None
        if data.get("method") != "programNotification":
            return None

        # {"params": {"result": {"context": {"slot": N},
        #   "value": {"pubkey": ..., "account": {"data": [b64, "base64"], ...}}}}}
        try:
            result = data["params"]["result"]
            value = result["value"]
            return RawAccountUpdate(
                address=value["pubkey"],
                program_id=self._program.program_id,
                data=decode_account_data(value["account"]["data"]),
                slot=int((result.get("context") or {}).get("slot") or 0),
                source=UpdateSource.PUSH,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"{self.tag} Malformed notification: {e}")
            return None

    async def stop(self) -> None:
        self._running = False
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        self._state = ConnectionState.DISCONNECTED
