"""Subscription feed: push stream plus pull scan, per watched program."""

from collections.abc import AsyncIterator, Callable
from typing import Protocol

from pool_watcher.decoders.registry import account_filters, get_decoder
from pool_watcher.models.pool import RawAccountUpdate, ScanResult, WatchedProgram
from pool_watcher.solana.backoff import ReconnectBackoff
from pool_watcher.solana.rpc_client import SolanaRpcClient
from pool_watcher.solana.ws_client import ProgramSubscriptionClient
from pool_watcher.watcher.metrics import WatcherMetrics


class AccountFeed(Protocol):
    def stream(self, program: WatchedProgram) -> AsyncIterator[RawAccountUpdate]: ...

    async def full_scan(self, program: WatchedProgram) -> ScanResult: ...

    async def close(self) -> None: ...


class SolanaAccountFeed:
    """programSubscribe for push, getProgramAccounts for pull.

    Both are filtered on the pool-state discriminator of the program kind so
    config, tick-array and position accounts are never delivered.
    """

    def __init__(
        self,
        rpc: SolanaRpcClient,
        ws_url: str,
        *,
        commitment: str = "confirmed",
        open_timeout: float = 10.0,
        backoff_factory: Callable[[], ReconnectBackoff] = ReconnectBackoff,
        metrics: WatcherMetrics | None = None,
    ) -> None:
        self._rpc = rpc
        self._ws_url = ws_url
        self._commitment = commitment
        self._open_timeout = open_timeout
        self._backoff_factory = backoff_factory
        self._metrics = metrics
        self._clients: dict[str, ProgramSubscriptionClient] = {}

    def stream(self, program: WatchedProgram) -> AsyncIterator[RawAccountUpdate]:
        client = ProgramSubscriptionClient(
            self._ws_url,
            program,
            filters=account_filters(program.kind),
            commitment=self._commitment,
            open_timeout=self._open_timeout,
            backoff=self._backoff_factory(),
            metrics=self._metrics,
        )
        self._clients[program.program_id] = client
        return client.updates()

    async def full_scan(self, program: WatchedProgram) -> ScanResult:
        # Decoders read nothing past min_size
        return await self._rpc.get_program_accounts(
            program.program_id,
            filters=account_filters(program.kind),
            data_length=get_decoder(program.kind).min_size,
        )

    async def close(self) -> None:
        for client in self._clients.values():
            await client.stop()
        self._clients.clear()
        await self._rpc.close()
