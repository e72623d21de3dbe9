"""Entry point for the pool watcher."""

import asyncio
import signal

from loguru import logger

from pool_watcher.config.settings import settings
from pool_watcher.models.pool import AccountNew, AccountUpdated
from pool_watcher.solana.rpc_client import SolanaRpcClient
from pool_watcher.tokens.metadata import RpcTokenMetadataProvider, TokenMetadataProvider
from pool_watcher.utils.logger import setup_logger
from pool_watcher.watcher.bus import Subscription
from pool_watcher.watcher.orchestrator import PoolWatcher


async def _describe_mint(tokens: TokenMetadataProvider, mint: str) -> str:
    try:
        meta = await tokens.resolve(mint)
    except Exception as e:
        logger.debug(f"[MINT] Resolve failed for {mint[:12]}: {e}")
        return mint
    if meta is None:
        return mint
    suffix = " [token-2022]" if meta.is_token2022 else ""
    return f"{mint} (decimals={meta.decimals}){suffix}"


async def log_events(sub: Subscription, tokens: TokenMetadataProvider) -> None:
    """Console consumer: one line per new pool, DEBUG for updates."""
    async for event in sub:
        record = event.record
        if isinstance(event, AccountNew):
            mint_a = await _describe_mint(tokens, record.mint_a)
            mint_b = await _describe_mint(tokens, record.mint_b)
            logger.info(
                f"[POOL] New {record.program_kind.value} pool {record.address}: "
                f"{mint_a} / {mint_b} (slot {record.slot})"
            )
        elif isinstance(event, AccountUpdated):
            logger.debug(
                f"[POOL] Updated {record.program_kind.value} {record.address[:12]} "
                f"liquidity {event.previous_record.liquidity} -> {record.liquidity}"
            )


async def main() -> None:
    setup_logger(json_logs=settings.json_logs, level=settings.log_level, log_file=settings.log_file)
    logger.info(
        f"Starting pool watcher: rpc={settings.rpc_url} ws={settings.ws_url} "
        f"programs={[p.label for p in settings.programs]}"
    )

    # Graceful shutdown on SIGINT/SIGTERM
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    watcher = PoolWatcher.from_settings(settings)
    token_rpc = SolanaRpcClient(settings.rpc_url, timeout=settings.rpc_timeout_sec)
    tokens = RpcTokenMetadataProvider(token_rpc)
    sub = watcher.bus.subscribe("console")

    watcher_task = asyncio.create_task(watcher.run())
    consumer_task = asyncio.create_task(log_events(sub, tokens))

    # Wait for either the watcher to fail at startup or a shutdown signal
    done, pending = await asyncio.wait(
        [watcher_task, asyncio.create_task(shutdown_event.wait())],
        return_when=asyncio.FIRST_COMPLETED,
    )
    if watcher_task in done and watcher_task.exception() is not None:
        logger.error(f"Watcher failed to start: {watcher_task.exception()}")

    await watcher.stop()

    # Cancel remaining tasks
    for task in pending:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    await consumer_task
    await token_rpc.close()
    logger.info("Shutdown complete")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
