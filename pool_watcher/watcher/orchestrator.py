"""PoolWatcher: owns the store, the bus and every ingestion/resync task.

Startup seeds the store from one full scan per program without publishing
(pre-existing pools are not "new"), then runs one push-ingestion task per
program plus a shared resync task. Stop is cooperative: the resync task
finishes its in-flight tick, ingestion tasks are cancelled while suspended
on the feed (decode/apply is synchronous so it is never interrupted), and
store contents are simply dropped.
"""

import asyncio

from loguru import logger

from pool_watcher.config.settings import Settings
from pool_watcher.decoders.registry import validate_programs
from pool_watcher.models.pool import WatchedProgram
from pool_watcher.solana.backoff import ReconnectBackoff
from pool_watcher.solana.feed import AccountFeed, SolanaAccountFeed
from pool_watcher.solana.rpc_client import SolanaRpcClient
from pool_watcher.watcher.bus import DEFAULT_CAPACITY, EventBus
from pool_watcher.watcher.ingest import PoolIngestor
from pool_watcher.watcher.metrics import WatcherMetrics
from pool_watcher.watcher.resync import ResyncScheduler
from pool_watcher.watcher.store import PoolStateStore

STREAM_RESTART_DELAY_SEC = 1.0


class PoolWatcher:
    def __init__(
        self,
        programs: list[WatchedProgram],
        feed: AccountFeed,
        *,
        bus: EventBus | None = None,
        store: PoolStateStore | None = None,
        metrics: WatcherMetrics | None = None,
        resync_interval_sec: float = 1800,
        stats_interval_sec: float = 0,
    ) -> None:
        self._programs = list(programs)
        self._feed = feed
        self._bus = bus or EventBus(DEFAULT_CAPACITY)
        self._store = store or PoolStateStore()
        self._metrics = metrics or WatcherMetrics()
        self._ingestor = PoolIngestor(self._store, self._bus, self._metrics)
        self._resync = ResyncScheduler(
            feed,
            self._store,
            self._ingestor,
            self._programs,
            interval_sec=resync_interval_sec,
            metrics=self._metrics,
        )
        self._stats_interval = stats_interval_sec
        self._stop_event = asyncio.Event()
        self._ingest_tasks: list[asyncio.Task] = []
        self._background_tasks: list[asyncio.Task] = []
        self._started = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "PoolWatcher":
        metrics = WatcherMetrics()
        rpc = SolanaRpcClient(
            settings.rpc_url, timeout=settings.rpc_timeout_sec, commitment=settings.commitment
        )

        def backoff_factory() -> ReconnectBackoff:
            return ReconnectBackoff(
                base_delay=settings.reconnect_base_delay_sec,
                max_delay=settings.reconnect_max_delay_sec,
                jitter=settings.reconnect_jitter,
                alert_after_sec=settings.reconnect_alert_after_sec,
            )

        feed = SolanaAccountFeed(
            rpc,
            settings.ws_url,
            commitment=settings.commitment,
            open_timeout=settings.ws_open_timeout_sec,
            backoff_factory=backoff_factory,
            metrics=metrics,
        )
        return cls(
            settings.programs,
            feed,
            bus=EventBus(settings.bus_capacity),
            metrics=metrics,
            resync_interval_sec=settings.resync_interval_sec,
            stats_interval_sec=settings.stats_interval_sec,
        )

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def store(self) -> PoolStateStore:
        return self._store

    @property
    def metrics(self) -> WatcherMetrics:
        return self._metrics

    @property
    def resync(self) -> ResyncScheduler:
        return self._resync

    @property
    def programs(self) -> list[WatchedProgram]:
        return list(self._programs)

    @property
    def running(self) -> bool:
        return self._started and not self._stop_event.is_set()

    @property
    def stats(self) -> dict:
        summary = self._metrics.get_summary()
        summary["pools"] = len(self._store)
        summary["published"] = self._bus.published_count
        summary["subscribers"] = self._bus.subscriber_count
        return summary

    async def start(self) -> None:
        """Validate, seed, and launch ingestion and resync tasks.

        Raises UnsupportedProgram for undecodable program kinds and
        TransportError when the initial scan cannot reach the RPC node.
        """
        if self._started:
            raise RuntimeError("PoolWatcher already started")
        validate_programs(self._programs)
        self._started = True

        await asyncio.gather(*(self._seed(p) for p in self._programs))
        logger.info(f"[WATCHER] Seeded {len(self._store)} pools from {len(self._programs)} programs")

        for program in self._programs:
            self._ingest_tasks.append(
                asyncio.create_task(self._ingest(program), name=f"ingest:{program.label}")
            )
        self._background_tasks.append(
            asyncio.create_task(self._resync.run(self._stop_event), name="resync")
        )
        if self._stats_interval > 0:
            self._background_tasks.append(
                asyncio.create_task(self._stats_loop(), name="watcher-stats")
            )

    async def run(self) -> None:
        """Start and block until ``stop()`` is called."""
        await self.start()
        await self._stop_event.wait()

    async def _seed(self, program: WatchedProgram) -> None:
        scan = await self._feed.full_scan(program)
        seeded = sum(1 for update in scan.updates if self._ingestor.seed(program, update))
        logger.info(f"[WATCHER] {program.label}: seeded {seeded}/{len(scan.updates)} accounts at slot {scan.slot}")

    async def _ingest(self, program: WatchedProgram) -> None:
        while not self._stop_event.is_set():
            stream = self._feed.stream(program)
            try:
                async for update in stream:
                    if self._stop_event.is_set():
                        break
                    event = self._ingestor.handle(program, update)
                    if event is not None:
                        logger.debug(f"[WATCHER] {event.kind} {event.address[:12]} ({program.label})")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"[WATCHER] {program.label} ingestion error: {e}")
            finally:
                aclose = getattr(stream, "aclose", None)
                if aclose is not None:
                    await aclose()
            if not self._stop_event.is_set():
                await asyncio.sleep(STREAM_RESTART_DELAY_SEC)

    async def _stats_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._stats_interval)
                return
            except TimeoutError:
                pass
            logger.info(f"[WATCHER] Stats: {self.stats}")

    async def stop(self, grace_sec: float = 10.0) -> None:
        if self._stop_event.is_set():
            return
        logger.info("[WATCHER] Stopping")
        self._stop_event.set()

        for task in self._ingest_tasks:
            task.cancel()
        if self._background_tasks:
            _, pending = await asyncio.wait(self._background_tasks, timeout=grace_sec)
            for task in pending:
                task.cancel()
        await asyncio.gather(*self._ingest_tasks, *self._background_tasks, return_exceptions=True)
        self._ingest_tasks.clear()
        self._background_tasks.clear()

        await self._feed.close()
        self._bus.close()
        logger.info(f"[WATCHER] Stopped. {self.stats}")
