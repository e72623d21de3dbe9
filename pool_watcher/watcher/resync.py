"""Periodic pull-scan reconciliation.

Push delivery can silently miss updates, so every ``interval_sec`` each
watched program is fully scanned and reconciled against the store:
scanned accounts go through the same decode/apply/publish path as push
updates, and stored pools the scan no longer lists are dropped (silently,
no bus event). A failed scan changes nothing and is retried next tick.
"""

import asyncio
from dataclasses import dataclass

from loguru import logger

from pool_watcher.exceptions import TransportError
from pool_watcher.models.pool import WatchedProgram
from pool_watcher.solana.feed import AccountFeed
from pool_watcher.watcher.ingest import PoolIngestor
from pool_watcher.watcher.metrics import WatcherMetrics
from pool_watcher.watcher.store import PoolStateStore

MIN_RESYNC_INTERVAL_SEC = 300
# Yield to push ingestion every N scanned accounts
YIELD_EVERY = 200


@dataclass
class ResyncReport:
    program: WatchedProgram
    scanned: int = 0
    events: int = 0
    removed: int = 0
    decode_errors: int = 0
    failed: bool = False
    error: str | None = None


class ResyncScheduler:
    def __init__(
        self,
        feed: AccountFeed,
        store: PoolStateStore,
        ingestor: PoolIngestor,
        programs: list[WatchedProgram],
        *,
        interval_sec: float = 1800,
        metrics: WatcherMetrics | None = None,
    ) -> None:
        self._feed = feed
        self._store = store
        self._ingestor = ingestor
        self._programs = list(programs)
        self._interval = interval_sec
        self._metrics = metrics
        self._tick = 0

    @property
    def interval_sec(self) -> float:
        return self._interval

    async def reconcile(self, program: WatchedProgram) -> ResyncReport:
        report = ResyncReport(program=program)
        try:
            scan = await self._feed.full_scan(program)
        except TransportError as e:
            report.failed = True
            report.error = str(e)
            logger.warning(f"[RESYNC] {program.label} scan failed, retrying next tick: {e}")
            return report

        listed: set[str] = set()
        for i, update in enumerate(scan.updates, start=1):
            listed.add(update.address)
            record = self._ingestor.decode(program, update)
            if record is None:
                report.decode_errors += 1
            elif self._ingestor.commit(record) is not None:
                report.events += 1
            if i % YIELD_EVERY == 0:
                await asyncio.sleep(0)
        report.scanned = len(scan.updates)

        for address in self._store.snapshot_addresses(program.kind, program.program_id) - listed:
            entry = self._store.get(address)
            # Seen by push after the scan's snapshot was taken
            if entry is not None and scan.slot and entry.slot > scan.slot:
                continue
            if self._store.remove(address):
                report.removed += 1
                logger.info(f"[RESYNC] {program.label} pool {address} no longer listed, removed")
        if self._metrics is not None and report.removed:
            self._metrics.record_removed(report.removed)
        return report

    async def run_once(self) -> list[ResyncReport]:
        self._tick += 1
        reports: list[ResyncReport] = []
        for program in self._programs:
            try:
                report = await self.reconcile(program)
            except Exception as e:
                logger.exception(f"[RESYNC] {program.label} reconcile crashed: {e}")
                report = ResyncReport(program=program, failed=True, error=str(e))
            if self._metrics is not None:
                self._metrics.record_resync(failed=report.failed)
            reports.append(report)
            if not report.failed:
                logger.info(
                    f"[RESYNC] #{self._tick} {program.label}: scanned={report.scanned} "
                    f"events={report.events} removed={report.removed} "
                    f"decode_errors={report.decode_errors}"
                )
        return reports

    async def run(self, stop: asyncio.Event) -> None:
        """Tick every ``interval_sec`` until ``stop`` is set."""
        logger.info(f"[RESYNC] Every {self._interval:.0f}s for {len(self._programs)} programs")
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._interval)
                return
            except TimeoutError:
                pass
            await self.run_once()
