"""decode -> store -> publish, shared by the push path and resync."""

from loguru import logger

from pool_watcher.decoders.registry import decode_update
from pool_watcher.exceptions import DecodeError
from pool_watcher.models.pool import PoolEvent, PoolRecord, RawAccountUpdate, WatchedProgram
from pool_watcher.watcher.bus import EventBus
from pool_watcher.watcher.metrics import WatcherMetrics
from pool_watcher.watcher.store import PoolStateStore


class PoolIngestor:
    def __init__(self, store: PoolStateStore, bus: EventBus, metrics: WatcherMetrics) -> None:
        self._store = store
        self._bus = bus
        self._metrics = metrics

    def decode(self, program: WatchedProgram, update: RawAccountUpdate) -> PoolRecord | None:
        """Decode once per observed update; failures are counted and dropped."""
        self._metrics.record_update(update.source)
        try:
            return decode_update(program.kind, update)
        except DecodeError as e:
            self._metrics.record_decode_error(program.kind.value, e)
            logger.debug(f"[DECODE] {program.label} {update.address[:12]} ({update.source.value}): {e}")
            return None

    def commit(self, record: PoolRecord) -> PoolEvent | None:
        event = self._store.apply(record)
        self._metrics.record_event(event.kind if event is not None else None)
        if event is not None:
            self._bus.publish(event)
        return event

    def handle(self, program: WatchedProgram, update: RawAccountUpdate) -> PoolEvent | None:
        record = self.decode(program, update)
        if record is None:
            return None
        return self.commit(record)

    def seed(self, program: WatchedProgram, update: RawAccountUpdate) -> bool:
        """Backfill the store without publishing anything."""
        record = self.decode(program, update)
        if record is None:
            return False
        return self._store.seed(record)
