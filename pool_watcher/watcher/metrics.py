"""Watcher counters: ingestion volume, decode failures, events, resync health.

Thread-safe counters that accumulate during runtime and are read by the
periodic stats logger.
"""

import time
from collections import Counter
from threading import Lock

from pool_watcher.models.pool import UpdateSource


class WatcherMetrics:
    def __init__(self) -> None:
        self._lock = Lock()
        self._updates: Counter[str] = Counter()
        self._decode_errors: Counter[str] = Counter()
        self._events: Counter[str] = Counter()
        self._removed = 0
        self._stale_or_unchanged = 0
        self._resync_ticks = 0
        self._resync_failures = 0
        self._reconnects = 0
        self._start_time: float = time.monotonic()

    def record_update(self, source: UpdateSource) -> None:
        with self._lock:
            self._updates[source.value] += 1

    def record_decode_error(self, program_kind: str, error: Exception) -> None:
        with self._lock:
            self._decode_errors[f"{program_kind}:{type(error).__name__}"] += 1

    def record_event(self, kind: str | None) -> None:
        with self._lock:
            if kind is None:
                self._stale_or_unchanged += 1
            else:
                self._events[kind] += 1

    def record_removed(self, count: int = 1) -> None:
        with self._lock:
            self._removed += count

    def record_resync(self, *, failed: bool) -> None:
        with self._lock:
            self._resync_ticks += 1
            if failed:
                self._resync_failures += 1

    def record_reconnect(self) -> None:
        with self._lock:
            self._reconnects += 1

    @property
    def decode_error_count(self) -> int:
        with self._lock:
            return sum(self._decode_errors.values())

    def get_summary(self) -> dict:
        with self._lock:
            return {
                "uptime_sec": round(time.monotonic() - self._start_time, 1),
                "updates": dict(self._updates),
                "decode_errors": dict(self._decode_errors),
                "events": dict(self._events),
                "unchanged": self._stale_or_unchanged,
                "removed": self._removed,
                "resync_ticks": self._resync_ticks,
                "resync_failures": self._resync_failures,
                "reconnects": self._reconnects,
            }
