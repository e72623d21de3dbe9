"""In-memory pool state: last decoded record per address plus its fingerprint.

The store is the single place that decides whether an observed account
version is new, changed or a no-op. Read-modify-write for one address is
serialized by a per-address lock; unrelated addresses never contend.
"""

import hashlib
import threading
import weakref
from dataclasses import dataclass

from loguru import logger

from pool_watcher.models.pool import (
    AccountNew,
    AccountUpdated,
    PoolEvent,
    PoolRecord,
    ProgramKind,
)

FINGERPRINT_SIZE = 16


def compute_fingerprint(record: PoolRecord) -> str:
    """Digest of every decoded field except the observation slot."""
    payload = record.model_dump_json(exclude={"slot"}).encode()
    return hashlib.blake2b(payload, digest_size=FINGERPRINT_SIZE).hexdigest()


@dataclass(frozen=True)
class StoreEntry:
    record: PoolRecord
    fingerprint: str
    slot: int


class PoolStateStore:
    def __init__(self) -> None:
        self._entries: dict[str, StoreEntry] = {}
        # Entries vanish once no caller holds the lock
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def _lock_for(self, address: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(address)
            if lock is None:
                lock = threading.Lock()
                self._locks[address] = lock
            return lock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, address: object) -> bool:
        return address in self._entries

    def get(self, address: str) -> StoreEntry | None:
        return self._entries.get(address)

    def apply(self, record: PoolRecord) -> PoolEvent | None:
        """Store ``record`` and return the event it implies, if any.

        Returns AccountNew for an unknown address, AccountUpdated when the
        fingerprint differs from the stored one, and None when it is equal
        or when the record was observed at an older slot than the stored one.
        """
        return self._upsert(record)

    def seed(self, record: PoolRecord) -> bool:
        """Record state without producing an event (initial backfill).

        Returns True if the stored entry changed.
        """
        return self._upsert(record) is not None

    def _upsert(self, record: PoolRecord) -> PoolEvent | None:
        fingerprint = compute_fingerprint(record)
        with self._lock_for(record.address):
            previous = self._entries.get(record.address)
            if previous is not None:
                if record.slot and previous.slot and record.slot < previous.slot:
                    logger.debug(
                        f"[STORE] Stale update for {record.address[:12]}: "
                        f"slot {record.slot} < {previous.slot}"
                    )
                    return None
                if previous.fingerprint == fingerprint:
                    if record.slot > previous.slot:
                        self._entries[record.address] = StoreEntry(
                            previous.record, fingerprint, record.slot
                        )
                    return None
            self._entries[record.address] = StoreEntry(record, fingerprint, record.slot)

        if previous is None:
            return AccountNew(record=record)
        return AccountUpdated(record=record, previous_record=previous.record)

    def remove(self, address: str) -> bool:
        """Drop an entry. Idempotent: False if the address was not stored."""
        with self._lock_for(address):
            return self._entries.pop(address, None) is not None

    def snapshot_addresses(
        self, program_kind: ProgramKind, program_id: str | None = None
    ) -> set[str]:
        entries = list(self._entries.items())
        return {
            address
            for address, entry in entries
            if entry.record.program_kind == program_kind
            and (program_id is None or entry.record.program_id == program_id)
        }
