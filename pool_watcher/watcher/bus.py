"""Bounded broadcast of pool events to independent subscribers.

Every subscriber owns a fixed-capacity queue. ``publish`` appends to each
queue without waiting; a full queue drops its oldest entry and the subscriber
learns about it as ``BusLagged(count)`` on its next ``recv``.
"""

import asyncio
from collections import deque

from loguru import logger

from pool_watcher.exceptions import BusClosed, BusLagged
from pool_watcher.models.pool import PoolEvent

DEFAULT_CAPACITY = 1024


class Subscription:
    """Receiving end of the bus for one consumer."""

    def __init__(self, bus: "EventBus", capacity: int, name: str) -> None:
        self._bus = bus
        self._queue: deque[PoolEvent] = deque(maxlen=capacity)
        self._lagged = 0
        self._closed = False
        self._wakeup = asyncio.Event()
        self.name = name

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, event: PoolEvent) -> None:
        if len(self._queue) == self._queue.maxlen:
            self._lagged += 1
        self._queue.append(event)
        self._wakeup.set()

    def _close(self) -> None:
        self._closed = True
        self._wakeup.set()

    def try_recv(self) -> PoolEvent | None:
        """Non-blocking receive. None when nothing is queued."""
        if self._lagged:
            count, self._lagged = self._lagged, 0
            raise BusLagged(count)
        if self._queue:
            return self._queue.popleft()
        if self._closed:
            raise BusClosed(f"subscription {self.name} closed")
        return None

    async def recv(self) -> PoolEvent:
        """Wait for the next event.

        Raises BusLagged once after events were dropped for this subscriber,
        and BusClosed when the subscription or the bus is closed and drained.
        """
        while True:
            event = self.try_recv()
            if event is not None:
                return event
            self._wakeup.clear()
            await self._wakeup.wait()

    def close(self) -> None:
        self._bus.unsubscribe(self)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> PoolEvent:
        while True:
            try:
                return await self.recv()
            except BusLagged as e:
                logger.warning(f"[BUS] Subscriber {self.name} lagged, {e.count} events dropped")
            except BusClosed:
                raise StopAsyncIteration from None


class EventBus:
    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("bus capacity must be positive")
        self._capacity = capacity
        self._subscribers: list[Subscription] = []
        self._closed = False
        self._published = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def published_count(self) -> int:
        return self._published

    def subscribe(self, name: str | None = None) -> Subscription:
        """New subscription; it only sees events published from now on."""
        if self._closed:
            raise BusClosed("event bus closed")
        sub = Subscription(self, self._capacity, name or f"sub-{len(self._subscribers) + 1}")
        self._subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
        sub._close()

    def publish(self, event: PoolEvent) -> int:
        """Fan ``event`` out to every subscriber. Never waits.

        Returns the number of subscribers it was queued for.
        """
        if self._closed:
            return 0
        self._published += 1
        for sub in self._subscribers:
            sub._push(event)
        return len(self._subscribers)

    def close(self) -> None:
        self._closed = True
        for sub in list(self._subscribers):
            sub._close()
        self._subscribers.clear()
