"""Exponential reconnect backoff with a ceiling, jitter and outage reporting."""

import random
import time
from collections.abc import Callable


class ReconnectBackoff:
    """Delay schedule for one connection.

    Delays grow ``base_delay * factor**n`` with proportional jitter and are
    clamped to ``max_delay``. Retries never stop; once an outage outlasts
    ``alert_after_sec`` the caller is told (once per outage) to escalate.
    """

    def __init__(
        self,
        *,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        factor: float = 2.0,
        jitter: float = 0.1,
        alert_after_sec: float = 300.0,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if base_delay <= 0 or max_delay < base_delay:
            raise ValueError("need 0 < base_delay <= max_delay")
        if factor <= 1:
            raise ValueError("factor must be > 1")
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._factor = factor
        self._jitter = max(0.0, jitter)
        self._alert_after = alert_after_sec
        self._rng = rng or random.Random()
        self._clock = clock
        self._attempts = 0
        self._outage_started: float | None = None
        self._alerted = False

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def max_delay(self) -> float:
        return self._max_delay

    def next_delay(self) -> float:
        if self._outage_started is None:
            self._outage_started = self._clock()
        raw = self._base_delay * self._factor ** self._attempts
        self._attempts += 1
        if raw >= self._max_delay:
            return self._max_delay
        return min(self._max_delay, raw * (1 + self._rng.uniform(0, self._jitter)))

    def outage_seconds(self) -> float:
        if self._outage_started is None:
            return 0.0
        return self._clock() - self._outage_started

    def should_alert(self) -> bool:
        if self._alerted or self._outage_started is None:
            return False
        if self.outage_seconds() >= self._alert_after:
            self._alerted = True
            return True
        return False

    def reset(self) -> float:
        """Connection is healthy again. Returns how long the outage lasted."""
        outage = self.outage_seconds()
        self._attempts = 0
        self._outage_started = None
        self._alerted = False
        return outage
