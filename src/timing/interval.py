# src/timing/interval.py
import asyncio
import time
from typing import Callable

from .duration import TimeDuration


class TimeBasedInterval:
    """
    Predicate that fires once the configured duration has passed since it
    last fired. Firing resets the interval.
    """

    def __init__(
        self,
        duration: TimeDuration,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.duration = duration
        self._clock = clock
        self.last_fired = clock()
        self.lock = asyncio.Lock()

    async def elapsed(self) -> bool:
        """Fire and reset if the interval has elapsed, otherwise return False."""
        async with self.lock:
            now = self._clock()
            if now - self.last_fired >= self.duration.to_seconds():
                self.last_fired = now
                return True
            return False

    def remaining(self) -> float:
        """Seconds left until the interval would fire."""
        waited = self._clock() - self.last_fired
        return max(0.0, self.duration.to_seconds() - waited)

    def reset(self) -> None:
        self.last_fired = self._clock()
