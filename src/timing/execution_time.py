# src/timing/execution_time.py
import time
from typing import Callable

from .duration import TimeDuration


class ExecutionTime:
    """Wall-clock budget of a single host invocation."""

    def __init__(
        self,
        budget: TimeDuration,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.budget = budget
        self._clock = clock
        self.started_at = clock()

    def restart(self) -> None:
        self.started_at = self._clock()

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def remaining(self) -> float:
        return max(0.0, self.budget.to_seconds() - self.elapsed())

    def expired(self) -> bool:
        return self.remaining() <= 0
