# src/timing/execution.py
import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from src.log_handler.logging_config import get_logger
from .interval import TimeBasedInterval

logger = get_logger(__name__)


class FailurePolicy(str, Enum):
    HALT = "halt"
    CONTINUE = "continue"


class IntervalExecution:
    """
    Runs an async action once immediately and then every time the interval
    elapses, until stopped.

    A stop request is only observed between ticks: an action that is already
    running completes, a pending wait for the next tick is cut short.

    Only the first tick runs immediately. Every later tick waits the full
    interval, also when the previous action had nothing to work with (e.g. a
    controller tick that saw no metrics yet).
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[Any]],
        interval: TimeBasedInterval,
        failure_policy: FailurePolicy = FailurePolicy.HALT,
        name: str = "interval-execution",
    ):
        self.action = action
        self.interval = interval
        self.failure_policy = failure_policy
        self.name = name
        self.ticks = 0
        self.failures = 0
        self.last_error: Optional[BaseException] = None
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "IntervalExecution":
        """Start the loop. Subsequent calls return the already running handle."""
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=self.name)
            self._task.add_done_callback(self._on_done)
        return self

    def stop(self) -> None:
        if not self._stop_event.is_set():
            logger.info(f"{self.name}: stop requested after {self.ticks} ticks")
        self._stop_event.set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    async def wait(self) -> None:
        """Wait for the loop to finish; re-raises the error that halted it."""
        if self._task is None:
            raise RuntimeError(f"{self.name} has not been started")
        await self._task

    async def _run(self) -> None:
        logger.info(
            f"{self.name}: started, ticking every {self.interval.duration} "
            f"(failure policy: {self.failure_policy.value})"
        )
        self.interval.reset()
        while not self._stop_event.is_set():
            await self._tick()
            if not await self._wait_for_next_tick():
                break
        logger.info(f"{self.name}: stopped")

    async def _tick(self) -> None:
        try:
            await self.action()
            self.ticks += 1
        except Exception as e:
            self.failures += 1
            self.last_error = e
            logger.error(
                f"{self.name}: tick failed ({self.failures} failures so far): "
                f"{type(e).__name__}: {str(e)}"
            )
            if self.failure_policy == FailurePolicy.HALT:
                self._stop_event.set()
                raise

    async def _wait_for_next_tick(self) -> bool:
        while not await self.interval.elapsed():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=max(self.interval.remaining(), 0.001),
                )
                return False
            except asyncio.TimeoutError:
                continue
        return not self._stop_event.is_set()

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning(f"{self.name}: cancelled")
        elif task.exception() is not None:
            logger.error(f"{self.name}: halted by {type(task.exception()).__name__}")
