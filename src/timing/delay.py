# src/timing/delay.py
import asyncio

from .duration import TimeDuration


class TimeDurationDelay:
    """Suspends the caller for a fixed duration."""

    def __init__(self, duration: TimeDuration):
        self.duration = duration

    async def delay(self) -> None:
        await asyncio.sleep(self.duration.to_seconds())
