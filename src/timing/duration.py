# src/timing/duration.py
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TimeUnit(str, Enum):
    MILLISECONDS = "milliseconds"
    SECONDS = "seconds"
    MINUTES = "minutes"


_MILLIS_PER_UNIT = {
    TimeUnit.MILLISECONDS: 1.0,
    TimeUnit.SECONDS: 1000.0,
    TimeUnit.MINUTES: 60_000.0,
}


class TimeDuration(BaseModel):
    """An amount of elapsed time expressed in a given unit."""

    model_config = ConfigDict(frozen=True)

    amount: float = Field(ge=0)
    unit: TimeUnit = TimeUnit.MILLISECONDS

    @classmethod
    def of_milliseconds(cls, amount: float) -> "TimeDuration":
        return cls(amount=amount, unit=TimeUnit.MILLISECONDS)

    @classmethod
    def of_seconds(cls, amount: float) -> "TimeDuration":
        return cls(amount=amount, unit=TimeUnit.SECONDS)

    def to_milliseconds(self) -> float:
        return self.amount * _MILLIS_PER_UNIT[self.unit]

    def to_seconds(self) -> float:
        return self.to_milliseconds() / 1000.0

    def __lt__(self, other: "TimeDuration") -> bool:
        return self.to_milliseconds() < other.to_milliseconds()

    def __le__(self, other: "TimeDuration") -> bool:
        return self.to_milliseconds() <= other.to_milliseconds()

    def __str__(self) -> str:
        return f"{self.amount:g} {self.unit.value}"
