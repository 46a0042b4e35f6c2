# src/cloud/models.py
import copy
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import StrategyError


class MetricsSnapshot(BaseModel):
    """Performance indicators per component, taken at one instant."""

    model_config = ConfigDict(frozen=True)

    components: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def get(self, component: str, indicator: str, default: Optional[float] = None) -> Optional[float]:
        return self.components.get(component, {}).get(indicator, default)

    @classmethod
    def merge(cls, snapshots: Iterable["MetricsSnapshot"]) -> "MetricsSnapshot":
        components: Dict[str, Dict[str, float]] = {}
        for snapshot in snapshots:
            for component, indicators in snapshot.components.items():
                components.setdefault(component, {}).update(indicators)
        return cls(components=components)


class ScalingDecision(BaseModel):
    """Desired instance count per compute unit."""

    model_config = ConfigDict(frozen=True)

    counts: Dict[str, int] = Field(default_factory=dict)

    @field_validator("counts")
    @classmethod
    def counts_not_negative(cls, value: Dict[str, int]) -> Dict[str, int]:
        negative = [unit for unit, count in value.items() if count < 0]
        if negative:
            raise ValueError(f"Instance counts must be non-negative: {negative}")
        return value

    def count_for(self, unit_id: str) -> int:
        try:
            return self.counts[unit_id]
        except KeyError:
            raise StrategyError(f"Scaling decision has no count for unit {unit_id}")


class ComputeUnitSpec(BaseModel):
    """A deployable stage bound to its fixed parameter bag."""

    model_config = ConfigDict(frozen=True)

    unit_id: str
    function_name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)

    def parameter_bag(self) -> Dict[str, Any]:
        """A deep copy, so backends never see a shared bag."""
        return copy.deepcopy(self.parameters)


class InvocationResult(BaseModel):
    function_name: str
    desired_count: int
    status: str = "accepted"
    detail: Dict[str, Any] = Field(default_factory=dict)


class JobRequest(BaseModel):
    parameters: Dict[str, Any] = Field(default_factory=dict)
