# src/cloud/strategy.py
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from src.log_handler.logging_config import get_logger
from .models import MetricsSnapshot, ScalingDecision

logger = get_logger(__name__)


class ScalingStrategy(ABC):
    """
    Maps a metrics snapshot to a desired instance count per compute unit.
    Must decide without metrics as well, and must not keep state between
    calls: the same snapshot always yields the same decision.
    """

    @abstractmethod
    def decide(self, metrics: Optional[MetricsSnapshot]) -> ScalingDecision:
        ...


class AlwaysOneStrategy(ScalingStrategy):
    """Exactly one instance of every unit, whatever the metrics say."""

    def __init__(self, unit_ids: Iterable[str]):
        self.unit_ids = tuple(unit_ids)

    def decide(self, metrics: Optional[MetricsSnapshot]) -> ScalingDecision:
        return ScalingDecision(counts={unit_id: 1 for unit_id in self.unit_ids})


@dataclass(frozen=True)
class DepthScalingConfig:
    min_instances: int = 1
    max_instances: int = 10
    messages_per_instance: int = 10  # backlog one instance is expected to absorb

    def __post_init__(self):
        if self.min_instances < 0 or self.max_instances < self.min_instances:
            raise ValueError(
                f"Invalid instance bounds: min={self.min_instances}, max={self.max_instances}"
            )
        if self.messages_per_instance < 1:
            raise ValueError("messages_per_instance must be at least 1")


class QueueDepthStrategy(ScalingStrategy):
    """
    Scales each unit with the backlog of its input queue:
    ceil(depth / messages_per_instance), clamped to [min, max]. Units without
    an input queue, or whose queue has not reported yet, get the minimum.
    """

    DEPTH_INDICATOR = "approximate_depth"

    def __init__(self, unit_inputs: Dict[str, Optional[str]], config: Optional[DepthScalingConfig] = None):
        self.unit_inputs = dict(unit_inputs)
        self.config = config or DepthScalingConfig()

    def decide(self, metrics: Optional[MetricsSnapshot]) -> ScalingDecision:
        counts = {}
        for unit_id, input_queue in self.unit_inputs.items():
            depth = None
            if metrics is not None and input_queue is not None:
                depth = metrics.get(input_queue, self.DEPTH_INDICATOR)
            counts[unit_id] = self._desired(depth)
        logger.debug(f"Depth-based decision: {counts}")
        return ScalingDecision(counts=counts)

    def _desired(self, depth: Optional[float]) -> int:
        if depth is None:
            return self.config.min_instances
        wanted = math.ceil(depth / self.config.messages_per_instance)
        return max(self.config.min_instances, min(self.config.max_instances, wanted))
