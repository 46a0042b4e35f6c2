# src/cloud/metrics.py
from abc import ABC, abstractmethod

from .models import MetricsSnapshot


class HasMetrics(ABC):
    """
    Components of a topology may monitor themselves and report a snapshot of
    their performance when asked.
    """

    @abstractmethod
    async def get_metrics(self) -> MetricsSnapshot:
        ...


def has_metrics(component: object) -> bool:
    return isinstance(component, HasMetrics)
