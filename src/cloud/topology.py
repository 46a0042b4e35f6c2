# src/cloud/topology.py
import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from src.log_handler.logging_config import get_run_logger
from .compute_unit import ComputeUnitController
from .exceptions import CloudError, TeardownError
from .metrics import has_metrics
from .models import InvocationResult, MetricsSnapshot, ScalingDecision
from .queue_controller import QueueController


class Cloud(ABC):
    """The queues and compute units wired together for one pipeline run."""

    run_id: str

    @abstractmethod
    async def spawn(self) -> Dict[str, str]:
        ...

    @abstractmethod
    async def terminate(self) -> bool:
        ...

    @abstractmethod
    def compute_units(self) -> List[ComputeUnitController]:
        ...

    @abstractmethod
    def components(self) -> List[object]:
        ...

    async def metrics(self) -> Optional[MetricsSnapshot]:
        """
        Merge the snapshots of every component able to report one. None when
        no component has the capability.
        """
        reporters = [component for component in self.components() if has_metrics(component)]
        if not reporters:
            return None
        snapshots = await asyncio.gather(*(reporter.get_metrics() for reporter in reporters))
        return MetricsSnapshot.merge(snapshots)

    async def apply_decision(self, decision: ScalingDecision) -> List[InvocationResult]:
        """Issue an absolute instance count to every unit, changed or not."""
        units = self.compute_units()
        counts = [decision.count_for(unit.unit_id) for unit in units]
        return list(
            await asyncio.gather(
                *(unit.ensure_instances(count) for unit, count in zip(units, counts))
            )
        )


class PipelineTopology(Cloud):
    def __init__(
        self,
        run_id: str,
        queues: Sequence[QueueController],
        units: Sequence[ComputeUnitController],
    ):
        self.run_id = run_id
        self.queues: Dict[str, QueueController] = {queue.name: queue for queue in queues}
        self.units: Dict[str, ComputeUnitController] = {unit.unit_id: unit for unit in units}
        self.logger = get_run_logger(__name__, run_id)

    def compute_units(self) -> List[ComputeUnitController]:
        return list(self.units.values())

    def components(self) -> List[object]:
        return [*self.queues.values(), *self.units.values()]

    async def spawn(self) -> Dict[str, str]:
        """Create all queues in parallel; one failed creation fails the spawn."""
        controllers = list(self.queues.values())
        addresses = await asyncio.gather(*(queue.spawn() for queue in controllers))
        self.logger.info(f"Spawned {len(controllers)} queues")
        return {queue.name: address for queue, address in zip(controllers, addresses)}

    async def ensure_instances(self, unit_id: str, count: int) -> InvocationResult:
        try:
            unit = self.units[unit_id]
        except KeyError:
            raise CloudError(f"Unknown compute unit {unit_id}")
        return await unit.ensure_instances(count)

    async def terminate(self) -> bool:
        """
        Tear down queues, then compute units. Components that are already gone
        count as torn down. Raises TeardownError listing every component whose
        teardown failed.
        """
        failures: Dict[str, BaseException] = {}
        for group in (list(self.queues.items()), list(self.units.items())):
            results = await asyncio.gather(
                *(component.terminate() for _, component in group), return_exceptions=True
            )
            for (name, _), result in zip(group, results):
                if isinstance(result, Exception):
                    self.logger.error(f"Teardown of {name} failed: {str(result)}")
                    failures[name] = result

        if failures:
            raise TeardownError(failures)
        self.logger.info("Teardown complete")
        return True
