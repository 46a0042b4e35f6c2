# src/cloud/simple.py
from typing import Optional

from src.pipeline_queue import QueueBackend
from .backend import InvocationBackend
from .compute_unit import ComputeUnitController
from .models import ComputeUnitSpec, JobRequest
from .queue_controller import QueueController
from .topology import PipelineTopology

QUEUE_STEPS = ("0", "1", "2")


class SimpleCloud(PipelineTopology):
    """
    Feed -> step_0 -> ProcessStepOne -> step_1 -> WordCount -> step_2 -> SummingReduce

    Every queue name carries the run id so concurrent runs never share
    resources.
    """

    def __init__(
        self,
        invocation_backend: InvocationBackend,
        queue_backend: QueueBackend,
        run_id: str,
        job: Optional[JobRequest] = None,
    ):
        job = job or JobRequest()
        names = [f"step_{step}_{run_id}" for step in QUEUE_STEPS]
        self.step_zero_queue = QueueController(queue_backend, names[0])
        self.step_one_queue = QueueController(queue_backend, names[1])
        self.step_two_queue = QueueController(queue_backend, names[2])

        def unit(unit_id: str, function_name: str, **queues: str) -> ComputeUnitController:
            spec = ComputeUnitSpec(
                unit_id=unit_id,
                function_name=function_name,
                parameters={**queues, "JobRequest": job.parameters},
            )
            return ComputeUnitController(invocation_backend, spec)

        self.feed = unit("feed", "Feed", output_queue=names[0])
        self.step_one = unit("step_one", "ProcessStepOne", input_queue=names[0], output_queue=names[1])
        self.step_two = unit("step_two", "WordCount", input_queue=names[1], output_queue=names[2])
        self.reduce = unit("reduce", "SummingReduce", in_out_queue=names[2])

        super().__init__(
            run_id,
            queues=[self.step_zero_queue, self.step_one_queue, self.step_two_queue],
            units=[self.feed, self.step_one, self.step_two, self.reduce],
        )

    def unit_inputs(self):
        """Input queue per unit, for depth-driven strategies."""
        inputs = {}
        for unit in self.compute_units():
            params = unit.spec.parameters
            inputs[unit.unit_id] = params.get("input_queue") or params.get("in_out_queue")
        return inputs
