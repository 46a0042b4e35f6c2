# src/controller/controller.py
from enum import Enum
from typing import Optional

from src.cloud import Cloud, ScalingDecision, ScalingStrategy
from src.log_handler.logging_config import get_run_logger
from src.timing import FailurePolicy, IntervalExecution, TimeBasedInterval


class ControllerState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class PipelineController:
    """
    Control loop of one pipeline: on every tick it samples the topology's
    metrics, asks the strategy for a decision and applies it to every
    compute unit.
    """

    def __init__(
        self,
        cloud: Cloud,
        strategy: ScalingStrategy,
        interval: TimeBasedInterval,
        failure_policy: FailurePolicy = FailurePolicy.HALT,
    ):
        self.cloud = cloud
        self.strategy = strategy
        self.interval = interval
        self.failure_policy = failure_policy
        self.last_decision: Optional[ScalingDecision] = None
        self._state = ControllerState.CREATED
        self._execution: Optional[IntervalExecution] = None
        self.logger = get_run_logger(__name__, cloud.run_id)

    @property
    def state(self) -> ControllerState:
        if self._state == ControllerState.RUNNING and self._execution is not None and self._execution.done:
            # The loop halted on its own after a failed tick
            return ControllerState.STOPPED
        return self._state

    @property
    def execution(self) -> Optional[IntervalExecution]:
        return self._execution

    def start(self) -> IntervalExecution:
        """
        Begin the tick loop. While a loop is active, further calls return the
        same handle instead of starting another loop against the topology.
        """
        if self._execution is not None and not self._execution.stopped:
            return self._execution

        self._execution = IntervalExecution(
            self.tick,
            self.interval,
            failure_policy=self.failure_policy,
            name=f"pipeline-controller-{self.cloud.run_id}",
        ).start()
        self._state = ControllerState.RUNNING
        self.logger.info("Controller started")
        return self._execution

    async def tick(self) -> ScalingDecision:
        metrics = await self.cloud.metrics()
        decision = self.strategy.decide(metrics)
        await self.cloud.apply_decision(decision)
        self.last_decision = decision
        self.logger.info(
            f"Applied decision {decision.counts} "
            f"({'no metrics yet' if metrics is None else f'{len(metrics.components)} components reported'})"
        )
        return decision

    def stop(self) -> None:
        """Stop the loop; a tick that is already running completes first."""
        if self._execution is not None:
            self._execution.stop()
        self._state = ControllerState.STOPPED
