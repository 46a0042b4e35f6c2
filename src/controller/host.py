# src/controller/host.py
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from src.cloud import (
    AlwaysOneStrategy,
    InvocationBackend,
    JobRequest,
    ScalingStrategy,
    SimpleCloud,
)
from src.log_handler.logging_config import get_logger
from src.pipeline_queue import QueueBackend
from src.timing import (
    ExecutionTime,
    FailurePolicy,
    IntervalExecution,
    TimeBasedInterval,
    TimeDuration,
    TimeDurationDelay,
)
from .controller import ControllerState, PipelineController
from .exceptions import ControllerNotStartedError

logger = get_logger(__name__)

SCHEDULING_INTERVAL = TimeDuration.of_milliseconds(5000)
HOST_DELAY = TimeDuration.of_seconds(10)

StrategyFactory = Callable[[SimpleCloud], ScalingStrategy]


def always_one(cloud: SimpleCloud) -> ScalingStrategy:
    return AlwaysOneStrategy(cloud.units.keys())


class TimeImmortalTask(ABC):
    """
    A logically endless task hosted by an execution context that limits the
    wall-clock time of every invocation. Each invocation does a bounded slice
    of work and then tells the host whether it wants to be re-invoked.
    """

    def __init__(
        self,
        execution_time: ExecutionTime,
        max_consecutive_failures: Optional[int] = None,
    ):
        self.execution_time = execution_time
        self.max_consecutive_failures = max_consecutive_failures
        self.invocations = 0
        self.consecutive_failures = 0

    @abstractmethod
    async def implementation(self) -> None:
        ...

    @abstractmethod
    def continue_execution(self) -> bool:
        ...

    async def invoke(self) -> bool:
        """Run one slice. Returns True if another invocation should be scheduled."""
        self.execution_time.restart()
        self.invocations += 1
        await self.implementation()
        if self.execution_time.expired():
            logger.warning(
                f"Invocation {self.invocations} overran its budget of {self.execution_time.budget}"
            )
        return self.continue_execution()

    async def run_forever(self) -> None:
        """
        Re-invoke for as long as the task asks for it, like the host would. A
        failed invocation is logged and re-triggered; once
        max_consecutive_failures invocations in a row failed, the last error
        is raised.
        """
        while True:
            try:
                again = await self.invoke()
            except Exception as e:
                self.consecutive_failures += 1
                logger.error(
                    f"Invocation {self.invocations} failed "
                    f"({self.consecutive_failures} in a row): {type(e).__name__}: {str(e)}"
                )
                if (
                    self.max_consecutive_failures is not None
                    and self.consecutive_failures >= self.max_consecutive_failures
                ):
                    raise
                again = self.continue_execution()
            else:
                self.consecutive_failures = 0
            if not again:
                break
        logger.info(f"Task finished after {self.invocations} invocations")


class DaemonTask(TimeImmortalTask):
    """
    Hosts the pipeline controller. Everything done on every invocation is
    idempotent:

      * queues are created only if they do not exist yet
      * compute units are scaled by the strategy to absolute counts derived
        from live metrics, never by unconditionally adding instances
      * the controller is started once and its handle reused afterwards
    """

    def __init__(
        self,
        execution_time: ExecutionTime,
        invocation_backend: InvocationBackend,
        queue_backend: QueueBackend,
        run_id: str,
        job: Optional[JobRequest] = None,
        scheduling_interval: TimeDuration = SCHEDULING_INTERVAL,
        delay: TimeDuration = HOST_DELAY,
        strategy_factory: StrategyFactory = always_one,
        failure_policy: FailurePolicy = FailurePolicy.HALT,
        should_continue: Optional[Callable[[], bool]] = None,
        max_consecutive_failures: Optional[int] = None,
    ):
        super().__init__(execution_time, max_consecutive_failures)
        self.invocation_backend = invocation_backend
        self.queue_backend = queue_backend
        self.run_id = run_id
        self.job = job or JobRequest()
        self.scheduling_interval = scheduling_interval
        self.delay = TimeDurationDelay(delay)
        self.strategy_factory = strategy_factory
        self.failure_policy = failure_policy
        self.should_continue = should_continue
        self.cloud: Optional[SimpleCloud] = None
        self.controller: Optional[PipelineController] = None
        self._controller_execution: Optional["asyncio.Future[IntervalExecution]"] = None

    async def init_and_start_controller(self) -> IntervalExecution:
        logger.info(f"Daemon: starting cloud for run {self.run_id}")

        # Create the cloud (queues and compute units of this run)
        self.cloud = SimpleCloud(self.invocation_backend, self.queue_backend, self.run_id, self.job)
        await self.cloud.spawn()

        strategy = self.strategy_factory(self.cloud)

        self.controller = PipelineController(
            self.cloud,
            strategy,
            TimeBasedInterval(self.scheduling_interval),
            failure_policy=self.failure_policy,
        )
        return self.controller.start()

    async def implementation(self) -> None:
        if self._controller_execution is None:
            self._controller_execution = asyncio.ensure_future(self.init_and_start_controller())

        await self.delay.delay()

        startup = self._controller_execution
        if startup.done() and startup.exception() is not None:
            # Startup is idempotent, so the next invocation may try again
            self._controller_execution = None
            logger.error(f"Daemon: controller startup failed: {str(startup.exception())}")
            raise startup.exception()

    def continue_execution(self) -> bool:
        if self.should_continue is not None and not self.should_continue():
            return False
        return self.controller is None or self.controller.state != ControllerState.STOPPED

    async def teardown(self) -> bool:
        """Stop the controller, then tear down every resource of the run."""
        if self._controller_execution is None:
            raise ControllerNotStartedError(f"Run {self.run_id} was never started")

        execution = await self._controller_execution
        self.controller.stop()
        try:
            await execution.wait()
        except Exception as e:
            logger.warning(f"Daemon: controller had halted with {type(e).__name__}: {str(e)}")

        return await self.cloud.terminate()

    def status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {
            "run_id": self.run_id,
            "invocations": self.invocations,
            "state": ControllerState.CREATED.value,
            "ticks": 0,
            "failures": 0,
            "last_decision": None,
            "last_error": None,
        }
        if self.controller is None:
            return status

        execution = self.controller.execution
        status["state"] = self.controller.state.value
        if self.controller.last_decision is not None:
            status["last_decision"] = dict(self.controller.last_decision.counts)
        if execution is not None:
            status["ticks"] = execution.ticks
            status["failures"] = execution.failures
            if execution.last_error is not None:
                status["last_error"] = f"{type(execution.last_error).__name__}: {execution.last_error}"
        return status
