# src/cloud/ray_backend.py
import asyncio
import itertools
import time
import traceback
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import ray
from ray.actor import ActorHandle
from ray.exceptions import RayError

from src.log_handler.logging_config import get_logger
from .backend import InvocationBackend
from .exceptions import FunctionNotFoundError, InvocationError
from .models import InvocationResult

logger = get_logger(__name__)

StageHandler = Callable[[Dict[str, Any]], Any]


@ray.remote
class ComputeUnitActor:
    """One running instance of a compute unit."""

    def __init__(self, function_name: str, instance_id: str, handler: StageHandler):
        self.function_name = function_name
        self.instance_id = instance_id
        self.handler = handler
        self.is_busy = False
        self.stats = {"runs_completed": 0, "runs_failed": 0}
        logger.info(f"Instance {instance_id} of {function_name} initialized")

    def get_status(self) -> Dict[str, Any]:
        return {
            "function_name": self.function_name,
            "instance_id": self.instance_id,
            "is_busy": self.is_busy,
            **self.stats,
        }

    def run(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Run the stage handler once with the unit's parameter bag."""
        self.is_busy = True
        start_time = time.time()
        try:
            output = self.handler(parameters)
            self.stats["runs_completed"] += 1
            return {"success": True, "instance_id": self.instance_id, "output": output}
        except Exception as e:
            self.stats["runs_failed"] += 1
            logger.error(
                f"Instance {self.instance_id} of {self.function_name} failed: {str(e)}\n"
                f"Stack trace: {traceback.format_exc()}"
            )
            return {
                "success": False,
                "instance_id": self.instance_id,
                "error": {
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                },
            }
        finally:
            self.is_busy = False
            logger.debug(
                f"Run of {self.instance_id} took {time.time() - start_time:.2f}s"
            )


class RayInvocationBackend(InvocationBackend):
    """
    Local elastic backend: every function name maps to a pool of Ray actors
    that is scaled to exactly the desired count. Idle instances are handed the
    parameter bag and run the registered stage handler once per call.
    """

    def __init__(
        self,
        handlers: Dict[str, StageHandler],
        address: Optional[str] = None,
        status_timeout: float = 0.5,
    ):
        self.handlers = handlers
        self.address = address
        self.status_timeout = status_timeout
        self.pools: Dict[str, Dict[str, ActorHandle]] = {}
        self.runs: Dict[str, Any] = {}
        self._instance_ids = itertools.count(1)
        self._lock = asyncio.Lock()

    def initialize_ray(self) -> None:
        if ray.is_initialized():
            return
        if self.address:
            logger.info(f"Connecting to Ray cluster at {self.address}")
            ray.init(address=self.address, ignore_reinit_error=True)
        else:
            logger.info("Starting local Ray instance")
            ray.init(ignore_reinit_error=True)

    async def invoke(
        self, function_name: str, parameters: Dict[str, Any], desired_count: int
    ) -> InvocationResult:
        handler = self.handlers.get(function_name)
        if handler is None:
            raise FunctionNotFoundError(f"No stage handler registered for {function_name}")

        async with self._lock:
            try:
                self.initialize_ray()
                pool = self.pools.setdefault(function_name, {})
                await self._scale_pool(function_name, pool, handler, desired_count)
                started = await self._dispatch(pool, parameters)
            except RayError as e:
                logger.error(f"Ray rejected scaling of {function_name}: {str(e)}")
                raise InvocationError(f"Scaling {function_name} to {desired_count} failed: {e}") from e

        return InvocationResult(
            function_name=function_name,
            desired_count=desired_count,
            detail={"instances": len(pool), "started": started},
        )

    def instance_count(self, function_name: str) -> int:
        return len(self.pools.get(function_name, {}))

    def shutdown(self) -> None:
        """Kill every instance of every pool."""
        for function_name, pool in self.pools.items():
            for instance_id, actor in pool.items():
                ray.kill(actor)
            logger.info(f"Killed {len(pool)} instances of {function_name}")
        self.pools.clear()
        self.runs.clear()

    async def _is_idle(self, actor: ActorHandle) -> bool:
        # A running instance executes calls in order, so a status request
        # queued behind a run times out
        try:
            status = await asyncio.wait_for(actor.get_status.remote(), timeout=self.status_timeout)
        except asyncio.TimeoutError:
            return False
        return not status["is_busy"]

    async def _idle_flags(self, pool: Dict[str, ActorHandle]) -> Dict[str, bool]:
        flags = await asyncio.gather(*(self._is_idle(actor) for actor in pool.values()))
        return dict(zip(pool.keys(), flags))

    async def _scale_pool(
        self,
        function_name: str,
        pool: Dict[str, ActorHandle],
        handler: StageHandler,
        desired_count: int,
    ) -> None:
        current_count = len(pool)
        if desired_count > current_count:
            for _ in range(desired_count - current_count):
                instance_id = f"{function_name}-{next(self._instance_ids)}"
                pool[instance_id] = ComputeUnitActor.remote(function_name, instance_id, handler)
                logger.info(f"Added instance {instance_id}")
        elif desired_count < current_count:
            # Idle instances go first
            idle = await self._idle_flags(pool)
            ordered = sorted(pool.items(), key=lambda item: not idle[item[0]])
            for instance_id, actor in ordered[: current_count - desired_count]:
                ray.kill(actor)
                del pool[instance_id]
                self.runs.pop(instance_id, None)
                logger.info(f"Removed instance {instance_id}")

        if desired_count != current_count:
            logger.info(f"Scaled {function_name} from {current_count} to {len(pool)} instances")

    async def _dispatch(self, pool: Dict[str, ActorHandle], parameters: Dict[str, Any]) -> List[str]:
        started = []
        idle = await self._idle_flags(pool)
        for instance_id, actor in pool.items():
            if idle[instance_id]:
                self.runs[instance_id] = actor.run.remote(parameters)
                started.append(instance_id)
        return started
