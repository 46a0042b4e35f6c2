# src/cloud/compute_unit.py
from src.log_handler.logging_config import get_logger
from .backend import InvocationBackend
from .exceptions import FunctionNotFoundError, InvocationError
from .models import ComputeUnitSpec, InvocationResult

logger = get_logger(__name__)


class ComputeUnitController:
    """
    Controls one deployable stage. The only mutating operation is
    ensure_instances; nothing is remembered between calls.
    """

    def __init__(self, backend: InvocationBackend, spec: ComputeUnitSpec):
        self.backend = backend
        self.spec = spec

    @property
    def unit_id(self) -> str:
        return self.spec.unit_id

    async def ensure_instances(self, count: int) -> InvocationResult:
        if count < 0:
            raise ValueError(f"Instance count for {self.unit_id} must be non-negative, got {count}")
        try:
            result = await self.backend.invoke(
                self.spec.function_name, self.spec.parameter_bag(), count
            )
        except InvocationError as e:
            logger.error(
                f"Scaling unit {self.unit_id} ({self.spec.function_name}) to {count} failed: {str(e)}"
            )
            raise
        logger.debug(f"Unit {self.unit_id} ensured at {count} instances")
        return result

    async def terminate(self) -> bool:
        """Scale to zero. A function that no longer exists counts as gone."""
        try:
            await self.ensure_instances(0)
        except FunctionNotFoundError:
            logger.info(f"Unit {self.unit_id} already gone")
        return True

    def __repr__(self) -> str:
        return f"ComputeUnitController(unit_id={self.unit_id!r}, function={self.spec.function_name!r})"
