# src/cloud/queue_controller.py
from src.log_handler.logging_config import get_logger
from src.pipeline_queue import (
    PipelineQueue,
    QueueAddress,
    QueueBackend,
    QueueNotFoundError,
)
from .metrics import HasMetrics
from .models import MetricsSnapshot

logger = get_logger(__name__)


class QueueController(HasMetrics):
    """Owns one named queue of a topology: creation, access, depth, deletion."""

    def __init__(self, backend: QueueBackend, name: str):
        self.backend = backend
        self.name = name
        self.address = QueueAddress(backend, name, create_if_absent=True)

    async def spawn(self) -> str:
        """Create the queue unless it exists and return its address."""
        address = await self.address.resolve()
        logger.info(f"Queue {self.name} available at {address}")
        return address

    def queue(self, **kwargs) -> PipelineQueue:
        return PipelineQueue(self.backend, self.address, **kwargs)

    async def get_metrics(self) -> MetricsSnapshot:
        address = await self.address.resolve()
        depth = await self.backend.approximate_depth(address)
        return MetricsSnapshot(components={self.name: {"approximate_depth": float(depth)}})

    async def terminate(self) -> bool:
        """
        Delete the queue. A queue that is already gone counts as deleted. The
        queue is looked up by its exact name, never by prefix.
        """
        try:
            if self.address.resolved:
                address = await self.address.resolve()
            else:
                address = await self.backend.lookup(self.name)
            await self.backend.delete_queue(address)
            logger.info(f"Queue {self.name} deleted")
        except QueueNotFoundError:
            logger.info(f"Queue {self.name} already gone")
        self.address.forget()
        return True
