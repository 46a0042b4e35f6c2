# src/pipeline_queue/queue.py
import inspect
from typing import Any, Awaitable, Callable, Iterator, List, Union

from src.log_handler.logging_config import get_logger
from .address import QueueAddress
from .backend import QueueBackend
from .exceptions import ProcessingError
from .models import Message, ReceiveOutcome, ReceiveResult

logger = get_logger(__name__)

DEFAULT_MAX_BATCH_SIZE = 10
DEFAULT_WAIT_SECONDS = 10

MessageConsumer = Callable[[str], Union[Awaitable[Any], Any]]
EmptyQueueHandler = Callable[[], Union[Awaitable[Any], Any]]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class PipelineQueue:
    """
    Send/receive access to one named queue with at-least-once delivery:
    a received message is deleted only after it was processed successfully.
    """

    def __init__(
        self,
        backend: QueueBackend,
        address: QueueAddress,
        wait_seconds: float = DEFAULT_WAIT_SECONDS,
    ):
        self.backend = backend
        self.address = address
        self.wait_seconds = wait_seconds

    @classmethod
    def from_name(cls, backend: QueueBackend, name: str, **kwargs) -> "PipelineQueue":
        """Queue that is created on first use."""
        return cls(backend, QueueAddress(backend, name, create_if_absent=True), **kwargs)

    @classmethod
    def from_prefix(cls, backend: QueueBackend, prefix: str, **kwargs) -> "PipelineQueue":
        """Queue looked up by name prefix; never created."""
        return cls(backend, QueueAddress(backend, prefix, create_if_absent=False), **kwargs)

    @property
    def name(self) -> str:
        return self.address.name

    async def send(self, message: Message) -> None:
        queue_url = await self.address.resolve()
        await self.backend.send(queue_url, message.data)
        logger.debug(f"Sent message {message.identifier} to {self.name}")

    async def send_batch(
        self, source: Iterator[Message], max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    ) -> int:
        """
        Pull at most max_batch_size messages from source and send them as one
        batch. Returns the number of messages sent; a source with fewer items
        left produces a partial batch.
        """
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be at least 1, got {max_batch_size}")

        source = iter(source)
        batch: List[Message] = []
        while len(batch) < max_batch_size:
            try:
                batch.append(next(source))
            except StopIteration:
                break

        if not batch:
            return 0

        queue_url = await self.address.resolve()
        await self.backend.send_batch(queue_url, batch)
        logger.debug(f"Sent batch of {len(batch)} messages to {self.name}")
        return len(batch)

    async def receive_one(
        self, on_message: MessageConsumer, on_empty: EmptyQueueHandler
    ) -> ReceiveResult:
        """
        Poll for one message. on_empty is called when the wait window passes
        without a message. Otherwise on_message receives each payload and the
        message is deleted only if on_message returned without raising; a
        failed message stays in the queue for redelivery.
        """
        queue_url = await self.address.resolve()
        messages = await self.backend.receive(
            queue_url, max_count=1, wait_seconds=self.wait_seconds
        )

        if not messages:
            await _maybe_await(on_empty())
            return ReceiveResult(outcome=ReceiveOutcome.EMPTY)

        result = ReceiveResult(outcome=ReceiveOutcome.PROCESSED)
        for msg in messages:
            try:
                await _maybe_await(on_message(msg.data))
            except Exception as e:
                error = ProcessingError(self.name, msg.identifier, e)
                logger.error(f"Failed to process msg [{msg.data!r}] from {self.name}, error: {str(e)}")
                result.failures.append(error)
                continue

            await self.backend.delete(queue_url, msg.identifier)
            result.processed.append(msg.identifier)

        if result.failures:
            result.outcome = ReceiveOutcome.FAILED
        return result

    async def depth(self) -> int:
        queue_url = await self.address.resolve()
        return await self.backend.approximate_depth(queue_url)
