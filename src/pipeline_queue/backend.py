# src/pipeline_queue/backend.py
import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Sequence

from src.log_handler.logging_config import get_logger
from .exceptions import InvalidReceiptError, QueueNotFoundError, ResolutionError
from .models import Message

logger = get_logger(__name__)


class QueueBackend(ABC):
    """Transport primitives of a message queue provider."""

    @abstractmethod
    async def create_if_absent(self, name: str) -> str:
        """Create the queue unless it exists; return its address either way."""

    @abstractmethod
    async def resolve_by_prefix(self, prefix: str) -> str:
        """Return the address of the first queue whose name starts with prefix."""

    @abstractmethod
    async def lookup(self, name: str) -> str:
        """Address of the queue with exactly this name; QueueNotFoundError if absent."""

    @abstractmethod
    async def send(self, address: str, payload: str) -> None:
        ...

    @abstractmethod
    async def send_batch(self, address: str, messages: Sequence[Message]) -> None:
        ...

    @abstractmethod
    async def receive(
        self, address: str, max_count: int, wait_seconds: float
    ) -> List[Message]:
        """Long-poll for messages; identifiers of the result are ack tokens."""

    @abstractmethod
    async def delete(self, address: str, ack_token: str) -> None:
        ...

    @abstractmethod
    async def delete_queue(self, address: str) -> None:
        """Delete the queue; raises QueueNotFoundError if it is already gone."""

    @abstractmethod
    async def approximate_depth(self, address: str) -> int:
        ...


@dataclass
class _StoredMessage:
    body: str
    visible_at: float = 0.0
    receipt: str = ""
    receive_count: int = 0


class InMemoryQueueBackend(QueueBackend):
    """
    In-process queue transport with visibility-timeout redelivery: a received
    message stays hidden for visibility_timeout seconds and reappears with a
    new ack token unless it is deleted first.
    """

    def __init__(self, visibility_timeout: float = 30.0):
        self.visibility_timeout = visibility_timeout
        self._addresses: Dict[str, str] = {}
        self._messages: Dict[str, List[_StoredMessage]] = {}
        self._changed = asyncio.Condition()
        self.created: List[str] = []

    async def create_if_absent(self, name: str) -> str:
        async with self._changed:
            if name not in self._addresses:
                address = f"memory://queues/{name}"
                self._addresses[name] = address
                self._messages[address] = []
                self.created.append(name)
                logger.info(f"Created in-memory queue {name}")
            return self._addresses[name]

    async def resolve_by_prefix(self, prefix: str) -> str:
        for name in sorted(self._addresses):
            if name.startswith(prefix):
                return self._addresses[name]
        raise ResolutionError(f"No queue found with prefix {prefix}")

    async def lookup(self, name: str) -> str:
        try:
            return self._addresses[name]
        except KeyError:
            raise QueueNotFoundError(f"Queue {name} does not exist")

    async def send(self, address: str, payload: str) -> None:
        async with self._changed:
            self._queue(address).append(_StoredMessage(body=payload))
            self._changed.notify_all()

    async def send_batch(self, address: str, messages: Sequence[Message]) -> None:
        async with self._changed:
            stored = self._queue(address)
            stored.extend(_StoredMessage(body=msg.data) for msg in messages)
            self._changed.notify_all()

    async def receive(
        self, address: str, max_count: int, wait_seconds: float
    ) -> List[Message]:
        deadline = time.monotonic() + wait_seconds
        async with self._changed:
            while True:
                batch = self._take_visible(address, max_count)
                if batch:
                    return batch
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return []
                try:
                    await asyncio.wait_for(self._changed.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass

    async def delete(self, address: str, ack_token: str) -> None:
        async with self._changed:
            stored = self._queue(address)
            for index, msg in enumerate(stored):
                if msg.receipt == ack_token:
                    del stored[index]
                    return
        raise InvalidReceiptError(f"Receipt handle {ack_token} is not valid for {address}")

    async def delete_queue(self, address: str) -> None:
        async with self._changed:
            self._queue(address)
            del self._messages[address]
            for name, known in list(self._addresses.items()):
                if known == address:
                    del self._addresses[name]
            logger.info(f"Deleted in-memory queue {address}")

    async def approximate_depth(self, address: str) -> int:
        now = time.monotonic()
        return sum(1 for msg in self._queue(address) if msg.visible_at <= now)

    def bodies(self, address: str) -> List[str]:
        """All stored payloads, visible or in flight."""
        return [msg.body for msg in self._queue(address)]

    def _queue(self, address: str) -> List[_StoredMessage]:
        try:
            return self._messages[address]
        except KeyError:
            raise QueueNotFoundError(f"Queue {address} does not exist")

    def _take_visible(self, address: str, max_count: int) -> List[Message]:
        now = time.monotonic()
        taken = []
        for msg in self._queue(address):
            if len(taken) >= max_count:
                break
            if msg.visible_at <= now:
                msg.receipt = uuid.uuid4().hex
                msg.visible_at = now + self.visibility_timeout
                msg.receive_count += 1
                taken.append(Message(identifier=msg.receipt, data=msg.body))
        return taken
