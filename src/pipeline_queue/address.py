# src/pipeline_queue/address.py
import asyncio
from typing import Optional

from .backend import QueueBackend


class QueueAddress:
    """
    Logical queue name plus its lazily resolved physical address.

    With create_if_absent the queue is created on first use; otherwise the
    name is used as a prefix filter over the existing queues. The resolved
    address is memoized.
    """

    def __init__(self, backend: QueueBackend, name: str, create_if_absent: bool = True):
        self.backend = backend
        self.name = name
        self.create_if_absent = create_if_absent
        self._address: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def resolved(self) -> bool:
        return self._address is not None

    async def resolve(self) -> str:
        if self._address is not None:
            return self._address
        async with self._lock:
            if self._address is None:
                if self.create_if_absent:
                    self._address = await self.backend.create_if_absent(self.name)
                else:
                    self._address = await self.backend.resolve_by_prefix(self.name)
        return self._address

    def forget(self) -> None:
        """Drop the memoized address, e.g. after the queue was deleted."""
        self._address = None

    def __repr__(self) -> str:
        return f"QueueAddress(name={self.name!r}, address={self._address!r})"
