# src/pipeline_queue/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict

from .exceptions import ProcessingError


class Message(BaseModel):
    """
    A queue message. On receive, identifier is the transport ack token and is
    only valid until the message is acknowledged.
    """

    model_config = ConfigDict(frozen=True)

    identifier: str
    data: str


class ReceiveOutcome(str, Enum):
    EMPTY = "empty"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass
class ReceiveResult:
    outcome: ReceiveOutcome
    processed: List[str] = field(default_factory=list)
    failures: List[ProcessingError] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.outcome == ReceiveOutcome.EMPTY
