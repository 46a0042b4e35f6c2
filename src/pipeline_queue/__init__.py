# src/pipeline_queue/__init__.py
from .models import Message, ReceiveOutcome, ReceiveResult
from .address import QueueAddress
from .backend import QueueBackend, InMemoryQueueBackend
from .queue import PipelineQueue
from .exceptions import (
    QueueError,
    DeliveryError,
    ResolutionError,
    QueueNotFoundError,
    InvalidReceiptError,
    ProcessingError
)

__all__ = [
    'Message',
    'ReceiveOutcome',
    'ReceiveResult',
    'QueueAddress',
    'QueueBackend',
    'InMemoryQueueBackend',
    'PipelineQueue',
    'QueueError',
    'DeliveryError',
    'ResolutionError',
    'QueueNotFoundError',
    'InvalidReceiptError',
    'ProcessingError'
]

__version__ = '1.0.0'
