# src/pipeline_queue/exceptions.py
from typing import Optional


class QueueError(Exception):
    """Base exception for queue operations"""

    pass


class DeliveryError(QueueError):
    """Raised when the transport rejects a send or a batch send"""

    pass


class ResolutionError(QueueError):
    """Raised when a logical queue name cannot be resolved to an address"""

    pass


class QueueNotFoundError(ResolutionError):
    """Raised when an operation targets a queue that does not exist"""

    pass


class InvalidReceiptError(QueueError):
    """Raised when an ack token is unknown or was already acknowledged"""

    pass


class ProcessingError(QueueError):
    """A consumer callback raised while handling a received message"""

    def __init__(self, queue_name: str, identifier: str, cause: Optional[BaseException] = None):
        self.queue_name = queue_name
        self.identifier = identifier
        self.cause = cause
        super().__init__(
            f"Failed to process message {identifier} from queue {queue_name}: {cause}"
        )
