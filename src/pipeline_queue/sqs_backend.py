# src/pipeline_queue/sqs_backend.py
import asyncio
import functools
from typing import Any, List, Sequence

from botocore.exceptions import ClientError

from src.log_handler.logging_config import get_logger
from .backend import QueueBackend
from .exceptions import (
    DeliveryError,
    QueueError,
    QueueNotFoundError,
    ResolutionError,
)
from .models import Message

logger = get_logger(__name__)

SQS_MAX_BATCH_SIZE = 10
_MISSING_QUEUE_CODES = (
    "AWS.SimpleQueueService.NonExistentQueue",
    "QueueDoesNotExist",
)


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class SqsQueueBackend(QueueBackend):
    """
    SQS transport on top of a boto3 client. boto3 is blocking, so every call
    runs in the loop's default executor.
    """

    def __init__(self, sqs_client: Any):
        self.sqs_client = sqs_client

    async def _call(self, operation: str, **kwargs) -> dict:
        loop = asyncio.get_running_loop()
        method = getattr(self.sqs_client, operation)
        return await loop.run_in_executor(None, functools.partial(method, **kwargs))

    async def create_if_absent(self, name: str) -> str:
        # CreateQueue returns the existing url when the queue is already there
        try:
            response = await self._call("create_queue", QueueName=name)
        except ClientError as e:
            logger.error(f"Failed to create queue {name}: {str(e)}")
            raise ResolutionError(f"Could not create queue {name}: {e}") from e
        return response["QueueUrl"]

    async def resolve_by_prefix(self, prefix: str) -> str:
        try:
            response = await self._call("list_queues", QueueNamePrefix=prefix)
        except ClientError as e:
            raise ResolutionError(f"Could not list queues with prefix {prefix}: {e}") from e

        urls = response.get("QueueUrls") or []
        if urls:
            return urls[0]
        # No permissions, or no queues with the given prefix
        raise ResolutionError(f"No queue found with prefix {prefix}")

    async def lookup(self, name: str) -> str:
        try:
            response = await self._call("get_queue_url", QueueName=name)
        except ClientError as e:
            if _error_code(e) in _MISSING_QUEUE_CODES:
                raise QueueNotFoundError(f"Queue {name} does not exist") from e
            raise ResolutionError(f"Could not look up queue {name}: {e}") from e
        return response["QueueUrl"]

    async def send(self, address: str, payload: str) -> None:
        try:
            await self._call("send_message", QueueUrl=address, MessageBody=payload)
        except ClientError as e:
            raise DeliveryError(f"Send to {address} rejected: {e}") from e

    async def send_batch(self, address: str, messages: Sequence[Message]) -> None:
        if len(messages) > SQS_MAX_BATCH_SIZE:
            raise DeliveryError(
                f"SQS accepts at most {SQS_MAX_BATCH_SIZE} messages per batch, got {len(messages)}"
            )
        # Entry ids only need to be unique within the batch
        entries = [
            {"Id": f"msg-{index}", "MessageBody": msg.data}
            for index, msg in enumerate(messages)
        ]
        try:
            response = await self._call(
                "send_message_batch", QueueUrl=address, Entries=entries
            )
        except ClientError as e:
            raise DeliveryError(f"Batch send to {address} rejected: {e}") from e

        failed = response.get("Failed") or []
        if failed:
            rejected = [messages[int(entry["Id"].split("-")[1])].identifier for entry in failed]
            raise DeliveryError(
                f"{len(failed)} of {len(messages)} messages rejected by {address}: {rejected}"
            )

    async def receive(
        self, address: str, max_count: int, wait_seconds: float
    ) -> List[Message]:
        try:
            response = await self._call(
                "receive_message",
                QueueUrl=address,
                MaxNumberOfMessages=max_count,
                WaitTimeSeconds=int(wait_seconds),
            )
        except ClientError as e:
            if _error_code(e) in _MISSING_QUEUE_CODES:
                raise QueueNotFoundError(f"Queue {address} does not exist") from e
            raise QueueError(f"Receive from {address} failed: {e}") from e

        return [
            Message(identifier=raw.get("ReceiptHandle") or "", data=raw["Body"])
            for raw in response.get("Messages") or []
            if raw.get("Body") is not None
        ]

    async def delete(self, address: str, ack_token: str) -> None:
        try:
            await self._call("delete_message", QueueUrl=address, ReceiptHandle=ack_token)
        except ClientError as e:
            raise QueueError(f"Delete from {address} failed: {e}") from e

    async def delete_queue(self, address: str) -> None:
        try:
            await self._call("delete_queue", QueueUrl=address)
        except ClientError as e:
            if _error_code(e) in _MISSING_QUEUE_CODES:
                raise QueueNotFoundError(f"Queue {address} does not exist") from e
            raise QueueError(f"Delete of queue {address} failed: {e}") from e
        logger.info(f"Deleted SQS queue {address}")

    async def approximate_depth(self, address: str) -> int:
        try:
            response = await self._call(
                "get_queue_attributes",
                QueueUrl=address,
                AttributeNames=["ApproximateNumberOfMessages"],
            )
        except ClientError as e:
            if _error_code(e) in _MISSING_QUEUE_CODES:
                raise QueueNotFoundError(f"Queue {address} does not exist") from e
            raise QueueError(f"Reading attributes of {address} failed: {e}") from e
        return int(response["Attributes"].get("ApproximateNumberOfMessages", 0))
