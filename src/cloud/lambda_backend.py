# src/cloud/lambda_backend.py
import asyncio
import functools
import json
from typing import Any, Dict

from botocore.exceptions import ClientError

from src.log_handler.logging_config import get_logger
from .backend import InvocationBackend
from .exceptions import FunctionNotFoundError, InvocationError
from .models import InvocationResult

logger = get_logger(__name__)


class LambdaInvocationBackend(InvocationBackend):
    """
    AWS Lambda backend. The reserved concurrency of a function is its
    instance count: stage functions keep re-invoking themselves, so every
    accepted instance holds one slot for as long as it runs.

    A call reads the current reserved concurrency, sets it to the desired
    count and fires asynchronous invocations only for the slots that were not
    reserved before. Repeating a call with the same count fires nothing.
    """

    def __init__(self, lambda_client: Any):
        self.lambda_client = lambda_client

    async def _call(self, operation: str, **kwargs) -> dict:
        loop = asyncio.get_running_loop()
        method = getattr(self.lambda_client, operation)
        return await loop.run_in_executor(None, functools.partial(method, **kwargs))

    async def current_count(self, function_name: str) -> int:
        """Reserved concurrency of the function, 0 when none is set."""
        response = await self._call("get_function_concurrency", FunctionName=function_name)
        return int(response.get("ReservedConcurrentExecutions") or 0)

    async def invoke(
        self, function_name: str, parameters: Dict[str, Any], desired_count: int
    ) -> InvocationResult:
        try:
            current = await self.current_count(function_name)
            if current != desired_count:
                await self._call(
                    "put_function_concurrency",
                    FunctionName=function_name,
                    ReservedConcurrentExecutions=desired_count,
                )
            fired = 0
            for instance in range(current, desired_count):
                payload = json.dumps({"parameters": parameters, "instance": instance})
                await self._call(
                    "invoke",
                    FunctionName=function_name,
                    InvocationType="Event",
                    Payload=payload.encode("utf-8"),
                )
                fired += 1
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code == "ResourceNotFoundException":
                raise FunctionNotFoundError(f"Lambda function {function_name} does not exist") from e
            logger.error(f"Lambda call for {function_name} failed: {str(e)}")
            raise InvocationError(f"Scaling {function_name} to {desired_count} failed: {e}") from e

        if current != desired_count:
            logger.info(f"Scaled {function_name} from {current} to {desired_count} instances")
        return InvocationResult(
            function_name=function_name,
            desired_count=desired_count,
            detail={"previous": current, "invocations": fired},
        )
