# src/cloud/backend.py
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set, Tuple

from src.log_handler.logging_config import get_logger
from .exceptions import FunctionNotFoundError
from .models import InvocationResult

logger = get_logger(__name__)


class InvocationBackend(ABC):
    """Serverless backend able to run N instances of a named function."""

    @abstractmethod
    async def invoke(
        self, function_name: str, parameters: Dict[str, Any], desired_count: int
    ) -> InvocationResult:
        """
        Ensure desired_count instances of function_name run with parameters.
        Raises FunctionNotFoundError for unknown functions and
        InvocationError for any other rejection.
        """


class InMemoryInvocationBackend(InvocationBackend):
    """Records scaling calls and keeps the absolute instance count per function."""

    def __init__(self, functions: Optional[Set[str]] = None):
        self.functions = functions
        self.instances: Dict[str, int] = {}
        self.calls: List[Tuple[str, Dict[str, Any], int]] = []
        self._lock = asyncio.Lock()

    async def invoke(
        self, function_name: str, parameters: Dict[str, Any], desired_count: int
    ) -> InvocationResult:
        async with self._lock:
            if self.functions is not None and function_name not in self.functions:
                raise FunctionNotFoundError(f"Function {function_name} does not exist")

            self.calls.append((function_name, parameters, desired_count))
            self.instances[function_name] = desired_count
            logger.debug(f"{function_name} now at {desired_count} instances")
            return InvocationResult(function_name=function_name, desired_count=desired_count)

    def calls_for(self, function_name: str) -> List[Tuple[Dict[str, Any], int]]:
        return [(params, count) for name, params, count in self.calls if name == function_name]
