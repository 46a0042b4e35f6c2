# src/cloud/exceptions.py
from typing import Dict


class CloudError(Exception):
    """Base exception for topology and compute unit operations"""
    pass


class InvocationError(CloudError):
    """Raised when the backend rejects a scaling call"""
    pass


class FunctionNotFoundError(InvocationError):
    """Raised when the invoked function does not exist on the backend"""
    pass


class StrategyError(CloudError):
    """Raised when a scaling decision does not cover a compute unit"""
    pass


class TeardownError(CloudError):
    """Raised when some spawned resources could not be torn down"""

    def __init__(self, failures: Dict[str, BaseException]):
        self.failures = failures
        names = ", ".join(sorted(failures))
        super().__init__(f"Teardown incomplete, failed components: {names}")
