# src/cloud/__init__.py
from .models import (
    MetricsSnapshot,
    ScalingDecision,
    ComputeUnitSpec,
    InvocationResult,
    JobRequest,
)
from .metrics import HasMetrics, has_metrics
from .backend import InvocationBackend, InMemoryInvocationBackend
from .compute_unit import ComputeUnitController
from .queue_controller import QueueController
from .topology import Cloud, PipelineTopology
from .simple import SimpleCloud
from .strategy import (
    ScalingStrategy,
    AlwaysOneStrategy,
    QueueDepthStrategy,
    DepthScalingConfig,
)
from .exceptions import (
    CloudError,
    InvocationError,
    FunctionNotFoundError,
    StrategyError,
    TeardownError,
)

__all__ = [
    'MetricsSnapshot',
    'ScalingDecision',
    'ComputeUnitSpec',
    'InvocationResult',
    'JobRequest',
    'HasMetrics',
    'has_metrics',
    'InvocationBackend',
    'InMemoryInvocationBackend',
    'ComputeUnitController',
    'QueueController',
    'Cloud',
    'PipelineTopology',
    'SimpleCloud',
    'ScalingStrategy',
    'AlwaysOneStrategy',
    'QueueDepthStrategy',
    'DepthScalingConfig',
    'CloudError',
    'InvocationError',
    'FunctionNotFoundError',
    'StrategyError',
    'TeardownError'
]

__version__ = '1.0.0'
