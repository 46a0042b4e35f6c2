# src/timing/__init__.py
from .duration import TimeDuration, TimeUnit
from .delay import TimeDurationDelay
from .interval import TimeBasedInterval
from .execution import IntervalExecution, FailurePolicy
from .execution_time import ExecutionTime

__all__ = [
    'TimeDuration',
    'TimeUnit',
    'TimeDurationDelay',
    'TimeBasedInterval',
    'IntervalExecution',
    'FailurePolicy',
    'ExecutionTime'
]

__version__ = '1.0.0'
