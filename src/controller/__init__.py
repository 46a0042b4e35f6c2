# src/controller/__init__.py
from .controller import PipelineController, ControllerState
from .host import TimeImmortalTask, DaemonTask, always_one
from .exceptions import ControllerError, ControllerNotStartedError

__all__ = [
    'PipelineController',
    'ControllerState',
    'TimeImmortalTask',
    'DaemonTask',
    'always_one',
    'ControllerError',
    'ControllerNotStartedError'
]

__version__ = '1.0.0'
