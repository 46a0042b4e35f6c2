# src/api/__init__.py
from .models import PipelineStatusResponse, TerminateResponse
from .router import router
from .app import create_app
from .exceptions import ControllerNotRunningError, PipelineTeardownError

__all__ = [
    'PipelineStatusResponse',
    'TerminateResponse',
    'router',
    'create_app',
    'ControllerNotRunningError',
    'PipelineTeardownError'
]

__version__ = '1.0.0'
