# src/log_handler/__init__.py
from .logging_config import (
    setup_logging,
    get_logger,
    get_run_logger,
    shutdown_logging,
    RunContextAdapter,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "get_run_logger",
    "shutdown_logging",
    "RunContextAdapter",
]

__version__ = "1.1.0"
