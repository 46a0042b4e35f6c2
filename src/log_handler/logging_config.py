# src/log_handler/logging_config.py
import logging
import queue
import os
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from typing import Any, MutableMapping, Optional, Tuple, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Logging is configured once per process
_logging_configured = False
_log_listener: Optional[QueueListener] = None


def setup_logging(
    log_level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    module_levels: Optional[dict] = None,
) -> QueueListener:
    """
    Central logging configuration for the pipeline controller.

    Records are handed to a QueueListener so that the control loop never
    blocks on console or file I/O.

    Args:
        log_level: Base level for the root logger
        log_file: Optional path of a rotating log file
        module_levels: Per-logger levels, e.g. {"src.pipeline_queue": "DEBUG",
                       "botocore": "WARNING"}

    Returns:
        The started QueueListener; stop it with shutdown_logging()
    """
    global _logging_configured, _log_listener

    if _logging_configured and _log_listener is not None:
        return _log_listener

    if log_file and os.path.dirname(log_file):
        os.makedirs(os.path.dirname(log_file), exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)

    handlers = []
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5  # 10MB
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    log_queue = queue.Queue()
    listener = QueueListener(log_queue, *handlers, respect_handler_level=True)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.addHandler(QueueHandler(log_queue))
    root_logger.setLevel(log_level)

    for module_name, level in (module_levels or {}).items():
        logging.getLogger(module_name).setLevel(level)

    listener.start()

    _logging_configured = True
    _log_listener = listener
    return listener


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module, typically called with __name__."""
    return logging.getLogger(name)


class RunContextAdapter(logging.LoggerAdapter):
    """Prefixes every record with the pipeline run id for correlation."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[run {self.extra['run_id']}] {msg}", kwargs


def get_run_logger(name: str, run_id: str) -> RunContextAdapter:
    return RunContextAdapter(logging.getLogger(name), {"run_id": run_id})


def shutdown_logging() -> None:
    """Flush and stop the queue listener. Call on process shutdown."""
    global _log_listener, _logging_configured

    if _log_listener is not None:
        _log_listener.stop()
        _log_listener = None
        _logging_configured = False
