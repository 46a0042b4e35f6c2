import asyncio
import importlib
import os
from contextlib import asynccontextmanager
from typing import Dict

import uvicorn
from fastapi import FastAPI

from src.api import create_app
from src.cloud import (
    DepthScalingConfig,
    InMemoryInvocationBackend,
    InvocationBackend,
    JobRequest,
    QueueDepthStrategy,
)
from src.config import InvocationKind, PipelineSettings, QueueKind, StrategyKind
from src.controller import DaemonTask, always_one
from src.controller.host import StrategyFactory
from src.log_handler.logging_config import setup_logging, get_logger, shutdown_logging
from src.pipeline_queue import InMemoryQueueBackend, QueueBackend
from src.timing import ExecutionTime, TimeDuration

logger = get_logger(__name__)


def load_stage_handlers(specs: Dict[str, str]) -> Dict[str, object]:
    """Resolve {"Feed": "package.module:function"} into callables."""
    handlers = {}
    for function_name, target in specs.items():
        module_name, _, attribute = target.partition(":")
        if not attribute:
            raise ValueError(f"Stage handler for {function_name} must look like module:function, got {target}")
        handlers[function_name] = getattr(importlib.import_module(module_name), attribute)
    return handlers


def build_queue_backend(settings: PipelineSettings) -> QueueBackend:
    if settings.queue_backend == QueueKind.SQS:
        import boto3
        from src.pipeline_queue.sqs_backend import SqsQueueBackend

        return SqsQueueBackend(boto3.client("sqs", region_name=settings.aws_region))
    return InMemoryQueueBackend()


def build_invocation_backend(settings: PipelineSettings) -> InvocationBackend:
    if settings.invocation_backend == InvocationKind.LAMBDA:
        import boto3
        from src.cloud.lambda_backend import LambdaInvocationBackend

        return LambdaInvocationBackend(boto3.client("lambda", region_name=settings.aws_region))
    if settings.invocation_backend == InvocationKind.RAY:
        from src.cloud.ray_backend import RayInvocationBackend

        return RayInvocationBackend(
            load_stage_handlers(settings.stage_handlers), address=settings.ray_address
        )
    return InMemoryInvocationBackend()


def build_strategy_factory(settings: PipelineSettings) -> StrategyFactory:
    if settings.strategy == StrategyKind.QUEUE_DEPTH:
        config = DepthScalingConfig(
            min_instances=settings.min_instances,
            max_instances=settings.max_instances,
            messages_per_instance=settings.messages_per_instance,
        )
        return lambda cloud: QueueDepthStrategy(cloud.unit_inputs(), config)
    return always_one


def build_daemon(settings: PipelineSettings) -> DaemonTask:
    return DaemonTask(
        ExecutionTime(TimeDuration.of_seconds(settings.execution_budget_seconds)),
        build_invocation_backend(settings),
        build_queue_backend(settings),
        settings.run_id,
        job=JobRequest(parameters=settings.job_parameters),
        scheduling_interval=TimeDuration.of_milliseconds(settings.scheduling_interval_ms),
        delay=TimeDuration.of_seconds(settings.host_delay_seconds),
        strategy_factory=build_strategy_factory(settings),
        failure_policy=settings.failure_policy,
        max_consecutive_failures=settings.max_consecutive_failures,
    )


def make_lifespan(daemon: DaemonTask):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Runs the daemon next to the API and stops it on shutdown."""
        logger.info(f"Starting pipeline daemon for run {daemon.run_id}")
        daemon_task = asyncio.create_task(daemon.run_forever())
        try:
            yield
        finally:
            logger.info("Initiating graceful shutdown...")
            if daemon.controller is not None:
                daemon.controller.stop()
            daemon_task.cancel()
            try:
                await daemon_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Pipeline daemon had failed: {type(e).__name__}: {str(e)}")
            logger.info("Pipeline daemon stopped")

    return lifespan


def run_app():
    """Runs the daemon, with the control API when enabled"""
    settings = PipelineSettings.from_env()
    setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        module_levels={
            "botocore": os.environ.get("BOTO_LOG_LEVEL", "WARNING"),
            "ray": os.environ.get("RAY_LOG_LEVEL", "WARNING"),
        },
    )
    try:
        daemon = build_daemon(settings)
        if not settings.serve_api:
            asyncio.run(daemon.run_forever())
            return

        app = create_app(daemon, lifespan=make_lifespan(daemon))
        config = uvicorn.Config(
            app=app,
            host=settings.api_host,
            port=settings.api_port,
            log_level="info",
            timeout_graceful_shutdown=30,
        )
        uvicorn.Server(config).run()
    except Exception as e:
        logger.error(f"Failed to run pipeline controller: {str(e)}")
        raise
    finally:
        shutdown_logging()


if __name__ == "__main__":
    run_app()
