import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI

from src.cloud import (
    AlwaysOneStrategy,
    InMemoryInvocationBackend,
    QueueDepthStrategy,
    SimpleCloud,
)
from src.config import PipelineSettings
from src.main import build_daemon, build_strategy_factory, load_stage_handlers, make_lifespan
from src.pipeline_queue import InMemoryQueueBackend, ResolutionError


def test_load_stage_handlers():
    handlers = load_stage_handlers({"Feed": "json:dumps"})

    assert handlers == {"Feed": json.dumps}


def test_load_stage_handlers_requires_attribute():
    with pytest.raises(ValueError):
        load_stage_handlers({"Feed": "json"})


def test_build_daemon_from_settings():
    settings = PipelineSettings(
        run_id="run-7",
        scheduling_interval_ms=250,
        host_delay_seconds=1.5,
        job_parameters={"source": "s3://corpus"},
    )

    daemon = build_daemon(settings)

    assert daemon.run_id == "run-7"
    assert isinstance(daemon.invocation_backend, InMemoryInvocationBackend)
    assert isinstance(daemon.queue_backend, InMemoryQueueBackend)
    assert daemon.scheduling_interval.to_milliseconds() == 250
    assert daemon.job.parameters == {"source": "s3://corpus"}


def test_strategy_factory_follows_settings():
    cloud = SimpleCloud(InMemoryInvocationBackend(), InMemoryQueueBackend(), "run-7")

    default = build_strategy_factory(PipelineSettings())(cloud)
    depth = build_strategy_factory(
        PipelineSettings(strategy="queue_depth", min_instances=0, max_instances=4)
    )(cloud)

    assert isinstance(default, AlwaysOneStrategy)
    assert isinstance(depth, QueueDepthStrategy)
    assert depth.config.max_instances == 4
    assert depth.decide(None).counts == {"feed": 0, "step_one": 0, "step_two": 0, "reduce": 0}


@pytest.mark.asyncio
async def test_lifespan_shutdown_tolerates_failed_daemon():
    daemon = MagicMock()
    daemon.run_id = "run-7"
    daemon.run_forever = AsyncMock(side_effect=ResolutionError("Queue service unavailable"))
    lifespan = make_lifespan(daemon)

    async with lifespan(FastAPI()):
        await asyncio.sleep(0.01)

    daemon.run_forever.assert_awaited_once()
    daemon.controller.stop.assert_called_once()
