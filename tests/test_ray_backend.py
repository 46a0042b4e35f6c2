import asyncio
import time

import pytest
import ray

from src.cloud import FunctionNotFoundError
from src.cloud.ray_backend import RayInvocationBackend


@pytest.fixture(scope="module")
def ray_setup():
    """Initialize Ray for testing"""
    if not ray.is_initialized():
        ray.init(num_cpus=2, include_dashboard=False, ignore_reinit_error=True)
    yield
    # Don't shut down Ray between tests to save time


@pytest.mark.asyncio
async def test_invoke_scales_pool_to_desired_count(ray_setup):
    """Test scaling a function up, repeating the same count, then to zero"""
    def word_count(parameters):
        return len(parameters["JobRequest"]["text"].split())

    backend = RayInvocationBackend({"WordCount": word_count}, status_timeout=30)
    params = {"input_queue": "step_1", "JobRequest": {"text": "to be or not"}}

    result = await backend.invoke("WordCount", params, 2)
    assert result.desired_count == 2
    assert result.detail["instances"] == 2
    assert backend.instance_count("WordCount") == 2

    # Same count again keeps the pool size
    await backend.invoke("WordCount", params, 2)
    assert backend.instance_count("WordCount") == 2

    await backend.invoke("WordCount", params, 0)
    assert backend.instance_count("WordCount") == 0

    backend.shutdown()


@pytest.mark.asyncio
async def test_started_instance_runs_handler_with_parameters(ray_setup):
    def summing_reduce(parameters):
        return {"queue": parameters["in_out_queue"], "total": sum(parameters["JobRequest"]["values"])}

    backend = RayInvocationBackend({"SummingReduce": summing_reduce}, status_timeout=30)

    result = await backend.invoke(
        "SummingReduce", {"in_out_queue": "step_2", "JobRequest": {"values": [1, 2, 3]}}, 1
    )
    instance_id = result.detail["started"][0]
    outcome = ray.get(backend.runs[instance_id])

    assert outcome["success"] is True
    assert outcome["output"] == {"queue": "step_2", "total": 6}

    backend.shutdown()
    assert backend.instance_count("SummingReduce") == 0


@pytest.mark.asyncio
async def test_failing_handler_reports_error(ray_setup):
    def broken(parameters):
        raise ValueError("bad input")

    backend = RayInvocationBackend({"Feed": broken}, status_timeout=30)

    result = await backend.invoke("Feed", {"output_queue": "step_0"}, 1)
    outcome = ray.get(backend.runs[result.detail["started"][0]])

    assert outcome["success"] is False
    assert outcome["error"]["error_type"] == "ValueError"
    assert outcome["error"]["error_message"] == "bad input"

    backend.shutdown()


@pytest.mark.asyncio
async def test_unknown_function_is_rejected():
    backend = RayInvocationBackend({})

    with pytest.raises(FunctionNotFoundError):
        await backend.invoke("Feed", {}, 1)


@pytest.mark.asyncio
async def test_busy_instance_does_not_block_event_loop(ray_setup):
    """Test status checks of a busy instance leave the event loop responsive"""
    def slow_feed(parameters):
        time.sleep(3)
        return "done"

    backend = RayInvocationBackend({"Feed": slow_feed}, status_timeout=30)
    first = await backend.invoke("Feed", {"output_queue": "step_0"}, 1)
    assert len(first.detail["started"]) == 1

    backend.status_timeout = 0.5
    finished = asyncio.Event()
    gaps = []

    async def ticker():
        last = time.monotonic()
        while not finished.is_set():
            await asyncio.sleep(0.01)
            now = time.monotonic()
            gaps.append(now - last)
            last = now

    async def scale():
        try:
            return await backend.invoke("Feed", {"output_queue": "step_0"}, 1)
        finally:
            finished.set()

    _, second = await asyncio.gather(ticker(), scale())

    # The busy instance is not handed another run
    assert second.detail["started"] == []
    assert max(gaps) < 0.25

    backend.shutdown()
