from unittest.mock import AsyncMock

import pytest

from src.cloud import (
    AlwaysOneStrategy,
    CloudError,
    ComputeUnitController,
    ComputeUnitSpec,
    DepthScalingConfig,
    FunctionNotFoundError,
    InMemoryInvocationBackend,
    InvocationError,
    JobRequest,
    MetricsSnapshot,
    PipelineTopology,
    QueueController,
    QueueDepthStrategy,
    ScalingDecision,
    SimpleCloud,
    StrategyError,
    TeardownError,
)
from src.pipeline_queue import InMemoryQueueBackend, Message, QueueNotFoundError, ResolutionError

RUN_ID = "3f1c9a2e"


@pytest.fixture
def invocations():
    return InMemoryInvocationBackend()


@pytest.fixture
def queues():
    return InMemoryQueueBackend()


@pytest.fixture
def cloud(invocations, queues):
    return SimpleCloud(invocations, queues, RUN_ID, JobRequest(parameters={"source": "s3://corpus"}))


@pytest.mark.asyncio
async def test_ensure_instances_is_idempotent(invocations):
    """Test ensuring the same count twice leaves the same end state"""
    spec = ComputeUnitSpec(unit_id="feed", function_name="Feed", parameters={"output_queue": "q"})
    unit = ComputeUnitController(invocations, spec)

    await unit.ensure_instances(1)
    state_after_one = dict(invocations.instances)
    await unit.ensure_instances(1)

    assert invocations.instances == state_after_one == {"Feed": 1}


@pytest.mark.asyncio
async def test_ensure_instances_sends_unchanged_parameter_bag(invocations):
    spec = ComputeUnitSpec(
        unit_id="reduce", function_name="SummingReduce", parameters={"in_out_queue": "q", "JobRequest": {"k": [1]}}
    )
    unit = ComputeUnitController(invocations, spec)

    await unit.ensure_instances(3)
    params, count = invocations.calls_for("SummingReduce")[0]
    params["JobRequest"]["k"].append(2)

    assert count == 3
    assert spec.parameters == {"in_out_queue": "q", "JobRequest": {"k": [1]}}


@pytest.mark.asyncio
async def test_ensure_instances_propagates_backend_errors(invocations):
    invocations.invoke = AsyncMock(side_effect=InvocationError("throttled"))
    unit = ComputeUnitController(invocations, ComputeUnitSpec(unit_id="feed", function_name="Feed"))

    with pytest.raises(InvocationError):
        await unit.ensure_instances(1)


@pytest.mark.asyncio
async def test_ensure_instances_rejects_negative_counts(invocations):
    unit = ComputeUnitController(invocations, ComputeUnitSpec(unit_id="feed", function_name="Feed"))

    with pytest.raises(ValueError):
        await unit.ensure_instances(-1)


@pytest.mark.asyncio
async def test_simple_cloud_layout(cloud):
    assert sorted(cloud.queues) == [f"step_{n}_{RUN_ID}" for n in range(3)]
    assert sorted(cloud.units) == ["feed", "reduce", "step_one", "step_two"]
    assert cloud.step_one.spec.parameters == {
        "input_queue": f"step_0_{RUN_ID}",
        "output_queue": f"step_1_{RUN_ID}",
        "JobRequest": {"source": "s3://corpus"},
    }
    assert cloud.unit_inputs() == {
        "feed": None,
        "step_one": f"step_0_{RUN_ID}",
        "step_two": f"step_1_{RUN_ID}",
        "reduce": f"step_2_{RUN_ID}",
    }


@pytest.mark.asyncio
async def test_spawn_is_idempotent(cloud, queues):
    """Test spawning twice never errors and reports the same addresses"""
    first = await cloud.spawn()
    second = await cloud.spawn()

    assert first == second
    assert len(first) == 3
    assert all(first.values())
    assert sorted(queues.created) == sorted(first)


@pytest.mark.asyncio
async def test_spawn_fails_when_one_queue_creation_fails(cloud, queues):
    original = queues.create_if_absent

    async def create(name):
        if name.startswith("step_1"):
            raise ResolutionError(f"Could not create queue {name}")
        return await original(name)

    queues.create_if_absent = create

    with pytest.raises(ResolutionError):
        await cloud.spawn()


@pytest.mark.asyncio
async def test_topology_ensure_instances_for_unknown_unit(cloud):
    with pytest.raises(CloudError):
        await cloud.ensure_instances("map", 1)


@pytest.mark.asyncio
async def test_metrics_come_from_queues_only(cloud):
    """Test components without the metrics capability are skipped"""
    await cloud.spawn()
    await cloud.step_zero_queue.queue().send(Message(identifier="m1", data="line"))

    snapshot = await cloud.metrics()

    assert set(snapshot.components) == set(cloud.queues)
    assert snapshot.get(f"step_0_{RUN_ID}", "approximate_depth") == 1.0
    assert snapshot.get(f"step_1_{RUN_ID}", "approximate_depth") == 0.0


@pytest.mark.asyncio
async def test_metrics_none_without_reporting_components(invocations):
    unit = ComputeUnitController(invocations, ComputeUnitSpec(unit_id="feed", function_name="Feed"))
    topology = PipelineTopology("run", queues=[], units=[unit])

    assert await topology.metrics() is None


@pytest.mark.asyncio
async def test_apply_decision_covers_every_unit(cloud, invocations):
    decision = ScalingDecision(counts={"feed": 1, "step_one": 2, "step_two": 2, "reduce": 1})

    await cloud.apply_decision(decision)
    await cloud.apply_decision(decision)

    assert invocations.instances == {"Feed": 1, "ProcessStepOne": 2, "WordCount": 2, "SummingReduce": 1}
    # Unchanged units are called again as well
    assert len(invocations.calls) == 8


@pytest.mark.asyncio
async def test_apply_decision_missing_unit_calls_nothing(cloud, invocations):
    with pytest.raises(StrategyError):
        await cloud.apply_decision(ScalingDecision(counts={"feed": 1}))

    assert invocations.calls == []


@pytest.mark.asyncio
async def test_terminate_removes_queues_and_scales_units_to_zero(cloud, queues, invocations):
    addresses = await cloud.spawn()
    await cloud.apply_decision(AlwaysOneStrategy(cloud.units).decide(None))

    assert await cloud.terminate() is True

    for name in addresses:
        with pytest.raises(ResolutionError):
            await queues.resolve_by_prefix(name)
    assert set(invocations.instances.values()) == {0}


@pytest.mark.asyncio
async def test_terminate_tolerates_already_gone_resources(invocations, queues):
    """Test teardown of resources that no longer exist still succeeds"""
    invocations.functions = set()
    cloud = SimpleCloud(invocations, queues, RUN_ID)

    # Queues never spawned, functions unknown to the backend
    assert await cloud.terminate() is True
    await cloud.spawn()
    assert await cloud.terminate() is True
    assert await cloud.terminate() is True


@pytest.mark.asyncio
async def test_terminate_reports_failed_components(cloud, invocations):
    await cloud.spawn()
    invocations.invoke = AsyncMock(side_effect=InvocationError("throttled"))

    with pytest.raises(TeardownError) as excinfo:
        await cloud.terminate()

    assert set(excinfo.value.failures) == {"feed", "step_one", "step_two", "reduce"}


@pytest.mark.asyncio
async def test_queue_controller_terminate_is_idempotent(queues):
    controller = QueueController(queues, "step_0_x")
    await controller.spawn()

    assert await controller.terminate() is True
    assert await controller.terminate() is True
    assert controller.address.resolved is False


@pytest.mark.asyncio
async def test_repeated_terminate_leaves_runs_with_longer_ids_alone(invocations, queues):
    """Test tearing a run down twice never touches a run whose id extends it"""
    run_1 = SimpleCloud(invocations, queues, "r1")
    run_10 = SimpleCloud(invocations, queues, "r10")
    await run_1.spawn()
    addresses = await run_10.spawn()

    assert await run_1.terminate() is True
    assert await run_1.terminate() is True

    for name, address in addresses.items():
        assert await queues.lookup(name) == address
    with pytest.raises(QueueNotFoundError):
        await queues.lookup("step_0_r1")


@pytest.mark.asyncio
async def test_unit_terminate_treats_missing_function_as_gone():
    backend = InMemoryInvocationBackend(functions=set())
    unit = ComputeUnitController(backend, ComputeUnitSpec(unit_id="feed", function_name="Feed"))

    assert await unit.terminate() is True
    with pytest.raises(FunctionNotFoundError):
        await unit.ensure_instances(1)


def test_always_one_is_total():
    """Test the always-one strategy ignores metrics and covers every unit"""
    strategy = AlwaysOneStrategy(["feed", "step_one", "step_two", "reduce"])
    snapshot = MetricsSnapshot(components={"step_0": {"approximate_depth": 5000.0}})

    without_metrics = strategy.decide(None)
    with_metrics = strategy.decide(snapshot)

    assert without_metrics.counts == with_metrics.counts == {
        "feed": 1, "step_one": 1, "step_two": 1, "reduce": 1
    }


def test_queue_depth_strategy_scales_with_backlog():
    strategy = QueueDepthStrategy(
        {"feed": None, "step_one": "step_0", "reduce": "step_2"},
        DepthScalingConfig(min_instances=1, max_instances=5, messages_per_instance=10),
    )
    snapshot = MetricsSnapshot(components={
        "step_0": {"approximate_depth": 25.0},
        "step_2": {"approximate_depth": 1000.0},
    })

    decision = strategy.decide(snapshot)

    assert decision.counts == {"feed": 1, "step_one": 3, "reduce": 5}
    assert strategy.decide(snapshot) == decision


def test_queue_depth_strategy_without_metrics_uses_minimum():
    strategy = QueueDepthStrategy({"feed": None, "step_one": "step_0"}, DepthScalingConfig(min_instances=2))

    assert strategy.decide(None).counts == {"feed": 2, "step_one": 2}
    empty_queue = MetricsSnapshot(components={"step_0": {"approximate_depth": 0.0}})
    assert strategy.decide(empty_queue).count_for("step_one") == 2


def test_depth_config_validates_bounds():
    with pytest.raises(ValueError):
        DepthScalingConfig(min_instances=5, max_instances=2)
    with pytest.raises(ValueError):
        DepthScalingConfig(messages_per_instance=0)


def test_scaling_decision_rejects_negative_counts():
    with pytest.raises(ValueError):
        ScalingDecision(counts={"feed": -1})


def test_metrics_snapshot_merge():
    merged = MetricsSnapshot.merge([
        MetricsSnapshot(components={"a": {"approximate_depth": 1.0}}),
        MetricsSnapshot(components={"b": {"approximate_depth": 2.0}}),
    ])

    assert merged.get("a", "approximate_depth") == 1.0
    assert merged.get("b", "approximate_depth") == 2.0
    assert merged.get("c", "approximate_depth", 0.0) == 0.0
