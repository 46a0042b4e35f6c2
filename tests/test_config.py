import pytest
from pydantic import ValidationError

from src.config import InvocationKind, PipelineSettings, QueueKind, StrategyKind
from src.timing import FailurePolicy


def test_defaults_run_locally():
    settings = PipelineSettings.from_env({})

    assert settings.invocation_backend == InvocationKind.MEMORY
    assert settings.queue_backend == QueueKind.MEMORY
    assert settings.scheduling_interval_ms == 5000
    assert settings.host_delay_seconds == 10.0
    assert settings.failure_policy == FailurePolicy.HALT
    assert settings.run_id


def test_from_env_reads_prefixed_variables():
    """Test settings are read from PIPELINE_ variables, dicts as JSON"""
    settings = PipelineSettings.from_env({
        "PIPELINE_RUN_ID": "run-42",
        "PIPELINE_INVOCATION_BACKEND": "lambda",
        "PIPELINE_QUEUE_BACKEND": "sqs",
        "PIPELINE_SCHEDULING_INTERVAL_MS": "2500",
        "PIPELINE_FAILURE_POLICY": "continue",
        "PIPELINE_STRATEGY": "queue_depth",
        "PIPELINE_JOB_PARAMETERS": '{"source": "s3://corpus", "top": 10}',
        "PIPELINE_SERVE_API": "false",
        "UNRELATED": "ignored",
    })

    assert settings.run_id == "run-42"
    assert settings.invocation_backend == InvocationKind.LAMBDA
    assert settings.queue_backend == QueueKind.SQS
    assert settings.scheduling_interval_ms == 2500
    assert settings.failure_policy == FailurePolicy.CONTINUE
    assert settings.strategy == StrategyKind.QUEUE_DEPTH
    assert settings.job_parameters == {"source": "s3://corpus", "top": 10}
    assert settings.serve_api is False


def test_from_env_rejects_invalid_values():
    with pytest.raises(ValidationError):
        PipelineSettings.from_env({"PIPELINE_SCHEDULING_INTERVAL_MS": "0"})
    with pytest.raises(ValidationError):
        PipelineSettings.from_env({"PIPELINE_INVOCATION_BACKEND": "azure"})
