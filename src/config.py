# src/config.py
import json
import os
import uuid
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

from src.timing import FailurePolicy

ENV_PREFIX = "PIPELINE_"


class InvocationKind(str, Enum):
    LAMBDA = "lambda"
    RAY = "ray"
    MEMORY = "memory"


class QueueKind(str, Enum):
    SQS = "sqs"
    MEMORY = "memory"


class StrategyKind(str, Enum):
    ALWAYS_ONE = "always_one"
    QUEUE_DEPTH = "queue_depth"


class PipelineSettings(BaseModel):
    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    invocation_backend: InvocationKind = InvocationKind.MEMORY
    queue_backend: QueueKind = QueueKind.MEMORY
    aws_region: str = "us-east-1"
    scheduling_interval_ms: int = Field(default=5000, ge=1)
    host_delay_seconds: float = Field(default=10.0, ge=0)
    execution_budget_seconds: float = Field(default=900.0, gt=0)
    failure_policy: FailurePolicy = FailurePolicy.HALT
    max_consecutive_failures: Optional[int] = Field(default=None, ge=1)
    strategy: StrategyKind = StrategyKind.ALWAYS_ONE
    min_instances: int = Field(default=1, ge=0)
    max_instances: int = Field(default=10, ge=1)
    messages_per_instance: int = Field(default=10, ge=1)
    job_parameters: Dict[str, Any] = Field(default_factory=dict)
    log_level: str = "INFO"
    log_file: Optional[str] = None
    ray_address: Optional[str] = None
    stage_handlers: Dict[str, str] = Field(default_factory=dict)
    serve_api: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=8000, ge=1, le=65535)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        """
        Read PIPELINE_<FIELD> variables. Dict-valued fields are JSON, e.g.
        PIPELINE_STAGE_HANDLERS='{"Feed": "stages.word_count:feed"}'.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if field.annotation in (Dict[str, Any], Dict[str, str]):
                values[name] = json.loads(raw)
            else:
                values[name] = raw
        return cls(**values)
