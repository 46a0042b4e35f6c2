# src/api/models.py
from typing import Dict, Optional

from pydantic import BaseModel


class PipelineStatusResponse(BaseModel):
    run_id: str
    state: str
    invocations: int = 0
    ticks: int = 0
    failures: int = 0
    last_decision: Optional[Dict[str, int]] = None
    last_error: Optional[str] = None


class TerminateResponse(BaseModel):
    run_id: str
    terminated: bool
    message: str
