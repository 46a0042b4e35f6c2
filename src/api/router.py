# src/api/router.py
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request

from .models import PipelineStatusResponse, TerminateResponse
from .exceptions import ControllerNotRunningError, PipelineTeardownError
from src.cloud.exceptions import TeardownError
from src.controller.exceptions import ControllerNotStartedError
from src.log_handler.logging_config import get_logger

if TYPE_CHECKING:
    from src.controller import DaemonTask

logger = get_logger(__name__)

router = APIRouter()


def get_daemon(request: Request) -> "DaemonTask":
    return request.app.state.daemon


@router.get("/pipeline/status", response_model=PipelineStatusResponse)
async def get_status(daemon: "DaemonTask" = Depends(get_daemon)):
    """Current state of the control loop of this run"""
    return PipelineStatusResponse(**daemon.status())


@router.post("/pipeline/stop", response_model=PipelineStatusResponse)
async def stop_pipeline(daemon: "DaemonTask" = Depends(get_daemon)):
    """
    Stop the control loop. Compute units keep their last instance counts and
    queues keep their messages.
    """
    if daemon.controller is None:
        raise ControllerNotRunningError(f"Controller of run {daemon.run_id} has not started")

    daemon.controller.stop()
    logger.info(f"Controller of run {daemon.run_id} stopped via API")
    return PipelineStatusResponse(**daemon.status())


@router.post("/pipeline/terminate", response_model=TerminateResponse)
async def terminate_pipeline(daemon: "DaemonTask" = Depends(get_daemon)):
    """Stop the control loop and tear down every queue and compute unit of the run"""
    try:
        terminated = await daemon.teardown()
    except ControllerNotStartedError as e:
        raise ControllerNotRunningError(str(e))
    except TeardownError as e:
        logger.error(f"Teardown of run {daemon.run_id} failed: {str(e)}")
        raise PipelineTeardownError(str(e))

    return TerminateResponse(
        run_id=daemon.run_id,
        terminated=terminated,
        message="All queues and compute units torn down",
    )
