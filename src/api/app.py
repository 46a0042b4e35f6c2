# src/api/app.py
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING, Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .router import router

if TYPE_CHECKING:
    from src.controller import DaemonTask


def create_app(
    daemon: "DaemonTask",
    lifespan: Optional[Callable[[FastAPI], AbstractAsyncContextManager]] = None,
) -> FastAPI:
    """Create the control API of one pipeline run"""
    app = FastAPI(
        title="Pipeline Controller",
        description="Status and lifecycle control of a queue-connected compute pipeline",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.daemon = daemon
    app.include_router(router, prefix="/api/v1")

    return app
