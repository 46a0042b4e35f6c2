# src/api/exceptions.py
from fastapi import HTTPException
from starlette.status import (
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
)


class ControllerNotRunningError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=HTTP_404_NOT_FOUND, detail=detail)


class PipelineTeardownError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
