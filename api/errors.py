"""
Workflow error to HTTP response mapping.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from domain.errors import (
    ConcurrentModification,
    DownstreamUnavailable,
    GuardNotSatisfied,
    InvalidInput,
    InvalidTransition,
    VisitorAlreadyExists,
    VisitorNotFound,
    VisitorWorkflowError,
)

logger = logging.getLogger(__name__)

# First match wins, so subclasses come before their bases.
_STATUS_BY_ERROR = (
    (VisitorNotFound, 404),
    (VisitorAlreadyExists, 409),
    (InvalidTransition, 409),
    (ConcurrentModification, 409),
    (GuardNotSatisfied, 422),
    (InvalidInput, 422),
    (DownstreamUnavailable, 503),
)


def status_for(exc: VisitorWorkflowError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def workflow_error_handler(request: Request, exc: VisitorWorkflowError) -> JSONResponse:
    status_code = status_for(exc)
    body = {"error": exc.code, "detail": str(exc), "status_code": status_code}
    if isinstance(exc, GuardNotSatisfied):
        body["unmet_conditions"] = list(exc.unmet_conditions)
    return JSONResponse(status_code=status_code, content=body)


async def storage_error_handler(request: Request, exc: RuntimeError) -> JSONResponse:
    logger.error(f"Storage failure on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "storage_error", "detail": str(exc), "status_code": 500},
    )
