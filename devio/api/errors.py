"""
devio.api.errors — Economy error envelope
==========================================

Every :class:`~devio.errors.EconomyError` leaving a route is rendered as::

    {"success": false, "error": {"code": ..., "message": ..., "details": {...}}}

with a status code chosen by error type.  Plain ``HTTPException``s (auth,
validation) are normalised into the same shape.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from devio.errors import (
    ContentNotFound,
    EconomyError,
    UnauthorizedBountyAction,
)

logger = logging.getLogger(__name__)


def status_for(exc: EconomyError) -> int:
    """404 for missing content, 403 for a wrong actor, 400 otherwise."""
    if isinstance(exc, ContentNotFound):
        return 404
    if isinstance(exc, UnauthorizedBountyAction):
        return 403 if exc.forbidden else 400
    return 400


def _envelope(code: str, message: str, details: dict | None = None) -> dict:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


async def handle_economy_error(request: Request, exc: EconomyError) -> JSONResponse:
    status_code = status_for(exc)
    logger.warning(
        "[%s] %s %s -> %d: %s",
        exc.code, request.method, request.url.path, status_code, exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content=_envelope(exc.code, exc.message, exc.details),
    )


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    logger.warning(
        "[HTTPException] %s %s -> %d: %s",
        request.method, request.url.path, exc.status_code, exc.detail,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope("HTTP_ERROR", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning(
        "[ValidationError] %s %s -> 422: %s", request.method, request.url.path, exc.errors()
    )
    return JSONResponse(
        status_code=422,
        content=_envelope(
            "VALIDATION_001", "Validation failed", {"errors": jsonable_errors(exc)}
        ),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors stripped of values that may not serialise (``ctx``, ``input``)."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EconomyError, handle_economy_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
