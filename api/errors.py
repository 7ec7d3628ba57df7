"""
Exception handlers that turn service errors into JSON responses.

Every error body has the shape ``{"error": message}``; validation failures add
``details`` with one entry per offending field.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from implementation.misc.errors import InternalFailure, MagicStreamError, ValidationFailure

logger = logging.getLogger(__name__)


def _field_path(location: tuple) -> str:
    # Drop the leading "body"/"path"/"query" segment FastAPI adds.
    parts = [str(part) for part in location[1:]] if len(location) > 1 else [str(part) for part in location]
    return ".".join(parts)


def error_response(error: MagicStreamError) -> JSONResponse:
    body = {"error": error.message}
    if isinstance(error, ValidationFailure) and error.problems:
        body["details"] = error.problems
    return JSONResponse(status_code=error.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(MagicStreamError)
    async def handle_service_error(request: Request, exc: MagicStreamError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = [
            {"field": _field_path(tuple(error.get("loc", ()))), "message": error.get("msg", "")}
            for error in exc.errors()
        ]
        return error_response(ValidationFailure("Validation failed", problems))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(InternalFailure())
