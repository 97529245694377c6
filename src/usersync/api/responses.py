"""Response envelope and error mapping shared by every service app.

Success bodies are ``{"success": true, "data": ...}``; failures are
``{"success": false, "message": ...}`` with the status taken from the
domain error.  Every response carries the request's ``X-Trace-Id``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from usersync.core.errors import DomainError
from usersync.observability import metrics
from usersync.observability.logger import new_trace_id, set_trace_id

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-Id"


def ok(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"success": True, "data": data}, status_code=status_code)


def fail(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=status_code)


def install_common(app: FastAPI, service: str) -> None:
    """Attach error handlers, trace middleware, /health and /metrics."""

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        incoming = request.headers.get(TRACE_HEADER)
        if incoming:
            set_trace_id(incoming)
            trace_id = incoming
        else:
            trace_id = new_trace_id()
        response = await call_next(request)
        response.headers[TRACE_HEADER] = trace_id
        return response

    @app.exception_handler(DomainError)
    async def domain_error(request: Request, exc: DomainError) -> JSONResponse:
        logger.info(
            "%s %s -> %d %s",
            request.method, request.url.path, exc.status_code, exc.message,
        )
        return fail(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        detail = first.get("msg", "Invalid request")
        return fail(f"{field}: {detail}" if field else detail, 400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return fail(str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return fail("Internal server error", 500)

    @app.get("/health")
    async def health() -> JSONResponse:
        return ok({"service": service, "status": "ok"})

    app.mount("/metrics", metrics.metrics_asgi_app())
