"""
pr_desk.api.error_handlers

Error normalizer wiring for the FastAPI app.

Responsibilities:
- Turn every failure into the stable `{error, code, timestamp, details?}` envelope.
- Log full detail (exception, traceback, request metadata, principal) server-side.
- Echo exception detail to the client only outside production.
"""

from __future__ import annotations

import traceback
from typing import Any

import httpx
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from pr_desk.errors import (
    AppError,
    ErrorContext,
    ErrorSpec,
    RateLimitExceeded,
    ValidationFailed,
    classify,
    error_body,
)
from pr_desk.observability.logging import get_logger
from pr_desk.security.validation import field_errors
from pr_desk.settings import Settings

log = get_logger(__name__)


def request_context(request: Request) -> ErrorContext:
    principal = getattr(request.state, "principal", None)
    return ErrorContext(
        method=request.method,
        path=request.url.path,
        principal_id=str(principal.id) if principal is not None else "anonymous",
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _log_failure(exc: Exception, kind: ErrorSpec, ctx: ErrorContext) -> None:
    fields: dict[str, Any] = {
        "code": kind.code,
        "status_code": kind.status_code,
        "error_type": type(exc).__name__,
        "error_message": str(exc),
        "method": ctx.method,
        "endpoint": ctx.path,
        "principal_id": ctx.principal_id,
        "client_ip": ctx.client_ip,
        "user_agent": ctx.user_agent,
    }
    if kind.status_code >= 500:
        log.error("api_error", exc_info=exc, **fields)
    else:
        log.warning("api_error", exc_info=exc, **fields)


def build_error_response(exc: Exception, request: Request, settings: Settings) -> JSONResponse:
    kind = classify(exc)
    ctx = request_context(request)
    _log_failure(exc, kind, ctx)

    details: list[dict[str, Any]] | dict[str, Any] | None = None
    extra: dict[str, Any] = {}
    headers: dict[str, str] = {}

    # Field-level validation errors are client-safe and always returned.
    if isinstance(exc, ValidationFailed):
        details = [e.as_dict() for e in exc.errors]
    elif isinstance(exc, RequestValidationError):
        details = [e.as_dict() for e in field_errors(exc.errors())]
    elif not settings.is_production:
        details = {
            "message": str(exc),
            "type": type(exc).__name__,
            "stack": traceback.format_exception(exc),
            "endpoint": f"{ctx.method} {ctx.path}",
        }

    if isinstance(exc, RateLimitExceeded):
        extra["retryAfter"] = exc.retry_after
        headers["Retry-After"] = str(exc.retry_after)
    if isinstance(exc, StarletteHTTPException) and exc.headers:
        headers.update(exc.headers)

    return JSONResponse(
        status_code=kind.status_code,
        content=error_body(kind, details=details, extra=extra),
        headers=headers or None,
    )


class ErrorNormalizerMiddleware(BaseHTTPMiddleware):
    """
    Outermost catch for anything the typed handlers below did not claim.
    """

    def __init__(self, app, *, settings: Settings) -> None:
        super().__init__(app)
        self._settings = settings

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return build_error_response(exc, request, self._settings)


def install_error_handlers(app: FastAPI, settings: Settings) -> None:
    async def _handler(request: Request, exc: Exception) -> JSONResponse:
        return build_error_response(exc, request, settings)

    for exc_type in (
        AppError,
        StarletteHTTPException,
        RequestValidationError,
        SQLAlchemyError,
        httpx.HTTPError,
    ):
        app.add_exception_handler(exc_type, _handler)
    app.add_middleware(ErrorNormalizerMiddleware, settings=settings)


# --- Module Notes -----------------------------------------------------------
# Handlers registered for concrete exception types run inside Starlette's
# ExceptionMiddleware and do not re-raise; the middleware covers the rest
# (a bare `Exception` handler would be re-raised by ServerErrorMiddleware).
