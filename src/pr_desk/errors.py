"""
pr_desk.errors

Error taxonomy and classification (the error normalizer's core).

Responsibilities:
- Define the typed exceptions raised across the request pipeline.
- Map any exception to a fixed, client-safe `(status, message, code)` tuple.
- Build the stable JSON error envelope returned to clients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException


@dataclass(frozen=True, slots=True)
class ErrorSpec:
    status_code: int
    message: str
    code: str


VALIDATION = ErrorSpec(400, "The request data is invalid", "VALIDATION_ERROR")
AUTHENTICATION = ErrorSpec(401, "Authentication required", "AUTHENTICATION_ERROR")
AUTHORIZATION = ErrorSpec(403, "Insufficient permissions", "AUTHORIZATION_ERROR")
NOT_FOUND = ErrorSpec(404, "The requested resource was not found", "NOT_FOUND_ERROR")
CONFLICT = ErrorSpec(409, "The request conflicts with existing data", "CONFLICT_ERROR")
PAYLOAD_TOO_LARGE = ErrorSpec(413, "Request too large", "PAYLOAD_TOO_LARGE")
RATE_LIMIT = ErrorSpec(429, "Too many requests, please try again later", "RATE_LIMIT_ERROR")
RATE_LIMIT_EXCEEDED = ErrorSpec(
    429, "Too many requests, please try again later", "RATE_LIMIT_EXCEEDED"
)
DATABASE = ErrorSpec(500, "A database error occurred", "DATABASE_ERROR")
CONFIGURATION = ErrorSpec(500, "The service is not configured correctly", "CONFIGURATION_ERROR")
EXTERNAL_API = ErrorSpec(502, "An external service error occurred", "EXTERNAL_API_ERROR")
INTERNAL = ErrorSpec(500, "An internal server error occurred", "INTERNAL_ERROR")


@dataclass(frozen=True, slots=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class AppError(Exception):
    """
    Base class for errors the pipeline raises on purpose.

    `str(exc)` is the server-side detail; clients only ever see `kind.message`.
    """

    kind: ErrorSpec = INTERNAL

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.kind.message)
        self.detail = detail or self.kind.message


class ValidationFailed(AppError):
    kind = VALIDATION

    def __init__(self, errors: list[FieldError], detail: str = "validation failed") -> None:
        super().__init__(detail)
        self.errors = errors


class AuthenticationRequired(AppError):
    kind = AUTHENTICATION


class AccessDenied(AppError):
    kind = AUTHORIZATION


class NotFound(AppError):
    kind = NOT_FOUND


class Conflict(AppError):
    kind = CONFLICT


class PayloadTooLarge(AppError):
    kind = PAYLOAD_TOO_LARGE


class RateLimitExceeded(AppError):
    kind = RATE_LIMIT_EXCEEDED

    def __init__(self, retry_after: int, detail: str = "rate limit exceeded") -> None:
        super().__init__(detail)
        self.retry_after = retry_after


class ExternalServiceError(AppError):
    kind = EXTERNAL_API


class ConfigurationError(AppError):
    kind = CONFIGURATION


_STATUS_SPECS: dict[int, ErrorSpec] = {
    400: VALIDATION,
    401: AUTHENTICATION,
    403: AUTHORIZATION,
    404: NOT_FOUND,
    409: CONFLICT,
    413: PAYLOAD_TOO_LARGE,
    422: VALIDATION,
    429: RATE_LIMIT,
    502: EXTERNAL_API,
}

# Ordered, case-sensitive: the first matching needle wins.
_HEURISTICS: tuple[tuple[tuple[str, ...], ErrorSpec], ...] = (
    (("validation",), VALIDATION),
    (("authentication", "Unauthorized"), AUTHENTICATION),
    (("permission", "Forbidden"), AUTHORIZATION),
    (("not found", "Not Found"), NOT_FOUND),
    (("rate limit", "Too Many Requests"), RATE_LIMIT),
    (("database", "SQL"), DATABASE),
    (("fetch", "API"), EXTERNAL_API),
)


def classify(exc: BaseException) -> ErrorSpec:
    if isinstance(exc, AppError):
        return exc.kind
    if isinstance(exc, RequestValidationError | PydanticValidationError):
        return VALIDATION
    if isinstance(exc, SQLAlchemyError):
        return DATABASE
    if isinstance(exc, httpx.HTTPError):
        return EXTERNAL_API
    if isinstance(exc, StarletteHTTPException):
        kind = _STATUS_SPECS.get(exc.status_code)
        if kind is not None:
            return kind
        if exc.status_code < 500:
            return ErrorSpec(exc.status_code, str(exc.detail), "REQUEST_ERROR")
        return INTERNAL

    name = type(exc).__name__
    if name == "ValidationError":
        return VALIDATION
    message = str(exc)
    for needles, kind in _HEURISTICS:
        if any(n in message for n in needles):
            return kind
    return INTERNAL


def error_body(
    kind: ErrorSpec,
    *,
    details: list[dict[str, Any]] | dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "error": kind.message,
        "code": kind.code,
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }
    if extra:
        body.update(extra)
    if details is not None:
        body["details"] = details
    return body


@dataclass(slots=True)
class ErrorContext:
    """Server-side only: everything we know about a failed request."""

    method: str
    path: str
    principal_id: str = "anonymous"
    client_ip: str | None = None
    user_agent: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


# --- Module Notes -----------------------------------------------------------
# Classification order matters: typed errors win over library types, which win
# over substring heuristics. Keep `_HEURISTICS` short; prefer raising a typed error.
