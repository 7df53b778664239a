"""
pr_desk.security.validation

Input validation and sanitization for untrusted JSON payloads.

Responsibilities:
- Schema-check payloads against pydantic models and report `{field, message}` errors.
- Define the closed, per-activity-type content schemas.
- Strip prototype-pollution keys from nested JSON before storage.
- Reject oversized requests before any body parsing.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from pr_desk.db.models import ActivityType
from pr_desk.errors import PAYLOAD_TOO_LARGE, VALIDATION, FieldError, ValidationFailed, error_body
from pr_desk.observability.logging import get_logger

log = get_logger(__name__)

DANGEROUS_KEYS = frozenset({"__proto__", "constructor", "prototype"})

# Location prefixes FastAPI adds to request validation errors.
_LOC_SOURCES = frozenset({"body", "query", "path", "header", "cookie"})

M = TypeVar("M", bound=BaseModel)


class ApiModel(BaseModel):
    """
    Base for request/response schemas: camelCase on the wire, snake_case in code.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


@dataclass(slots=True)
class ValidationResult(Generic[M]):
    is_valid: bool
    errors: list[FieldError] = field(default_factory=list)
    value: M | None = None


def field_errors(errors: Sequence[Mapping[str, Any]]) -> list[FieldError]:
    out: list[FieldError] = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in _LOC_SOURCES]
        out.append(FieldError(field=".".join(loc) or "root", message=str(err.get("msg", ""))))
    return out


def validate(schema: type[M], payload: Any) -> ValidationResult[M]:
    try:
        value = schema.model_validate(payload)
    except ValidationError as e:
        return ValidationResult(is_valid=False, errors=field_errors(e.errors()))
    return ValidationResult(is_valid=True, value=value)


def validate_or_raise(schema: type[M], payload: Any) -> M:
    result = validate(schema, payload)
    if not result.is_valid or result.value is None:
        raise ValidationFailed(result.errors, detail=f"{schema.__name__} validation failed")
    return result.value


def sanitize(value: Any) -> Any:
    """
    Return a copy of `value` without `__proto__`/`constructor`/`prototype` keys
    at any depth. Idempotent.
    """

    if isinstance(value, Mapping):
        return {k: sanitize(v) for k, v in value.items() if k not in DANGEROUS_KEYS}
    if isinstance(value, list | tuple):
        return [sanitize(v) for v in value]
    return value


# --- Activity content variants ------------------------------------------------

Url = Annotated[str, Field(max_length=2000)]
Keyword = Annotated[str, Field(max_length=50)]
Priority = Literal["low", "medium", "high", "urgent"]


class ContentMetadata(ApiModel):
    # Open-ended; nested keys are sanitized before storage.
    model_config = ConfigDict(extra="allow")

    analysis_date: datetime | None = None
    confidence: float | None = Field(default=None, ge=0, le=1)
    version: str | None = Field(default=None, max_length=20)


class TrendItem(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    impact: str | None = Field(default=None, max_length=1000)
    keyword: str | None = Field(default=None, max_length=100)
    relevance_score: float | None = Field(default=None, ge=0, le=10)
    sentiment: Literal["positive", "negative", "neutral"] | None = None


class TrendContent(ApiModel):
    keyword: str | None = Field(default=None, max_length=100)
    summary: str | None = Field(default=None, max_length=5000)
    trends: list[TrendItem] = Field(default_factory=list, max_length=20)
    sources: list[Url] = Field(default_factory=list, max_length=50)
    keywords: list[Keyword] = Field(default_factory=list, max_length=30)
    category: str | None = Field(default=None, max_length=100)
    priority: Priority | None = None
    metadata: ContentMetadata | None = None


class IdeaContent(ApiModel):
    headline: str = Field(min_length=1, max_length=500)
    summary: str | None = Field(default=None, max_length=5000)
    campaign_type: str | None = Field(default=None, max_length=100)
    context: str | None = Field(default=None, max_length=10000)
    sources: list[Url] = Field(default_factory=list, max_length=50)
    keywords: list[Keyword] = Field(default_factory=list, max_length=30)
    priority: Priority | None = None
    metadata: ContentMetadata | None = None


class HeadlineItem(ApiModel):
    text: str = Field(min_length=1, max_length=500)
    style: str | None = Field(default=None, max_length=100)
    strength: float | None = Field(default=None, ge=0, le=10)
    appeal: str | None = Field(default=None, max_length=500)


class PrContent(ApiModel):
    headline: str = Field(min_length=1, max_length=500)
    summary: str | None = Field(default=None, max_length=5000)
    press_release: str | None = Field(default=None, max_length=20000)
    headlines: list[HeadlineItem] = Field(default_factory=list, max_length=20)
    campaign_type: str | None = Field(default=None, max_length=100)
    sources: list[Url] = Field(default_factory=list, max_length=50)
    metadata: ContentMetadata | None = None


CONTENT_SCHEMAS: dict[ActivityType, type[ApiModel]] = {
    ActivityType.trend: TrendContent,
    ActivityType.idea: IdeaContent,
    ActivityType.pr: PrContent,
}


def content_schema_for(activity_type: ActivityType) -> type[ApiModel]:
    return CONTENT_SCHEMAS[activity_type]


def clean_content(activity_type: ActivityType, payload: Any) -> dict[str, Any]:
    """
    Validate `payload` against the variant for `activity_type`, then sanitize.
    Errors are reported under `content.<field>`.
    """

    result = validate(content_schema_for(activity_type), payload)
    if not result.is_valid or result.value is None:
        errors = [FieldError(f"content.{e.field}", e.message) for e in result.errors]
        raise ValidationFailed(errors, detail=f"invalid {activity_type.value} content")
    dumped = result.value.model_dump(mode="json", by_alias=True, exclude_none=True)
    return sanitize(dumped)


# --- Request size guard ---------------------------------------------------------


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next) -> Response:
        declared = request.headers.get("content-length")
        if declared is not None:
            try:
                size = int(declared)
            except ValueError:
                return JSONResponse(
                    status_code=VALIDATION.status_code,
                    content=error_body(
                        VALIDATION,
                        details=[{"field": "content-length", "message": "Invalid header"}],
                    ),
                )
            if size > self._max_bytes:
                log.warning("request_too_large", size=size, max_bytes=self._max_bytes)
                return JSONResponse(
                    status_code=PAYLOAD_TOO_LARGE.status_code,
                    content=error_body(PAYLOAD_TOO_LARGE, extra={"maxBytes": self._max_bytes}),
                )
        return await call_next(request)


# --- Module Notes -----------------------------------------------------------
# Sanitization runs even on schema-valid payloads: `ContentMetadata` accepts
# arbitrary extra keys, and nested dicts there are not schema-checked.
