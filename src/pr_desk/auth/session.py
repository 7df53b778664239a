"""
pr_desk.auth.session

Session resolver: turns an inbound request into a `Principal`.

Responsibilities:
- Extract the session token from the session cookie or a bearer header.
- Verify signature/expiry and normalize claims into a `Principal`.
- Flag tokens older than the refresh interval for re-issue.
- Fail with one generic authentication error whatever the underlying reason.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from starlette.requests import Request
from starlette.responses import Response

from pr_desk.auth.jwt import JwtConfig, JwtValidationError, decode_and_validate, issue_token
from pr_desk.auth.models import Principal, Role
from pr_desk.errors import AuthenticationRequired
from pr_desk.observability.logging import get_logger
from pr_desk.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedSession:
    # Built from the token claims only; `auth.deps.get_principal` reloads it from the DB.
    principal: Principal
    # The token crossed the refresh interval; re-issue once the user is re-checked.
    needs_refresh: bool = False


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SessionResolver:
    def __init__(self, settings: Settings, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._settings = settings
        self._cfg = JwtConfig.from_settings(settings)
        self._clock = clock

    def issue(self, *, user_id: int, email: str, role: Role) -> str:
        return issue_token(
            cfg=self._cfg,
            subject=str(user_id),
            email=email,
            role=role.value,
            ttl=timedelta(seconds=self._settings.session_max_age_seconds),
            now=self._clock(),
        )

    def extract_token(self, request: Request) -> str | None:
        token = request.cookies.get(self._settings.session_cookie_name)
        if token:
            return token
        scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return None

    def resolve(self, request: Request) -> ResolvedSession:
        token = self.extract_token(request)
        if token is None:
            log.info("session_rejected", reason="missing")
            raise AuthenticationRequired("missing session token")

        try:
            payload = decode_and_validate(cfg=self._cfg, token=token)
        except JwtValidationError as e:
            log.info("session_rejected", reason="invalid", error=str(e))
            raise AuthenticationRequired(f"invalid session token: {e}") from e

        try:
            principal = Principal(
                id=int(payload["sub"]),
                email=str(payload.get("email", "")),
                role=Role(payload.get("role")),
            )
        except (KeyError, TypeError, ValueError) as e:
            log.info("session_rejected", reason="claims", error=str(e))
            raise AuthenticationRequired(f"invalid session claims: {e}") from e

        age = self._clock().timestamp() - float(payload["iat"])
        return ResolvedSession(
            principal=principal,
            needs_refresh=age >= self._settings.session_update_age_seconds,
        )

    def set_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self._settings.session_cookie_name,
            value=token,
            max_age=self._settings.session_max_age_seconds,
            httponly=True,
            secure=self._settings.is_production,
            samesite="lax",
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(key=self._settings.session_cookie_name)


# --- Module Notes -----------------------------------------------------------
# Tokens carry identity, not authority: role and status are re-read from the
# users table on every request, so demotions and deactivations apply at once.
