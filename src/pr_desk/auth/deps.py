"""
pr_desk.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert the session cookie/bearer token into a typed `Principal`.
- Re-check the user row so deactivation and role changes apply immediately.
- Refresh the session cookie on activity.
- Enforce role capabilities via reusable dependency factories.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.auth.identity import principal_of
from pr_desk.auth.models import Action, Principal, Resource, has_capability
from pr_desk.auth.session import SessionResolver
from pr_desk.db.models import UserStatus
from pr_desk.db.repositories.users import UserRepo
from pr_desk.db.session import db_session
from pr_desk.errors import AccessDenied, AuthenticationRequired
from pr_desk.observability.logging import get_logger

log = get_logger(__name__)


def session_resolver(request: Request) -> SessionResolver:
    # Created once in `api.app.create_app`.
    return request.app.state.session_resolver  # type: ignore[no-any-return]


async def get_principal(
    request: Request,
    response: Response,
    resolver: SessionResolver = Depends(session_resolver),
    session: AsyncSession = Depends(db_session),
) -> Principal:
    resolved = resolver.resolve(request)

    user = await UserRepo(session).get(resolved.principal.id)
    if user is None or user.status != UserStatus.active:
        log.info(
            "session_rejected",
            reason="unknown_user" if user is None else "inactive",
            user_id=resolved.principal.id,
        )
        raise AuthenticationRequired(f"user {resolved.principal.id} is not active")

    principal = principal_of(user)
    if resolved.needs_refresh:
        resolver.set_cookie(
            response,
            resolver.issue(user_id=principal.id, email=principal.email, role=principal.role),
        )

    # Downstream components (error normalizer, audit) read it from request state.
    request.state.principal = principal
    structlog.contextvars.bind_contextvars(principal_id=principal.id)
    return principal


def require_capability(action: Action, resource: Resource):
    async def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if not has_capability(principal, action, resource):
            raise AccessDenied(
                f"role {principal.role.value} cannot {action.value} {resource.value}"
            )
        return principal

    return _dep


# --- Module Notes -----------------------------------------------------------
# Row-level checks (assignments) need the database and live in `security.access`;
# these dependencies only gate on the role.
