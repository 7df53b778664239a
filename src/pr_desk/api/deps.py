"""
pr_desk.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and shared services.
- Wire the IP and user rate limiters into the request pipeline.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.params import Depends as DependsParam
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.auth.deps import get_principal
from pr_desk.auth.models import Principal
from pr_desk.db.session import db_session
from pr_desk.security.access import AccessControl
from pr_desk.security.rate_limit import RateLimitRegistry, Tier
from pr_desk.settings import Settings


def settings_dep(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[no-any-return]


def access_control(session: AsyncSession = Depends(db_session)) -> AccessControl:
    return AccessControl(session)


def rate_limits(request: Request) -> RateLimitRegistry:
    return request.app.state.rate_limits  # type: ignore[no-any-return]


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def ip_rate_limit(tier: Tier):
    async def _dep(request: Request, limits: RateLimitRegistry = Depends(rate_limits)) -> None:
        await limits.hit_ip(tier, client_ip(request))

    return _dep


def user_rate_limit(tier: Tier):
    async def _dep(
        principal: Principal = Depends(get_principal),
        limits: RateLimitRegistry = Depends(rate_limits),
    ) -> None:
        await limits.hit_user(tier, principal.id)

    return _dep


def rate_limited(tier: Tier) -> list[DependsParam]:
    """
    Route dependencies for a tier: IP limiter, then session, then user limiter.
    """

    return [Depends(ip_rate_limit(tier)), Depends(user_rate_limit(tier))]


# --- Module Notes -----------------------------------------------------------
# FastAPI resolves route-level `dependencies=[...]` in order and before endpoint
# parameters, which is what puts the IP limiter ahead of authentication.
