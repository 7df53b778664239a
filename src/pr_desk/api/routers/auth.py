"""
pr_desk.api.routers.auth

Session endpoints.

Responsibilities:
- Exchange a verified identity for a session cookie (dev/test only; in production
  the OAuth callback hands the identity to `IdentityProviderAdapter`).
- Report and clear the current session.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.api.deps import db_session, ip_rate_limit, settings_dep
from pr_desk.auth.deps import get_principal, session_resolver
from pr_desk.auth.identity import IdentityProviderAdapter, VerifiedIdentity
from pr_desk.auth.models import Principal, Role
from pr_desk.auth.session import SessionResolver
from pr_desk.errors import NotFound
from pr_desk.security.rate_limit import Tier
from pr_desk.security.validation import ApiModel
from pr_desk.settings import Settings

router = APIRouter(prefix="/api/auth", tags=["auth"])


class SignInRequest(ApiModel):
    email: str = Field(min_length=3, max_length=320)
    name: str | None = Field(default=None, max_length=200)
    image: str | None = Field(default=None, max_length=2000)
    provider: str = Field(default="google", max_length=64)
    provider_account_id: str | None = Field(default=None, max_length=256)


class SessionUser(ApiModel):
    id: int
    email: str
    role: Role
    name: str | None = None


@router.post(
    "/session",
    response_model=SessionUser,
    dependencies=[Depends(ip_rate_limit(Tier.write))],
)
async def sign_in(
    body: SignInRequest,
    response: Response,
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    resolver: SessionResolver = Depends(session_resolver),
) -> SessionUser:
    if settings.is_production:
        raise NotFound("dev sign-in is disabled in prod")

    adapter = IdentityProviderAdapter(session=session, settings=settings, resolver=resolver)
    user, token = await adapter.sign_in(
        VerifiedIdentity(
            email=body.email,
            name=body.name,
            image=body.image,
            provider=body.provider,
            provider_account_id=body.provider_account_id,
        )
    )
    await session.commit()
    resolver.set_cookie(response, token)
    return SessionUser(id=user.id, email=user.email, role=user.role, name=user.name)


@router.get("/session", response_model=SessionUser)
async def current_session(principal: Principal = Depends(get_principal)) -> SessionUser:
    return SessionUser(id=principal.id, email=principal.email, role=principal.role)


@router.delete("/session")
async def sign_out(
    response: Response,
    resolver: SessionResolver = Depends(session_resolver),
) -> dict[str, bool]:
    resolver.clear_cookie(response)
    return {"success": True}
