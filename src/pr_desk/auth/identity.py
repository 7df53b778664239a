"""
pr_desk.auth.identity

Identity provider adapter: the boundary with the OAuth integration.

Responsibilities:
- Accept a verified identity claim (the OAuth exchange itself happens upstream).
- Restrict sign-in to the allowed email domains.
- Create the user on first sign-in, refresh profile fields otherwise.
- Issue the signed session token.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.auth.models import Principal
from pr_desk.auth.session import SessionResolver
from pr_desk.db.models import User, UserStatus
from pr_desk.db.repositories.users import UserRepo
from pr_desk.errors import AccessDenied
from pr_desk.observability.logging import get_logger
from pr_desk.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class VerifiedIdentity:
    email: str
    name: str | None = None
    image: str | None = None
    provider: str = "google"
    provider_account_id: str | None = None

    @property
    def email_domain(self) -> str:
        return self.email.rpartition("@")[2].lower()


class IdentityProviderAdapter:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        resolver: SessionResolver,
    ) -> None:
        self._users = UserRepo(session)
        self._allowed = frozenset(d.lower() for d in settings.allowed_email_domains)
        self._resolver = resolver

    def is_allowed(self, identity: VerifiedIdentity) -> bool:
        return "@" in identity.email and identity.email_domain in self._allowed

    async def sign_in(self, identity: VerifiedIdentity) -> tuple[User, str]:
        if not self.is_allowed(identity):
            log.warning("sign_in_rejected", reason="domain", domain=identity.email_domain)
            raise AccessDenied(f"sign-in not permitted for domain {identity.email_domain}")

        user = await self._users.upsert_from_identity(
            email=identity.email.lower(),
            name=identity.name,
            image=identity.image,
            provider=identity.provider,
            provider_account_id=identity.provider_account_id,
        )
        if user.status != UserStatus.active:
            log.warning("sign_in_rejected", reason="inactive", user_id=user.id)
            raise AccessDenied(f"user {user.id} is inactive")

        token = self._resolver.issue(user_id=user.id, email=user.email, role=user.role)
        log.info("sign_in", user_id=user.id, role=user.role.value)
        return user, token


def principal_of(user: User) -> Principal:
    return Principal(id=user.id, email=user.email, role=user.role, status=user.status.value)
