"""
pr_desk.db.repositories.users

Repository for `User` entities.

Responsibilities:
- Create-or-update users on sign-in.
- List active staff with their assignment counts.
- Apply admin updates (role/status/department).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.auth.models import ROLE_RANK, Role
from pr_desk.db.models import AssignmentStatus, ClientAssignment, User, UserStatus


def _utcnow() -> datetime:
    return datetime.now(tz=UTC).replace(tzinfo=None)


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: int) -> User | None:
        return await self._session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def upsert_from_identity(
        self,
        *,
        email: str,
        name: str | None,
        image: str | None,
        provider: str | None,
        provider_account_id: str | None,
    ) -> User:
        user = await self.get_by_email(email)
        now = _utcnow()
        if user is not None:
            user.name = name or user.name
            user.image = image or user.image
            user.last_login = now
            await self._session.flush()
            return user

        # First sign-in: lowest privilege until an admin promotes the user.
        user = User(
            email=email,
            name=name,
            image=image,
            provider=provider,
            provider_account_id=provider_account_id,
            role=Role.assistant,
            status=UserStatus.active,
            last_login=now,
        )
        self._session.add(user)
        await self._session.flush()
        return user

    async def list_active_with_assignment_counts(self) -> list[tuple[User, int]]:
        assigned = (
            select(func.count(ClientAssignment.id))
            .where(
                and_(
                    ClientAssignment.user_id == User.id,
                    ClientAssignment.status == AssignmentStatus.active,
                )
            )
            .correlate(User)
            .scalar_subquery()
        )
        rank = case(dict(ROLE_RANK), value=User.role, else_=len(ROLE_RANK) + 1)
        stmt = (
            select(User, assigned)
            .where(User.status == UserStatus.active)
            .order_by(rank, User.name)
        )
        rows = (await self._session.execute(stmt)).all()
        return [(u, int(c or 0)) for u, c in rows]

    async def update(self, user_id: int, changes: dict[str, Any]) -> User | None:
        user = await self._session.get(User, user_id, with_for_update=True)
        if user is None:
            return None
        for key, value in changes.items():
            setattr(user, key, value)
        user.updated_at = _utcnow()
        await self._session.flush()
        return user
