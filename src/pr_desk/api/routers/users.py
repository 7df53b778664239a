from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.api.deps import db_session, rate_limited
from pr_desk.auth.deps import require_capability
from pr_desk.auth.models import Action, Principal, Resource, Role
from pr_desk.db.models import User, UserStatus
from pr_desk.db.repositories.users import UserRepo
from pr_desk.errors import FieldError, NotFound, ValidationFailed
from pr_desk.observability.logging import get_logger
from pr_desk.security.rate_limit import Tier
from pr_desk.security.validation import ApiModel

log = get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


class UserUpdate(ApiModel):
    role: Role | None = None
    status: UserStatus | None = None
    department: str | None = Field(default=None, max_length=200)


class UserOut(ApiModel):
    id: int
    email: str
    name: str | None
    image: str | None
    role: Role
    status: UserStatus
    department: str | None
    last_login: datetime | None
    created_at: datetime
    assigned_clients_count: int = 0


def _out(user: User, assigned: int = 0) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        image=user.image,
        role=user.role,
        status=user.status,
        department=user.department,
        last_login=user.last_login,
        created_at=user.created_at,
        assigned_clients_count=assigned,
    )


@router.get("", response_model=list[UserOut], dependencies=rate_limited(Tier.read))
async def list_users(
    principal: Principal = Depends(require_capability(Action.read, Resource.user)),
    session: AsyncSession = Depends(db_session),
) -> list[UserOut]:
    rows = await UserRepo(session).list_active_with_assignment_counts()
    return [_out(u, n) for u, n in rows]


@router.put("/{user_id}", response_model=UserOut, dependencies=rate_limited(Tier.write))
async def update_user(
    user_id: int,
    body: UserUpdate,
    principal: Principal = Depends(require_capability(Action.update, Resource.user)),
    session: AsyncSession = Depends(db_session),
) -> UserOut:
    # Only explicitly sent, non-null fields are applied.
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if not changes:
        raise ValidationFailed(
            [FieldError("root", "No valid fields to update")],
            detail="no valid fields to update",
        )
    user = await UserRepo(session).update(user_id, changes)
    if user is None:
        raise NotFound(f"user {user_id} not found")
    await session.commit()
    log.info("user_updated", user_id=user_id, actor_id=principal.id, fields=sorted(changes))
    return _out(user)
