from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.api.deps import access_control, db_session, rate_limited
from pr_desk.auth.deps import get_principal
from pr_desk.auth.models import Action, Principal, Resource
from pr_desk.db.models import AssignmentStatus
from pr_desk.db.repositories.assignments import AssignmentRepo
from pr_desk.db.repositories.clients import ClientRepo
from pr_desk.db.repositories.users import UserRepo
from pr_desk.errors import AccessDenied, Conflict, NotFound
from pr_desk.observability.logging import get_logger
from pr_desk.security.access import AccessControl, scope_of
from pr_desk.security.rate_limit import Tier
from pr_desk.security.validation import ApiModel

log = get_logger(__name__)

router = APIRouter(prefix="/api/client-assignments", tags=["client-assignments"])


class AssignmentCreate(ApiModel):
    client_id: int = Field(gt=0)
    user_id: int = Field(gt=0)


class AssignmentOut(ApiModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    user_id: int
    status: AssignmentStatus
    assigned_by: int | None
    assigned_at: datetime


class HistoryEntryOut(ApiModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    user_id: int
    action: str
    performed_by: int
    details: dict[str, Any]
    created_at: datetime


@router.get("", response_model=list[AssignmentOut], dependencies=rate_limited(Tier.read))
async def list_assignments(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> list[AssignmentOut]:
    decision = await access.require(principal, Resource.client_assignment, None, Action.read)
    rows = await AssignmentRepo(session).list_scoped(scope=scope_of(decision))
    return [AssignmentOut.model_validate(a) for a in rows]


@router.get(
    "/history", response_model=list[HistoryEntryOut], dependencies=rate_limited(Tier.read)
)
async def assignment_history(
    client_id: int = Query(alias="clientId"),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
) -> list[HistoryEntryOut]:
    if not principal.is_privileged:
        raise AccessDenied("assignment history is restricted to privileged roles")
    entries = await AssignmentRepo(session).history(client_id=client_id)
    return [HistoryEntryOut.model_validate(e) for e in entries]


@router.post(
    "", response_model=AssignmentOut, status_code=201, dependencies=rate_limited(Tier.write)
)
async def create_assignment(
    body: AssignmentCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> AssignmentOut:
    await access.require(principal, Resource.client_assignment, None, Action.create)
    if await ClientRepo(session).get(body.client_id) is None:
        raise NotFound(f"client {body.client_id} not found")
    if await UserRepo(session).get(body.user_id) is None:
        raise NotFound(f"user {body.user_id} not found")

    repo = AssignmentRepo(session)
    if await repo.has_active(client_id=body.client_id, user_id=body.user_id):
        raise Conflict(f"user {body.user_id} is already assigned to client {body.client_id}")

    assignment = await repo.assign(
        client_id=body.client_id, user_id=body.user_id, actor_id=principal.id
    )
    await session.commit()
    log.info(
        "client_assigned",
        client_id=body.client_id,
        user_id=body.user_id,
        actor_id=principal.id,
    )
    return AssignmentOut.model_validate(assignment)


@router.delete("", dependencies=rate_limited(Tier.write))
async def delete_assignment(
    client_id: int = Query(alias="clientId"),
    user_id: int = Query(alias="userId"),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> dict[str, bool]:
    await access.require(principal, Resource.client_assignment, None, Action.delete)
    repo = AssignmentRepo(session)
    assignment = await repo.get(client_id=client_id, user_id=user_id)
    if assignment is None:
        raise NotFound(f"no assignment of user {user_id} to client {client_id}")
    await repo.remove(assignment, actor_id=principal.id)
    await session.commit()
    log.info("client_unassigned", client_id=client_id, user_id=user_id, actor_id=principal.id)
    return {"success": True}
