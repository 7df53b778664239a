"""
pr_desk.api.routers.client_activities

Saved trend/idea/PR work attached to clients.

Responsibilities:
- CRUD for client activities, scoped to the caller's assigned clients.
- Validate `content` against the variant for its activity type, then sanitize it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.api.deps import access_control, db_session, rate_limited
from pr_desk.auth.deps import get_principal
from pr_desk.auth.models import Action, Principal, Resource
from pr_desk.db.models import ActivityType, ClientActivity
from pr_desk.db.repositories.activities import ActivityRepo
from pr_desk.db.repositories.clients import ClientRepo
from pr_desk.errors import NotFound
from pr_desk.observability.logging import get_logger
from pr_desk.security.access import AccessControl, scope_of
from pr_desk.security.rate_limit import Tier
from pr_desk.security.validation import ApiModel, clean_content

log = get_logger(__name__)

router = APIRouter(prefix="/api/client-activities", tags=["client-activities"])


class ActivityCreate(ApiModel):
    client_id: int = Field(gt=0)
    activity_type: ActivityType
    title: str | None = Field(default=None, max_length=300)
    content: dict[str, Any] | None = None
    notes: str | None = Field(default=None, max_length=10000)


class ActivityUpdate(ApiModel):
    activity_type: ActivityType | None = None
    title: str | None = Field(default=None, max_length=300)
    content: dict[str, Any] | None = None
    notes: str | None = Field(default=None, max_length=10000)


class ActivityOut(ApiModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    client_name: str | None = None
    activity_type: ActivityType
    title: str | None
    content: dict[str, Any] | None
    notes: str | None
    created_by: int | None
    created_at: datetime
    updated_at: datetime


def _out(activity: ClientActivity, client_name: str | None) -> ActivityOut:
    out = ActivityOut.model_validate(activity)
    out.client_name = client_name
    return out


@router.get("", response_model=list[ActivityOut], dependencies=rate_limited(Tier.read))
async def list_activities(
    client_id: int | None = Query(default=None, alias="clientId"),
    activity_type: ActivityType | None = Query(default=None, alias="activityType"),
    limit: int = Query(default=50, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> list[ActivityOut]:
    if client_id is not None:
        # Filtering on an unassigned client is a 403, not an empty list.
        await access.require(principal, Resource.client, client_id, Action.read)
    decision = await access.require(principal, Resource.client_activity, None, Action.read)
    rows = await ActivityRepo(session).list_scoped(
        scope=scope_of(decision),
        client_id=client_id,
        activity_type=activity_type,
        limit=limit,
    )
    return [_out(a, name) for a, name in rows]


@router.get("/{activity_id}", response_model=ActivityOut, dependencies=rate_limited(Tier.read))
async def get_activity(
    activity_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> ActivityOut:
    await access.require(principal, Resource.client_activity, activity_id, Action.read)
    activity = await _load(session, activity_id)
    return _out(activity, await _client_name(session, activity.client_id))


@router.post(
    "", response_model=ActivityOut, status_code=201, dependencies=rate_limited(Tier.write)
)
async def create_activity(
    body: ActivityCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> ActivityOut:
    await access.require_activity_target(principal, body.client_id)
    client_name = await _client_name(session, body.client_id)
    if client_name is None:
        raise NotFound(f"client {body.client_id} not found")

    content = clean_content(body.activity_type, body.content) if body.content else None
    activity = await ActivityRepo(session).create(
        {
            "client_id": body.client_id,
            "activity_type": body.activity_type,
            "title": body.title,
            "content": content,
            "notes": body.notes,
            "created_by": principal.id,
        }
    )
    await session.commit()
    log.info(
        "activity_created",
        activity_id=activity.id,
        client_id=activity.client_id,
        activity_type=activity.activity_type.value,
    )
    return _out(activity, client_name)


@router.put("/{activity_id}", response_model=ActivityOut, dependencies=rate_limited(Tier.write))
async def update_activity(
    activity_id: int,
    body: ActivityUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> ActivityOut:
    await access.require(principal, Resource.client_activity, activity_id, Action.update)
    activity = await _load(session, activity_id)

    changes = body.model_dump(exclude_unset=True)
    if changes.get("activity_type") is None:
        changes.pop("activity_type", None)
    activity_type = changes.get("activity_type", activity.activity_type)
    if "content" in changes or activity_type != activity.activity_type:
        # A type change re-checks the stored content against the new variant.
        content = changes.get("content", activity.content)
        changes["content"] = clean_content(activity_type, content) if content else None

    activity = await ActivityRepo(session).update(activity, changes)
    await session.commit()
    log.info("activity_updated", activity_id=activity.id, fields=sorted(changes))
    return _out(activity, await _client_name(session, activity.client_id))


@router.delete("/{activity_id}", dependencies=rate_limited(Tier.write))
async def delete_activity(
    activity_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> dict[str, bool]:
    await access.require(principal, Resource.client_activity, activity_id, Action.delete)
    await ActivityRepo(session).delete(await _load(session, activity_id))
    await session.commit()
    log.info("activity_deleted", activity_id=activity_id, actor_id=principal.id)
    return {"success": True}


async def _load(session: AsyncSession, activity_id: int) -> ClientActivity:
    activity = await ActivityRepo(session).get(activity_id)
    if activity is None:
        raise NotFound(f"activity {activity_id} not found")
    return activity


async def _client_name(session: AsyncSession, client_id: int) -> str | None:
    client = await ClientRepo(session).get(client_id)
    return client.name if client is not None else None


# --- Module Notes -----------------------------------------------------------
# `sanitize` is applied inside `clean_content`; stored content never carries
# prototype-pollution keys regardless of which variant accepted it.
