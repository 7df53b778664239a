from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.api.deps import access_control, db_session, rate_limited
from pr_desk.auth.deps import get_principal
from pr_desk.auth.models import Action, Principal, Resource
from pr_desk.db.models import Client, ClientStatus
from pr_desk.db.repositories.clients import ClientRepo
from pr_desk.errors import NotFound
from pr_desk.observability.logging import get_logger
from pr_desk.security.access import AccessControl, scope_of
from pr_desk.security.rate_limit import Tier
from pr_desk.security.validation import ApiModel

log = get_logger(__name__)

router = APIRouter(prefix="/api/clients", tags=["clients"])

Location = Annotated[str, Field(max_length=100)]


class ClientFields(ApiModel):
    industry: str | None = Field(default=None, max_length=200)
    lead_dpr: str | None = Field(default=None, max_length=200)
    boilerplate: str | None = Field(default=None, max_length=5000)
    press_contacts: str | None = Field(default=None, max_length=2000)
    url: str | None = Field(default=None, max_length=500)
    tone_of_voice: str | None = Field(default=None, max_length=1000)
    spheres: str | None = Field(default=None, max_length=1000)


class ClientCreate(ClientFields):
    name: str = Field(min_length=1, max_length=200)
    status: ClientStatus = ClientStatus.active
    outreach_locations: list[Location] = Field(default_factory=list, max_length=20)


class ClientUpdate(ClientFields):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    status: ClientStatus | None = None
    outreach_locations: list[Location] | None = Field(default=None, max_length=20)


class ClientOut(ApiModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    industry: str | None
    lead_dpr: str | None
    boilerplate: str | None
    press_contacts: str | None
    url: str | None
    tone_of_voice: str | None
    spheres: str | None
    status: ClientStatus
    outreach_locations: list[str]
    created_at: datetime
    updated_at: datetime


# Columns that may not be cleared by sending null.
_REQUIRED_COLUMNS = frozenset({"name", "status", "outreach_locations"})


@router.get("", response_model=list[ClientOut], dependencies=rate_limited(Tier.read))
async def list_clients(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> list[ClientOut]:
    decision = await access.require(principal, Resource.client, None, Action.read)
    clients = await ClientRepo(session).list_scoped(scope=scope_of(decision))
    return [ClientOut.model_validate(c) for c in clients]


@router.get("/{client_id}", response_model=ClientOut, dependencies=rate_limited(Tier.read))
async def get_client(
    client_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> ClientOut:
    await access.require(principal, Resource.client, client_id, Action.read)
    return ClientOut.model_validate(await _load(session, client_id))


@router.post(
    "", response_model=ClientOut, status_code=201, dependencies=rate_limited(Tier.write)
)
async def create_client(
    body: ClientCreate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> ClientOut:
    await access.require(principal, Resource.client, None, Action.create)
    client = await ClientRepo(session).create(body.model_dump())
    await session.commit()
    log.info("client_created", client_id=client.id, actor_id=principal.id)
    return ClientOut.model_validate(client)


@router.put("/{client_id}", response_model=ClientOut, dependencies=rate_limited(Tier.write))
async def update_client(
    client_id: int,
    body: ClientUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> ClientOut:
    await access.require(principal, Resource.client, client_id, Action.update)
    client = await _load(session, client_id)
    changes = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k not in _REQUIRED_COLUMNS
    }
    client = await ClientRepo(session).update(client, changes)
    await session.commit()
    log.info("client_updated", client_id=client.id, actor_id=principal.id, fields=sorted(changes))
    return ClientOut.model_validate(client)


@router.delete("/{client_id}", dependencies=rate_limited(Tier.write))
async def delete_client(
    client_id: int,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(db_session),
    access: AccessControl = Depends(access_control),
) -> dict[str, bool]:
    await access.require(principal, Resource.client, client_id, Action.delete)
    repo = ClientRepo(session)
    await repo.delete(await _load(session, client_id))
    await session.commit()
    log.info("client_deleted", client_id=client_id, actor_id=principal.id)
    return {"success": True}


async def _load(session: AsyncSession, client_id: int) -> Client:
    client = await ClientRepo(session).get(client_id)
    if client is None:
        raise NotFound(f"client {client_id} not found")
    return client
