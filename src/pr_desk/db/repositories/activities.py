from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ColumnElement, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.db.models import ActivityType, Client, ClientActivity


class ActivityRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, activity_id: int) -> ClientActivity | None:
        return await self._session.get(ClientActivity, activity_id)

    async def client_id_of(self, activity_id: int) -> int | None:
        stmt = select(ClientActivity.client_id).where(ClientActivity.id == activity_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_scoped(
        self,
        *,
        scope: ColumnElement[bool] | None = None,
        client_id: int | None = None,
        activity_type: ActivityType | None = None,
        limit: int = 50,
    ) -> list[tuple[ClientActivity, str]]:
        # Newest-first, joined with the client name for list screens.
        stmt = (
            select(ClientActivity, Client.name)
            .join(Client, ClientActivity.client_id == Client.id)
            .order_by(desc(ClientActivity.created_at), desc(ClientActivity.id))
            .limit(limit)
        )
        if scope is not None:
            stmt = stmt.where(scope)
        if client_id is not None:
            stmt = stmt.where(ClientActivity.client_id == client_id)
        if activity_type is not None:
            stmt = stmt.where(ClientActivity.activity_type == activity_type)
        rows = (await self._session.execute(stmt)).all()
        return [(a, name) for a, name in rows]

    async def create(self, values: dict[str, Any]) -> ClientActivity:
        activity = ClientActivity(**values)
        self._session.add(activity)
        await self._session.flush()
        return activity

    async def update(self, activity: ClientActivity, changes: dict[str, Any]) -> ClientActivity:
        for key, value in changes.items():
            setattr(activity, key, value)
        activity.updated_at = datetime.now(tz=UTC).replace(tzinfo=None)
        await self._session.flush()
        return activity

    async def delete(self, activity: ClientActivity) -> None:
        await self._session.delete(activity)
        await self._session.flush()
