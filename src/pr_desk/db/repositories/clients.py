from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.db.models import Client


class ClientRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, client_id: int) -> Client | None:
        return await self._session.get(Client, client_id)

    async def list_scoped(
        self, *, scope: ColumnElement[bool] | None = None
    ) -> list[Client]:
        stmt = select(Client).order_by(Client.name.asc())
        if scope is not None:
            stmt = stmt.where(scope)
        return list((await self._session.execute(stmt)).scalars().all())

    async def create(self, values: dict[str, Any]) -> Client:
        client = Client(**values)
        self._session.add(client)
        await self._session.flush()
        return client

    async def update(self, client: Client, changes: dict[str, Any]) -> Client:
        for key, value in changes.items():
            setattr(client, key, value)
        client.updated_at = datetime.now(tz=UTC).replace(tzinfo=None)
        await self._session.flush()
        return client

    async def delete(self, client: Client) -> None:
        await self._session.delete(client)
        await self._session.flush()
