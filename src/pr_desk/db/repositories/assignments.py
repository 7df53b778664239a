"""
pr_desk.db.repositories.assignments

Repository for `ClientAssignment` and its audit trail.

Responsibilities:
- Look up active assignments (the row-level access relation).
- Create/reactivate/remove assignments, appending an `AssignmentHistory` entry each time.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import ColumnElement, Select, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.db.models import AssignmentHistory, AssignmentStatus, ClientAssignment


def active_client_ids(user_id: int) -> Select[tuple[int]]:
    # Subquery used to scope client/activity queries for non-privileged users.
    return select(ClientAssignment.client_id).where(
        ClientAssignment.user_id == user_id,
        ClientAssignment.status == AssignmentStatus.active,
    )


class AssignmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, *, client_id: int, user_id: int) -> ClientAssignment | None:
        stmt = select(ClientAssignment).where(
            ClientAssignment.client_id == client_id,
            ClientAssignment.user_id == user_id,
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def has_active(self, *, client_id: int, user_id: int) -> bool:
        stmt = select(ClientAssignment.id).where(
            ClientAssignment.client_id == client_id,
            ClientAssignment.user_id == user_id,
            ClientAssignment.status == AssignmentStatus.active,
        )
        return (await self._session.execute(stmt)).first() is not None

    async def list_scoped(
        self, *, scope: ColumnElement[bool] | None = None
    ) -> list[ClientAssignment]:
        stmt = select(ClientAssignment).order_by(desc(ClientAssignment.assigned_at))
        if scope is not None:
            stmt = stmt.where(scope)
        return list((await self._session.execute(stmt)).scalars().all())

    async def assign(self, *, client_id: int, user_id: int, actor_id: int) -> ClientAssignment:
        existing = await self.get(client_id=client_id, user_id=user_id)
        if existing is not None:
            existing.status = AssignmentStatus.active
            existing.assigned_by = actor_id
            await self._record(client_id, user_id, "reactivated", actor_id)
            await self._session.flush()
            return existing

        assignment = ClientAssignment(
            client_id=client_id,
            user_id=user_id,
            status=AssignmentStatus.active,
            assigned_by=actor_id,
        )
        self._session.add(assignment)
        await self._record(client_id, user_id, "assigned", actor_id)
        await self._session.flush()
        return assignment

    async def remove(self, assignment: ClientAssignment, *, actor_id: int) -> None:
        await self._session.delete(assignment)
        await self._record(assignment.client_id, assignment.user_id, "unassigned", actor_id)
        await self._session.flush()

    async def history(self, *, client_id: int, limit: int = 200) -> list[AssignmentHistory]:
        stmt = (
            select(AssignmentHistory)
            .where(AssignmentHistory.client_id == client_id)
            .order_by(desc(AssignmentHistory.created_at), desc(AssignmentHistory.id))
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def _record(
        self,
        client_id: int,
        user_id: int,
        action: str,
        actor_id: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        # Audit entries are append-only (no update/delete) in normal operation.
        self._session.add(
            AssignmentHistory(
                client_id=client_id,
                user_id=user_id,
                action=action,
                performed_by=actor_id,
                details=details or {},
            )
        )
