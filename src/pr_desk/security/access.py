"""
pr_desk.security.access

Row-level access control over clients and their activities.

Responsibilities:
- Decide, per request, whether a principal may act on a resource.
- Return a query predicate for listings so non-privileged users only see
  clients they hold an active assignment for.

Decision flow for one request:
    unchecked -> role capability -> privileged: allow
                                 -> non-privileged: assignment lookup -> allow | deny

Denials are always 403, even for rows that do not exist, so existence is not leaked.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import ColumnElement
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.auth.models import Action, Principal, Resource, has_capability
from pr_desk.db.models import Client, ClientActivity, ClientAssignment
from pr_desk.db.repositories.activities import ActivityRepo
from pr_desk.db.repositories.assignments import AssignmentRepo, active_client_ids
from pr_desk.errors import AccessDenied
from pr_desk.observability.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Allow:
    pass


@dataclass(frozen=True, slots=True)
class Deny:
    reason: str


@dataclass(frozen=True, slots=True)
class ScopeQuery:
    predicate: ColumnElement[bool]


Decision = Allow | Deny | ScopeQuery


class AccessControl:
    def __init__(self, session: AsyncSession) -> None:
        self._assignments = AssignmentRepo(session)
        self._activities = ActivityRepo(session)

    async def authorize(
        self,
        principal: Principal,
        resource: Resource,
        resource_id: int | None,
        action: Action,
    ) -> Decision:
        if not has_capability(principal, action, resource):
            return Deny(f"role {principal.role.value} cannot {action.value} {resource.value}")
        if principal.is_privileged:
            return Allow()

        if resource_id is None:
            return self._scope(principal, resource)

        client_id = await self._client_id_for(resource, resource_id)
        if client_id is None:
            return Deny(f"{resource.value} {resource_id} not visible")
        if await self._assignments.has_active(client_id=client_id, user_id=principal.id):
            return Allow()
        return Deny(f"no active assignment to client {client_id}")

    async def require(
        self,
        principal: Principal,
        resource: Resource,
        resource_id: int | None,
        action: Action,
    ) -> Decision:
        """
        Like `authorize`, but raises `AccessDenied` instead of returning `Deny`.
        """

        decision = await self.authorize(principal, resource, resource_id, action)
        if isinstance(decision, Deny):
            log.info(
                "access_denied",
                principal_id=principal.id,
                resource=resource.value,
                resource_id=resource_id,
                action=action.value,
                reason=decision.reason,
            )
            raise AccessDenied(decision.reason)
        return decision

    async def require_activity_target(self, principal: Principal, client_id: int) -> None:
        """
        Check that a new activity may be attached to `client_id` (taken from the payload).
        """

        if not has_capability(principal, Action.create, Resource.client_activity):
            raise AccessDenied(f"role {principal.role.value} cannot create client_activity")
        if principal.is_privileged:
            return
        if not await self._assignments.has_active(client_id=client_id, user_id=principal.id):
            log.info("access_denied", principal_id=principal.id, client_id=client_id)
            raise AccessDenied(f"no active assignment to client {client_id}")

    def _scope(self, principal: Principal, resource: Resource) -> Decision:
        assigned = active_client_ids(principal.id)
        if resource is Resource.client:
            return ScopeQuery(Client.id.in_(assigned))
        if resource is Resource.client_activity:
            return ScopeQuery(ClientActivity.client_id.in_(assigned))
        if resource is Resource.client_assignment:
            return ScopeQuery(ClientAssignment.user_id == principal.id)
        return Deny(f"no row scope for {resource.value}")

    async def _client_id_for(self, resource: Resource, resource_id: int) -> int | None:
        if resource is Resource.client:
            return resource_id
        if resource is Resource.client_activity:
            return await self._activities.client_id_of(resource_id)
        return None


def scope_of(decision: Decision) -> ColumnElement[bool] | None:
    return decision.predicate if isinstance(decision, ScopeQuery) else None


# --- Module Notes -----------------------------------------------------------
# Nothing here is cached: assignments can change between two requests.
