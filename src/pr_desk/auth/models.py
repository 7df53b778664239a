"""
pr_desk.auth.models

Auth domain models.

Responsibilities:
- Define the role enum and the authenticated identity type (`Principal`).
- Hold the single role-capability predicate (`has_capability`) used by every
  access decision.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Role(enum.StrEnum):
    admin = "admin"
    dpr_manager = "dpr_manager"
    dpr_lead = "dpr_lead"
    assistant = "assistant"

    @property
    def is_privileged(self) -> bool:
        return self in PRIVILEGED_ROLES


PRIVILEGED_ROLES = frozenset({Role.admin, Role.dpr_manager})

# Listing order for user management screens.
ROLE_RANK: dict[Role, int] = {
    Role.admin: 1,
    Role.dpr_manager: 2,
    Role.dpr_lead: 3,
    Role.assistant: 4,
}


class Action(enum.StrEnum):
    read = "read"
    create = "create"
    update = "update"
    delete = "delete"


class Resource(enum.StrEnum):
    client = "client"
    client_activity = "client_activity"
    client_assignment = "client_assignment"
    user = "user"


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity; role and status come from the users table.
    """

    id: int
    email: str
    role: Role
    status: str = "active"

    @property
    def is_privileged(self) -> bool:
        return self.role.is_privileged

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin


_ALL = frozenset(Role)

# Role-level grants. Row-level scoping (assignments) is layered on top of this
# by `security.access.AccessControl` for non-privileged roles.
_CAPABILITIES: dict[tuple[Resource, Action], frozenset[Role]] = {
    (Resource.client, Action.read): _ALL,
    (Resource.client, Action.create): PRIVILEGED_ROLES,
    (Resource.client, Action.update): _ALL,
    (Resource.client, Action.delete): frozenset({Role.admin}),
    (Resource.client_activity, Action.read): _ALL,
    (Resource.client_activity, Action.create): _ALL,
    (Resource.client_activity, Action.update): _ALL,
    (Resource.client_activity, Action.delete): _ALL,
    (Resource.client_assignment, Action.read): _ALL,
    (Resource.client_assignment, Action.create): PRIVILEGED_ROLES,
    (Resource.client_assignment, Action.delete): PRIVILEGED_ROLES,
    (Resource.user, Action.read): _ALL,
    (Resource.user, Action.update): PRIVILEGED_ROLES,
}


def has_capability(principal: Principal, action: Action, resource: Resource) -> bool:
    return principal.role in _CAPABILITIES.get((resource, action), frozenset())


# --- Module Notes -----------------------------------------------------------
# Never compare role strings elsewhere; go through `has_capability` or
# `Principal.is_privileged` so the access invariant stays in one place.
