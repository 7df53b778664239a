"""
pr_desk.db.models

Core persistence schema.

Responsibilities:
- Define ORM models for the client directory and its access relation:
  - User: staff member with a role
  - Client: agency client record
  - ClientAssignment: row-level visibility of a client to a user
  - AssignmentHistory: append-only audit of assignment changes
  - ClientActivity: saved trend/idea/PR output attached to a client
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Enum, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pr_desk.auth.models import Role
from pr_desk.db.base import Base


def _utcnow() -> datetime:
    # Naive UTC timestamps keep SQLite and Postgres behaviour identical.
    return datetime.now(tz=UTC).replace(tzinfo=None)


class UserStatus(enum.StrEnum):
    active = "active"
    inactive = "inactive"


class ClientStatus(enum.StrEnum):
    active = "active"
    inactive = "inactive"
    archived = "archived"


class AssignmentStatus(enum.StrEnum):
    active = "active"
    inactive = "inactive"


class ActivityType(enum.StrEnum):
    # Stored in DB; treat as stable API contract.
    trend = "trend"
    idea = "idea"
    pr = "pr"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    image: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    provider: Mapped[str | None] = mapped_column(String(64), nullable=True)
    provider_account_id: Mapped[str | None] = mapped_column(String(256), nullable=True)

    role: Mapped[Role] = mapped_column(Enum(Role), nullable=False, default=Role.assistant)
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus), nullable=False, default=UserStatus.active, index=True
    )
    department: Mapped[str | None] = mapped_column(String(200), nullable=True)

    last_login: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    industry: Mapped[str | None] = mapped_column(String(200), nullable=True)
    lead_dpr: Mapped[str | None] = mapped_column(String(200), nullable=True)
    boilerplate: Mapped[str | None] = mapped_column(Text, nullable=True)
    press_contacts: Mapped[str | None] = mapped_column(Text, nullable=True)
    url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    tone_of_voice: Mapped[str | None] = mapped_column(Text, nullable=True)
    spheres: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ClientStatus] = mapped_column(
        Enum(ClientStatus), nullable=False, default=ClientStatus.active
    )
    outreach_locations: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    assignments: Mapped[list[ClientAssignment]] = relationship(
        back_populates="client", cascade="all, delete-orphan"
    )
    activities: Mapped[list[ClientActivity]] = relationship(
        back_populates="client", cascade="all, delete-orphan"
    )


class ClientAssignment(Base):
    __tablename__ = "client_assignments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    status: Mapped[AssignmentStatus] = mapped_column(
        Enum(AssignmentStatus), nullable=False, default=AssignmentStatus.active
    )
    assigned_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)

    client: Mapped[Client] = relationship(back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("client_id", "user_id", name="uq_client_assignments_client_user"),
        Index("ix_client_assignments_user_status", "user_id", "status"),
    )


class AssignmentHistory(Base):
    __tablename__ = "assignment_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    performed_by: Mapped[int] = mapped_column(nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, index=True)


class ClientActivity(Base):
    __tablename__ = "client_activities"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("clients.id"), nullable=False, index=True)
    activity_type: Mapped[ActivityType] = mapped_column(
        Enum(ActivityType), nullable=False, index=True
    )
    title: Mapped[str | None] = mapped_column(String(300), nullable=True)
    content: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    client: Mapped[Client] = relationship(back_populates="activities")

    __table_args__ = (Index("ix_client_activities_client_created", "client_id", "created_at"),)


# --- Module Notes -----------------------------------------------------------
# Deleting a Client cascades to its assignments and activities through the ORM;
# the assignment history intentionally has no FK so the audit trail survives.
