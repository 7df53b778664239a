"""
pr_desk.db.session

Async SQLAlchemy engine + session factory helpers.

Responsibilities:
- Create the async engine from settings.
- Create the async sessionmaker with safe defaults.
- Provide the request-scoped session dependency.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from pr_desk.settings import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if settings.database_url.endswith(":memory:"):
        # One shared connection, otherwise every checkout sees an empty database.
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return create_async_engine(settings.database_url, **kwargs)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False avoids surprising lazy loads after commits.
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created by the lifespan in `pr_desk.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[no-any-return]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped; shared by the session resolver and the route. Routers commit explicitly.
    async with session_factory() as session:
        yield session


# --- Module Notes -----------------------------------------------------------
# `db_session` is the one request-scoped session; FastAPI caches it per request.
