"""
tests.conftest

Shared fixtures for API and unit tests.

Responsibilities:
- Build the real app against in-memory SQLite with the lifespan running.
- Provide an httpx client over ASGITransport.
- Seed users/clients/assignments and mint session tokens for them.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.api.app import create_app
from pr_desk.auth.models import Role
from pr_desk.db.models import Client, ClientAssignment, User, UserStatus
from pr_desk.db.repositories.assignments import AssignmentRepo
from pr_desk.settings import Settings


def make_settings(**overrides) -> Settings:
    values = {
        "env": "test",
        "database_url": "sqlite+aiosqlite:///:memory:",
        "jwt_secret": "test-secret-0123456789abcdef0123456789",
        "openai_api_key": "sk-test",
        "gnews_api_key": "gnews-test",
    }
    values.update(overrides)
    return Settings(**values)


class Seeder:
    def __init__(self, app: FastAPI, session: AsyncSession) -> None:
        self._app = app
        self._session = session

    async def user(
        self,
        email: str,
        role: Role = Role.assistant,
        status: UserStatus = UserStatus.active,
    ) -> User:
        user = User(email=email, name=email.split("@")[0], role=role, status=status)
        self._session.add(user)
        await self._session.commit()
        return user

    async def client(self, name: str) -> Client:
        client = Client(name=name, industry="Retail", outreach_locations=["AU"])
        self._session.add(client)
        await self._session.commit()
        return client

    async def assign(self, client: Client, user: User, actor: User) -> ClientAssignment:
        assignment = await AssignmentRepo(self._session).assign(
            client_id=client.id, user_id=user.id, actor_id=actor.id
        )
        await self._session.commit()
        return assignment

    def auth(self, user: User) -> dict[str, str]:
        token = self._app.state.session_resolver.issue(
            user_id=user.id, email=user.email, role=user.role
        )
        return {"Authorization": f"Bearer {token}"}


@asynccontextmanager
async def serve(settings: Settings) -> AsyncIterator[tuple[FastAPI, httpx.AsyncClient]]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not run the lifespan; drive it explicitly.
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield app, c


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def seed(app: FastAPI) -> AsyncIterator[Seeder]:
    async with app.state.sessionmaker() as session:
        yield Seeder(app, session)
