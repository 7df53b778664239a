"""
tests.test_auth

Capabilities, the session resolver, and the sign-in flow.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import httpx
import jwt
import pytest
from starlette.requests import Request

from pr_desk.auth.models import Action, Principal, Resource, Role, has_capability
from pr_desk.auth.session import SessionResolver
from pr_desk.db.models import UserStatus
from pr_desk.errors import AuthenticationRequired
from tests.conftest import Seeder, make_settings


def _request(*, bearer: str | None = None, cookie: str | None = None) -> Request:
    headers: list[tuple[bytes, bytes]] = []
    if bearer is not None:
        headers.append((b"authorization", f"Bearer {bearer}".encode()))
    if cookie is not None:
        headers.append((b"cookie", f"pr_desk_session={cookie}".encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


def _principal(role: Role) -> Principal:
    return Principal(id=1, email="a@studiohawk.com.au", role=role)


@pytest.mark.parametrize("role", list(Role))
def test_everyone_reads_clients_and_manages_activities(role: Role) -> None:
    p = _principal(role)
    assert has_capability(p, Action.read, Resource.client)
    for action in Action:
        assert has_capability(p, action, Resource.client_activity)


@pytest.mark.parametrize(
    ("role", "create_client", "delete_client", "assign"),
    [
        (Role.admin, True, True, True),
        (Role.dpr_manager, True, False, True),
        (Role.dpr_lead, False, False, False),
        (Role.assistant, False, False, False),
    ],
)
def test_privileged_grants(role: Role, create_client: bool, delete_client: bool, assign: bool):
    p = _principal(role)
    assert has_capability(p, Action.create, Resource.client) is create_client
    assert has_capability(p, Action.delete, Resource.client) is delete_client
    assert has_capability(p, Action.create, Resource.client_assignment) is assign
    assert has_capability(p, Action.update, Resource.user) is assign


def test_unlisted_capability_is_denied() -> None:
    assert not has_capability(_principal(Role.admin), Action.delete, Resource.user)


def test_resolve_from_bearer_and_cookie() -> None:
    resolver = SessionResolver(make_settings())
    token = resolver.issue(user_id=42, email="lead@studiohawk.com.au", role=Role.dpr_lead)

    for request in (_request(bearer=token), _request(cookie=token)):
        resolved = resolver.resolve(request)
        assert resolved.principal == Principal(
            id=42, email="lead@studiohawk.com.au", role=Role.dpr_lead
        )
        assert resolved.needs_refresh is False


@pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
def test_missing_or_garbage_token_is_rejected(token: str | None) -> None:
    resolver = SessionResolver(make_settings())
    with pytest.raises(AuthenticationRequired):
        resolver.resolve(_request(bearer=token))


def test_expired_token_is_rejected() -> None:
    settings = make_settings()
    past = datetime.now(tz=UTC) - timedelta(days=8)
    token = SessionResolver(settings, clock=lambda: past).issue(
        user_id=1, email="a@studiohawk.com.au", role=Role.admin
    )
    with pytest.raises(AuthenticationRequired):
        SessionResolver(settings).resolve(_request(bearer=token))


def test_token_signed_with_other_secret_is_rejected() -> None:
    token = SessionResolver(make_settings(jwt_secret="x" * 40)).issue(
        user_id=1, email="a@studiohawk.com.au", role=Role.admin
    )
    with pytest.raises(AuthenticationRequired):
        SessionResolver(make_settings()).resolve(_request(bearer=token))


def test_unknown_role_claim_is_rejected() -> None:
    settings = make_settings()
    now = datetime.now(tz=UTC)
    token = jwt.encode(
        {
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
            "sub": "1",
            "role": "superuser",
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=1)).timestamp()),
        },
        settings.jwt_secret,
        algorithm=settings.jwt_alg,
    )
    with pytest.raises(AuthenticationRequired):
        SessionResolver(settings).resolve(_request(bearer=token))


def test_old_token_is_refreshed() -> None:
    settings = make_settings()
    token = SessionResolver(settings).issue(user_id=7, email="a@studiohawk.com", role=Role.admin)

    later = datetime.now(tz=UTC) + timedelta(hours=25)
    resolved = SessionResolver(settings, clock=lambda: later).resolve(_request(bearer=token))
    assert resolved.needs_refresh is True


@pytest.mark.asyncio
async def test_sign_in_sets_cookie_and_creates_assistant(client: httpx.AsyncClient) -> None:
    r = await client.post(
        "/api/auth/session",
        json={"email": "New.Person@StudioHawk.com.au", "name": "New Person"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["email"] == "new.person@studiohawk.com.au"
    assert body["role"] == "assistant"
    assert "pr_desk_session" in r.cookies

    r = await client.get("/api/auth/session")
    assert r.status_code == 200
    assert r.json()["id"] == body["id"]

    r = await client.delete("/api/auth/session")
    assert r.status_code == 200
    r = await client.get("/api/auth/session")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_sign_in_rejects_other_domains(client: httpx.AsyncClient) -> None:
    r = await client.post("/api/auth/session", json={"email": "someone@gmail.com"})
    assert r.status_code == 403
    assert r.json()["code"] == "AUTHORIZATION_ERROR"


@pytest.mark.asyncio
async def test_sign_in_rejects_inactive_users(client: httpx.AsyncClient, seed: Seeder) -> None:
    await seed.user("gone@studiohawk.com", status=UserStatus.inactive)
    r = await client.post("/api/auth/session", json={"email": "gone@studiohawk.com"})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_authentication_failure_is_generic(client: httpx.AsyncClient) -> None:
    r = await client.get("/api/clients", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
    body = r.json()
    assert body["code"] == "AUTHENTICATION_ERROR"
    assert body["error"] == "Authentication required"


@pytest.mark.asyncio
async def test_refresh_cookie_is_reissued_from_the_user_row(
    settings, client: httpx.AsyncClient, seed: Seeder
) -> None:
    user = await seed.user("lead@studiohawk.com.au", Role.dpr_lead)
    old = datetime.now(tz=UTC) - timedelta(hours=25)
    token = SessionResolver(settings, clock=lambda: old).issue(
        user_id=user.id, email=user.email, role=Role.admin
    )

    r = await client.get("/api/auth/session", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["role"] == "dpr_lead"
    refreshed = r.cookies["pr_desk_session"]
    assert SessionResolver(settings).resolve(_request(cookie=refreshed)).principal.role == (
        Role.dpr_lead
    )


@pytest.mark.asyncio
async def test_deactivated_user_loses_access_immediately(
    client: httpx.AsyncClient, seed: Seeder
) -> None:
    admin = await seed.user("admin@studiohawk.com.au", Role.admin)
    other = await seed.user("other@studiohawk.com.au", Role.admin)
    headers = seed.auth(admin)

    r = await client.get("/api/users", headers=headers)
    assert r.status_code == 200

    r = await client.put(
        f"/api/users/{admin.id}", json={"status": "inactive"}, headers=seed.auth(other)
    )
    assert r.status_code == 200

    r = await client.get("/api/users", headers=headers)
    assert r.status_code == 401
    assert r.json()["code"] == "AUTHENTICATION_ERROR"


@pytest.mark.asyncio
async def test_demoted_admin_cannot_delete_clients(
    client: httpx.AsyncClient, seed: Seeder
) -> None:
    admin = await seed.user("admin@studiohawk.com.au", Role.admin)
    other = await seed.user("other@studiohawk.com.au", Role.admin)
    acme = await seed.client("Acme")
    headers = seed.auth(admin)

    r = await client.put(
        f"/api/users/{admin.id}", json={"role": "assistant"}, headers=seed.auth(other)
    )
    assert r.status_code == 200

    # The token still says admin; the users table decides.
    r = await client.delete(f"/api/clients/{acme.id}", headers=headers)
    assert r.status_code == 403
    assert r.json()["code"] == "AUTHORIZATION_ERROR"


@pytest.mark.asyncio
async def test_token_for_unknown_user_is_rejected(app, client: httpx.AsyncClient) -> None:
    token = app.state.session_resolver.issue(
        user_id=999, email="ghost@studiohawk.com.au", role=Role.admin
    )
    r = await client.get("/api/clients", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
