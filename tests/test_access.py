"""
tests.test_access

Row-level access through the API: privileged roles see everything, other roles
only the clients they hold an active assignment for.
"""

from __future__ import annotations

import httpx
import pytest

from pr_desk.auth.models import Role
from tests.conftest import Seeder


async def _agency(seed: Seeder):
    admin = await seed.user("admin@studiohawk.com.au", Role.admin)
    lead = await seed.user("lead@studiohawk.com.au", Role.dpr_lead)
    clients = [await seed.client(f"Client {i:02d}") for i in range(1, 9)]
    return admin, lead, clients


@pytest.mark.asyncio
async def test_listing_is_scoped_by_assignment(client: httpx.AsyncClient, seed: Seeder) -> None:
    admin, lead, clients = await _agency(seed)
    seventh = clients[6]
    await seed.assign(seventh, lead, admin)

    r = await client.get("/api/clients", headers=seed.auth(admin))
    assert r.status_code == 200
    assert len(r.json()) == 8

    r = await client.get("/api/clients", headers=seed.auth(lead))
    assert r.status_code == 200
    assert [c["id"] for c in r.json()] == [seventh.id]
    assert r.json()[0]["outreachLocations"] == ["AU"]

    r = await client.get(f"/api/clients/{clients[2].id}", headers=seed.auth(lead))
    assert r.status_code == 403
    assert r.json()["code"] == "AUTHORIZATION_ERROR"


@pytest.mark.asyncio
async def test_missing_client_is_403_for_unprivileged_and_404_for_admin(
    client: httpx.AsyncClient, seed: Seeder
) -> None:
    admin, lead, _ = await _agency(seed)
    assert (await client.get("/api/clients/999", headers=seed.auth(lead))).status_code == 403
    assert (await client.get("/api/clients/999", headers=seed.auth(admin))).status_code == 404


@pytest.mark.asyncio
async def test_assignment_grants_access(client: httpx.AsyncClient, seed: Seeder) -> None:
    admin, _, clients = await _agency(seed)
    assistant = await seed.user("assistant@studiohawk.com", Role.assistant)
    target = clients[0]

    r = await client.get(f"/api/clients/{target.id}", headers=seed.auth(assistant))
    assert r.status_code == 403

    r = await client.post(
        "/api/client-assignments",
        json={"clientId": target.id, "userId": assistant.id},
        headers=seed.auth(admin),
    )
    assert r.status_code == 201
    assert r.json()["status"] == "active"
    assert r.json()["assignedBy"] == admin.id

    r = await client.get(f"/api/clients/{target.id}", headers=seed.auth(assistant))
    assert r.status_code == 200
    assert r.json()["name"] == target.name

    # Same assignment twice is a conflict.
    r = await client.post(
        "/api/client-assignments",
        json={"clientId": target.id, "userId": assistant.id},
        headers=seed.auth(admin),
    )
    assert r.status_code == 409

    r = await client.delete(
        "/api/client-assignments",
        params={"clientId": target.id, "userId": assistant.id},
        headers=seed.auth(admin),
    )
    assert r.status_code == 200
    r = await client.get(f"/api/clients/{target.id}", headers=seed.auth(assistant))
    assert r.status_code == 403

    r = await client.get(
        "/api/client-assignments/history",
        params={"clientId": target.id},
        headers=seed.auth(admin),
    )
    assert [e["action"] for e in r.json()] == ["unassigned", "assigned"]


@pytest.mark.asyncio
async def test_only_privileged_roles_manage_assignments(
    client: httpx.AsyncClient, seed: Seeder
) -> None:
    admin, lead, clients = await _agency(seed)
    await seed.assign(clients[0], lead, admin)

    r = await client.post(
        "/api/client-assignments",
        json={"clientId": clients[1].id, "userId": lead.id},
        headers=seed.auth(lead),
    )
    assert r.status_code == 403

    # Non-privileged users list only their own assignments.
    r = await client.get("/api/client-assignments", headers=seed.auth(lead))
    assert r.status_code == 200
    assert [(a["clientId"], a["userId"]) for a in r.json()] == [(clients[0].id, lead.id)]


@pytest.mark.asyncio
async def test_client_mutations_by_role(client: httpx.AsyncClient, seed: Seeder) -> None:
    admin, lead, clients = await _agency(seed)
    manager = await seed.user("manager@studiohawk.com", Role.dpr_manager)
    await seed.assign(clients[0], lead, admin)

    r = await client.post("/api/clients", json={"name": "Acme"}, headers=seed.auth(lead))
    assert r.status_code == 403

    r = await client.post(
        "/api/clients",
        json={"name": "  Acme  ", "industry": "Hardware", "outreachLocations": ["UK"]},
        headers=seed.auth(manager),
    )
    assert r.status_code == 201
    created = r.json()
    assert created["name"] == "Acme"
    assert created["status"] == "active"

    r = await client.put(
        f"/api/clients/{clients[0].id}",
        json={"toneOfVoice": "Playful", "name": None},
        headers=seed.auth(lead),
    )
    assert r.status_code == 200
    assert r.json()["toneOfVoice"] == "Playful"
    assert r.json()["name"] == clients[0].name

    r = await client.put(
        f"/api/clients/{clients[1].id}", json={"spheres": "x"}, headers=seed.auth(lead)
    )
    assert r.status_code == 403

    r = await client.delete(f"/api/clients/{created['id']}", headers=seed.auth(manager))
    assert r.status_code == 403
    r = await client.delete(f"/api/clients/{created['id']}", headers=seed.auth(admin))
    assert r.status_code == 200
    r = await client.get(f"/api/clients/{created['id']}", headers=seed.auth(admin))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_client_body_validation(client: httpx.AsyncClient, seed: Seeder) -> None:
    admin = await seed.user("admin@studiohawk.com.au", Role.admin)
    r = await client.post(
        "/api/clients",
        json={"name": "", "url": "u" * 501, "status": "paused"},
        headers=seed.auth(admin),
    )
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert {d["field"] for d in body["details"]} == {"name", "url", "status"}


@pytest.mark.asyncio
async def test_activities_follow_client_assignment(
    client: httpx.AsyncClient, seed: Seeder
) -> None:
    admin, lead, clients = await _agency(seed)
    mine, other = clients[0], clients[1]
    await seed.assign(mine, lead, admin)

    payload = {
        "clientId": mine.id,
        "activityType": "idea",
        "title": "Summer idea",
        "content": {
            "headline": "Sunscreen sales soar",
            "metadata": {"confidence": 0.9, "raw": {"__proto__": {"polluted": True}, "ok": 1}},
        },
    }
    r = await client.post("/api/client-activities", json=payload, headers=seed.auth(lead))
    assert r.status_code == 201
    mine_activity = r.json()
    assert mine_activity["clientName"] == mine.name
    assert mine_activity["content"]["metadata"]["raw"] == {"ok": 1}

    r = await client.post(
        "/api/client-activities",
        json={**payload, "clientId": other.id},
        headers=seed.auth(lead),
    )
    assert r.status_code == 403

    r = await client.post(
        "/api/client-activities",
        json={**payload, "clientId": other.id},
        headers=seed.auth(admin),
    )
    assert r.status_code == 201
    other_activity = r.json()

    r = await client.get("/api/client-activities", headers=seed.auth(lead))
    assert [a["id"] for a in r.json()] == [mine_activity["id"]]

    r = await client.get("/api/client-activities", headers=seed.auth(admin))
    assert [a["id"] for a in r.json()] == [other_activity["id"], mine_activity["id"]]

    r = await client.get(
        "/api/client-activities", params={"clientId": other.id}, headers=seed.auth(lead)
    )
    assert r.status_code == 403

    r = await client.get(
        f"/api/client-activities/{other_activity['id']}", headers=seed.auth(lead)
    )
    assert r.status_code == 403

    r = await client.put(
        f"/api/client-activities/{mine_activity['id']}",
        json={"notes": "pitched to editors"},
        headers=seed.auth(lead),
    )
    assert r.status_code == 200
    assert r.json()["notes"] == "pitched to editors"

    r = await client.delete(
        f"/api/client-activities/{other_activity['id']}", headers=seed.auth(lead)
    )
    assert r.status_code == 403
    r = await client.delete(
        f"/api/client-activities/{mine_activity['id']}", headers=seed.auth(lead)
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_activity_content_is_checked_against_its_type(
    client: httpx.AsyncClient, seed: Seeder
) -> None:
    admin, _, clients = await _agency(seed)
    base = {"clientId": clients[0].id, "activityType": "idea"}

    r = await client.post(
        "/api/client-activities",
        json={**base, "content": {"headline": "x" * 500}},
        headers=seed.auth(admin),
    )
    assert r.status_code == 201
    activity_id = r.json()["id"]

    r = await client.post(
        "/api/client-activities",
        json={**base, "content": {"headline": "x" * 501}},
        headers=seed.auth(admin),
    )
    assert r.status_code == 400
    assert r.json()["details"] == [
        {"field": "content.headline", "message": "String should have at most 500 characters"}
    ]

    # Switching to `trend` re-validates the stored content; `headline` is not a trend field.
    r = await client.put(
        f"/api/client-activities/{activity_id}",
        json={"activityType": "trend"},
        headers=seed.auth(admin),
    )
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "content.headline"


@pytest.mark.asyncio
async def test_activity_list_limit_is_bounded(client: httpx.AsyncClient, seed: Seeder) -> None:
    admin = await seed.user("admin@studiohawk.com.au", Role.admin)
    r = await client.get(
        "/api/client-activities", params={"limit": 101}, headers=seed.auth(admin)
    )
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "limit"
