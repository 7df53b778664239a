"""
tests.test_health

Smoke tests: the service boots and serves its probes.
"""

from __future__ import annotations

import httpx
import pytest


@pytest.mark.asyncio
async def test_health_endpoints(client: httpx.AsyncClient) -> None:
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: httpx.AsyncClient) -> None:
    r = await client.get("/healthz", headers={"x-request-id": "abc-123"})
    assert r.headers["x-request-id"] == "abc-123"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client: httpx.AsyncClient) -> None:
    r = await client.get("/api/does-not-exist")
    assert r.status_code == 404
    body = r.json()
    assert body["code"] == "NOT_FOUND_ERROR"
    assert "timestamp" in body
