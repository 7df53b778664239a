"""
pr_desk.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/healthz`).
- Provide readiness probe (`/readyz`) that checks the database is reachable.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pr_desk.api.deps import db_session

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    # Liveness only; never touches the database.
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(session: AsyncSession = Depends(db_session)) -> dict[str, str]:
    # A failure here surfaces as DATABASE_ERROR through the normalizer.
    await session.execute(text("SELECT 1"))
    return {"status": "ready"}
