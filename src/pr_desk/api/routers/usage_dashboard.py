from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends

from pr_desk.api.deps import rate_limits
from pr_desk.auth.deps import get_principal
from pr_desk.auth.models import Principal
from pr_desk.security.rate_limit import RateLimitRegistry, Tier

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/usage-dashboard")
async def usage_dashboard(
    principal: Principal = Depends(get_principal),
    limits: RateLimitRegistry = Depends(rate_limits),
) -> dict[str, Any]:
    # Reading usage does not count as a hit.
    tiers: dict[str, Any] = {}
    for tier in Tier:
        usage = await limits.user_usage(tier, principal.id)
        reset_at = usage.reset_at
        tiers[tier.value] = {
            "used": usage.count,
            "limit": usage.limit,
            "remaining": usage.remaining,
            "windowSeconds": usage.window_seconds,
            "resetTime": (
                datetime.fromtimestamp(reset_at, tz=UTC).isoformat()
                if reset_at is not None
                else None
            ),
            "isLimited": usage.remaining == 0,
        }
    return {"userId": principal.id, "tiers": tiers}
