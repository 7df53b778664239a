"""
pr_desk.security.rate_limit

Sliding-window-log rate limiting, per client IP and per authenticated user.

Responsibilities:
- Define the storage interface (`RateLimitStore`) and the process-local store.
- Implement the sliding window admit/reject decision with `retryAfter`.
- Group limiters into tiers (`ai`, `read`, `write`), each with an IP and a user limiter.
- Report current window usage for the usage dashboard.

Note:
- The in-memory store is per process. Multi-instance deployments need a shared
  store implementing the same interface; the limiter algorithm does not change.
- Concurrent requests from the same subject may race on read-modify-write and
  over-admit by one. This is a soft usage cap, not a security boundary.
"""

from __future__ import annotations

import enum
import math
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from pr_desk.errors import RateLimitExceeded
from pr_desk.observability.logging import get_logger
from pr_desk.settings import Settings

log = get_logger(__name__)


class RateLimitStore(Protocol):
    async def get(self, key: str) -> list[float]: ...

    async def increment(self, key: str, now: float) -> None: ...

    async def prune(self, key: str, cutoff: float) -> list[float]: ...

    async def sweep(self, cutoff: float) -> int: ...


class InMemoryRateLimitStore:
    """
    Ordered timestamp log per subject key, held in a dict.
    """

    def __init__(self) -> None:
        self._windows: dict[str, list[float]] = {}

    async def get(self, key: str) -> list[float]:
        return list(self._windows.get(key, ()))

    async def increment(self, key: str, now: float) -> None:
        self._windows.setdefault(key, []).append(now)

    async def prune(self, key: str, cutoff: float) -> list[float]:
        # Keep only timestamps strictly newer than the cutoff.
        surviving = [t for t in self._windows.get(key, ()) if t > cutoff]
        if surviving:
            self._windows[key] = surviving
        else:
            self._windows.pop(key, None)
        return list(surviving)

    async def sweep(self, cutoff: float) -> int:
        removed = 0
        for key in list(self._windows):
            surviving = [t for t in self._windows[key] if t > cutoff]
            if surviving:
                self._windows[key] = surviving
            else:
                del self._windows[key]
                removed += 1
        return removed

    def __len__(self) -> int:
        return len(self._windows)


@dataclass(frozen=True, slots=True)
class WindowUsage:
    count: int
    limit: int
    window_seconds: int
    oldest: float | None

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def reset_at(self) -> float | None:
        return None if self.oldest is None else self.oldest + self.window_seconds


class SlidingWindowLimiter:
    def __init__(
        self,
        *,
        store: RateLimitStore,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
        sweep_probability: float = 0.01,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._sweep_probability = sweep_probability
        self._rng = rng

    async def hit(self, key: str) -> None:
        """
        Admit one request for `key` or raise `RateLimitExceeded`.
        """

        now = self._clock()
        surviving = await self.store.prune(key, now - self.window_seconds)
        if len(surviving) >= self.limit:
            oldest = min(surviving)
            retry_after = max(1, math.ceil(oldest + self.window_seconds - now))
            raise RateLimitExceeded(retry_after, detail=f"rate limit exceeded for {key}")

        await self.store.increment(key, now)

        # Keeps memory bounded without paying for a full scan on every request.
        if self._rng() < self._sweep_probability:
            removed = await self.store.sweep(now - self.window_seconds)
            if removed:
                log.debug("rate_limit_sweep", removed=removed)

    async def usage(self, key: str) -> WindowUsage:
        now = self._clock()
        active = [t for t in await self.store.get(key) if t > now - self.window_seconds]
        return WindowUsage(
            count=len(active),
            limit=self.limit,
            window_seconds=self.window_seconds,
            oldest=min(active) if active else None,
        )


class Tier(enum.StrEnum):
    ai = "ai"
    read = "read"
    write = "write"


LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1"})


@dataclass(frozen=True, slots=True)
class TierLimiters:
    ip: SlidingWindowLimiter
    user: SlidingWindowLimiter


class RateLimitRegistry:
    """
    All tiers share one store; keys are namespaced by tier and subject kind.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._settings = settings
        self.store: RateLimitStore = store or InMemoryRateLimitStore()
        limits = {
            Tier.ai: (settings.ai_ip_limit, settings.ai_user_limit),
            Tier.read: (settings.read_ip_limit, settings.read_user_limit),
            Tier.write: (settings.write_ip_limit, settings.write_user_limit),
        }

        def limiter(limit: int) -> SlidingWindowLimiter:
            return SlidingWindowLimiter(
                store=self.store,
                limit=limit,
                window_seconds=settings.rate_limit_window_seconds,
                clock=clock,
                sweep_probability=settings.rate_limit_sweep_probability,
                rng=rng,
            )

        self._tiers = {
            tier: TierLimiters(ip=limiter(ip_limit), user=limiter(user_limit))
            for tier, (ip_limit, user_limit) in limits.items()
        }

    def tier(self, tier: Tier) -> TierLimiters:
        return self._tiers[tier]

    @staticmethod
    def ip_key(tier: Tier, address: str) -> str:
        return f"{tier.value}:ip:{address}"

    @staticmethod
    def user_key(tier: Tier, user_id: int) -> str:
        return f"{tier.value}:user:{user_id}"

    def skips_ip(self, address: str | None) -> bool:
        return self._settings.env == "dev" and address in LOOPBACK_ADDRESSES

    async def hit_ip(self, tier: Tier, address: str | None) -> None:
        if self.skips_ip(address):
            return
        await self._tiers[tier].ip.hit(self.ip_key(tier, address or "unknown"))

    async def hit_user(self, tier: Tier, user_id: int) -> None:
        await self._tiers[tier].user.hit(self.user_key(tier, user_id))

    async def user_usage(self, tier: Tier, user_id: int) -> WindowUsage:
        return await self._tiers[tier].user.usage(self.user_key(tier, user_id))


# --- Module Notes -----------------------------------------------------------
# FastAPI wiring lives in `api.deps` (`ip_rate_limit`, `user_rate_limit`). The IP
# limiter always runs first, so when both are exhausted its retryAfter is reported.
