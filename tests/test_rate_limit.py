"""
tests.test_rate_limit

Unit tests for the sliding-window limiter and the tier registry.
"""

from __future__ import annotations

import pytest

from pr_desk.errors import RateLimitExceeded
from pr_desk.security.rate_limit import (
    InMemoryRateLimitStore,
    RateLimitRegistry,
    SlidingWindowLimiter,
    Tier,
)
from tests.conftest import make_settings


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _limiter(clock: FakeClock, *, limit: int = 3, window: int = 60, sweep: float = 0.0):
    return SlidingWindowLimiter(
        store=InMemoryRateLimitStore(),
        limit=limit,
        window_seconds=window,
        clock=clock,
        sweep_probability=sweep,
    )


@pytest.mark.asyncio
async def test_admits_up_to_limit_then_rejects() -> None:
    clock = FakeClock()
    limiter = _limiter(clock)
    for _ in range(3):
        await limiter.hit("k")
        clock.advance(1)

    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.hit("k")
    # Oldest entry was admitted 3s ago; it leaves the window in 57s.
    assert exc_info.value.retry_after == 57
    assert 0 < exc_info.value.retry_after <= 60


@pytest.mark.asyncio
async def test_rejected_requests_are_not_recorded() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, limit=1)
    await limiter.hit("k")
    for _ in range(5):
        with pytest.raises(RateLimitExceeded):
            await limiter.hit("k")
    assert len(await limiter.store.get("k")) == 1


@pytest.mark.asyncio
async def test_window_slides() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, limit=2, window=10)
    await limiter.hit("k")
    clock.advance(5)
    await limiter.hit("k")

    clock.advance(4.5)
    with pytest.raises(RateLimitExceeded):
        await limiter.hit("k")

    # An entry exactly `window` seconds old no longer counts.
    clock.advance(0.5)
    await limiter.hit("k")


@pytest.mark.asyncio
async def test_retry_after_is_at_least_one_second() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, limit=1, window=10)
    await limiter.hit("k")
    clock.advance(9.99)
    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.hit("k")
    assert exc_info.value.retry_after == 1


@pytest.mark.asyncio
async def test_keys_are_independent() -> None:
    limiter = _limiter(FakeClock(), limit=1)
    await limiter.hit("a")
    await limiter.hit("b")
    with pytest.raises(RateLimitExceeded):
        await limiter.hit("a")


@pytest.mark.asyncio
async def test_sweep_drops_expired_keys() -> None:
    clock = FakeClock()
    store = InMemoryRateLimitStore()
    limiter = SlidingWindowLimiter(
        store=store, limit=5, window_seconds=10, clock=clock, sweep_probability=1.0
    )
    await limiter.hit("old-1")
    await limiter.hit("old-2")
    clock.advance(30)
    await limiter.hit("fresh")

    assert len(store) == 1
    assert await store.get("old-1") == []


@pytest.mark.asyncio
async def test_usage_reports_remaining_and_reset() -> None:
    clock = FakeClock()
    limiter = _limiter(clock, limit=3, window=60)
    await limiter.hit("k")
    clock.advance(10)
    await limiter.hit("k")

    usage = await limiter.usage("k")
    assert usage.count == 2
    assert usage.remaining == 1
    assert usage.reset_at == clock.now - 10 + 60


@pytest.mark.asyncio
async def test_registry_namespaces_tiers_and_subjects() -> None:
    settings = make_settings(ai_ip_limit=1, ai_user_limit=1)
    registry = RateLimitRegistry(settings=settings, clock=FakeClock())

    await registry.hit_ip(Tier.ai, "10.0.0.1")
    await registry.hit_user(Tier.ai, 1)
    # Other tiers and other subjects have their own windows.
    await registry.hit_ip(Tier.read, "10.0.0.1")
    await registry.hit_ip(Tier.ai, "10.0.0.2")

    with pytest.raises(RateLimitExceeded):
        await registry.hit_ip(Tier.ai, "10.0.0.1")
    with pytest.raises(RateLimitExceeded):
        await registry.hit_user(Tier.ai, 1)

    assert await registry.store.get("ai:ip:10.0.0.1")
    assert await registry.store.get("ai:user:1")


@pytest.mark.asyncio
async def test_loopback_skip_only_in_dev() -> None:
    dev = RateLimitRegistry(settings=make_settings(env="dev", ai_ip_limit=1))
    for _ in range(3):
        await dev.hit_ip(Tier.ai, "127.0.0.1")
    assert await dev.store.get("ai:ip:127.0.0.1") == []

    test = RateLimitRegistry(settings=make_settings(env="test", ai_ip_limit=1))
    await test.hit_ip(Tier.ai, "127.0.0.1")
    with pytest.raises(RateLimitExceeded):
        await test.hit_ip(Tier.ai, "127.0.0.1")
