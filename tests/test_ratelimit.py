"""Tests for factorguard.metering.ratelimit — Redis request counters."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from factorguard.errors import RateLimitExceeded, StorageUnavailable
from factorguard.metering.periods import PeriodType, current_period
from factorguard.metering.ratelimit import RateLimiter
from factorguard.models.tenant import Tenant


def _now() -> datetime:
    # Keys expire at real period boundaries, so tests run on the wall clock.
    return datetime.now(timezone.utc)


def _tenant(daily: int = 3, monthly: int = 100) -> Tenant:
    return Tenant(
        id=uuid.uuid4(),
        name="Limited",
        slug="limited",
        rate_limit_daily=daily,
        rate_limit_monthly=monthly,
    )


@pytest.mark.asyncio
async def test_counts_requests_and_sets_expiry(redis):
    tenant = _tenant()
    now = _now()
    status = await RateLimiter(redis, tz=timezone.utc).hit(tenant, now)

    assert status.daily_used == 1
    assert status.monthly_used == 1
    assert status.headers()["X-RateLimit-Daily-Limit"] == "3"
    assert "Retry-After" not in status.headers()

    daily_key = f"ratelimit:daily:{tenant.id}:{now.date().isoformat()}"
    monthly_key = f"ratelimit:monthly:{tenant.id}:{now:%Y-%m}"
    assert await redis.get(daily_key) == "1"
    assert await redis.get(monthly_key) == "1"
    assert 0 < await redis.ttl(daily_key) <= 86400
    assert await redis.ttl(monthly_key) > 0


@pytest.mark.asyncio
async def test_over_daily_cap_is_rejected_and_rolled_back(redis):
    tenant = _tenant(daily=3)
    limiter = RateLimiter(redis, tz=timezone.utc)
    now = _now()
    for _ in range(3):
        await limiter.hit(tenant, now)

    with pytest.raises(RateLimitExceeded) as excinfo:
        await limiter.hit(tenant, now)

    daily = current_period(PeriodType.DAILY, now, timezone.utc)
    err = excinfo.value
    assert err.quota_type == "requests"
    assert err.period_type == "daily"
    assert err.current_usage == 3
    assert err.limit == 3
    assert err.resets_at == daily.resets_at
    assert err.retry_after == daily.seconds_remaining(now)
    assert err.to_dict()["retry_after"] == err.retry_after

    usage = await limiter.usage(tenant, now)
    assert usage.daily_used == 3
    assert usage.monthly_used == 3


@pytest.mark.asyncio
async def test_monthly_cap(redis):
    tenant = _tenant(daily=100, monthly=2)
    limiter = RateLimiter(redis, tz=timezone.utc)
    now = _now()
    await limiter.hit(tenant, now)
    await limiter.hit(tenant, now)

    with pytest.raises(RateLimitExceeded) as excinfo:
        await limiter.hit(tenant, now)
    assert excinfo.value.period_type == "monthly"
    assert excinfo.value.resets_at == current_period(PeriodType.MONTHLY, now, timezone.utc).resets_at


@pytest.mark.asyncio
async def test_new_day_uses_a_fresh_daily_counter(redis):
    tenant = _tenant(daily=1)
    limiter = RateLimiter(redis, tz=timezone.utc)
    now = _now()
    await limiter.hit(tenant, now)

    tomorrow = now + timedelta(days=1)
    status = await limiter.hit(tenant, tomorrow)
    assert status.daily_used == 1
    expected_monthly = 2 if tomorrow.month == now.month else 1
    assert status.monthly_used == expected_monthly


@pytest.mark.asyncio
async def test_usage_without_traffic(redis):
    usage = await RateLimiter(redis).usage(_tenant())
    assert usage.daily_used == 0
    assert usage.monthly_used == 0


class _BrokenRedis:
    def pipeline(self, transaction: bool = True):
        raise RedisConnectionError("connection refused")


@pytest.mark.asyncio
async def test_redis_failure_surfaces_as_storage_unavailable():
    with pytest.raises(StorageUnavailable):
        await RateLimiter(_BrokenRedis()).hit(_tenant(), _now())
