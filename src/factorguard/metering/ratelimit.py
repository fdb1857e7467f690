"""Request-volume rate limiter backed by Redis counters.

Two counters per tenant, one per calendar day and one per month:

    ratelimit:daily:{tenant_id}:{YYYY-MM-DD}
    ratelimit:monthly:{tenant_id}:{YYYY-MM}

Each admission is a single MULTI/EXEC round trip (INCR + EXPIREAT on both
keys).  A request that pushes either counter past the tenant's cap is
rolled back with DECR and rejected, so refused requests do not eat into the
allowance.  Keys expire at their period boundary.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from factorguard.config import settings
from factorguard.errors import RateLimitExceeded, StorageUnavailable
from factorguard.metering.periods import Period, PeriodType, current_period, period_zone
from factorguard.models.base import utcnow
from factorguard.models.tenant import Tenant

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    """FastAPI dependency returning the shared Redis client."""
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.redis_url, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


@dataclass
class RateLimitStatus:
    daily_limit: int
    daily_used: int
    monthly_limit: int
    monthly_used: int
    retry_after: int | None = None

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Daily-Limit": str(self.daily_limit),
            "X-RateLimit-Daily-Used": str(self.daily_used),
            "X-RateLimit-Monthly-Limit": str(self.monthly_limit),
            "X-RateLimit-Monthly-Used": str(self.monthly_used),
        }
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


def _key(period: Period, tenant_id: object) -> str:
    if period.type is PeriodType.DAILY:
        return f"ratelimit:daily:{tenant_id}:{period.start.isoformat()}"
    return f"ratelimit:monthly:{tenant_id}:{period.start:%Y-%m}"


class RateLimiter:
    def __init__(self, redis: aioredis.Redis, tz: tzinfo | None = None) -> None:
        self.redis = redis
        self.tz = tz or period_zone()

    def _periods(self, now: datetime) -> tuple[Period, Period]:
        return (
            current_period(PeriodType.DAILY, now, self.tz),
            current_period(PeriodType.MONTHLY, now, self.tz),
        )

    async def hit(self, tenant: Tenant, now: datetime | None = None) -> RateLimitStatus:
        """Count one request, raising ``RateLimitExceeded`` if a cap would be passed."""
        now = now or utcnow()
        daily, monthly = self._periods(now)
        daily_key, monthly_key = _key(daily, tenant.id), _key(monthly, tenant.id)

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(daily_key)
                pipe.expireat(daily_key, daily.resets_at)
                pipe.incr(monthly_key)
                pipe.expireat(monthly_key, monthly.resets_at)
                daily_used, _, monthly_used, _ = await pipe.execute()

            breached = None
            if daily_used > tenant.rate_limit_daily:
                breached = (daily, daily_used - 1, tenant.rate_limit_daily)
            elif monthly_used > tenant.rate_limit_monthly:
                breached = (monthly, monthly_used - 1, tenant.rate_limit_monthly)

            if breached is not None:
                async with self.redis.pipeline(transaction=True) as pipe:
                    pipe.decr(daily_key)
                    pipe.decr(monthly_key)
                    await pipe.execute()
        except RedisError as exc:
            logger.error("Rate limiter unavailable: %s", exc)
            raise StorageUnavailable("Rate limiter storage is unavailable.") from exc

        if breached is None:
            return RateLimitStatus(
                daily_limit=tenant.rate_limit_daily,
                daily_used=daily_used,
                monthly_limit=tenant.rate_limit_monthly,
                monthly_used=monthly_used,
            )

        period, used, limit = breached
        retry_after = period.seconds_remaining(now)
        logger.warning(
            "Tenant %s hit %s rate limit (%d/%d), retry in %ds",
            tenant.id,
            period.type.value,
            used,
            limit,
            retry_after,
        )
        raise RateLimitExceeded(
            f"{period.type.value.capitalize()} rate limit exceeded. "
            f"Retry after {retry_after} seconds.",
            retry_after=retry_after,
            quota_type="requests",
            period_type=period.type.value,
            current_usage=used,
            limit=limit,
            resets_at=period.resets_at,
        )

    async def usage(self, tenant: Tenant, now: datetime | None = None) -> RateLimitStatus:
        """Current counters without counting a request."""
        daily, monthly = self._periods(now or utcnow())
        try:
            daily_used, monthly_used = await self.redis.mget(
                _key(daily, tenant.id), _key(monthly, tenant.id)
            )
        except RedisError as exc:
            raise StorageUnavailable("Rate limiter storage is unavailable.") from exc
        return RateLimitStatus(
            daily_limit=tenant.rate_limit_daily,
            daily_used=int(daily_used or 0),
            monthly_limit=tenant.rate_limit_monthly,
            monthly_used=int(monthly_used or 0),
        )
