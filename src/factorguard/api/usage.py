"""Usage endpoints — current quota consumption and monthly history."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from factorguard.api.deps import RequestContext, get_request_context
from factorguard.metering.limits import UsageType
from factorguard.metering.periods import PeriodType
from factorguard.metering.quota import UPGRADE_URL, QuotaTracker, UsageReport
from factorguard.models.usage import UsageRecord

router = APIRouter(prefix="/v1/usage", tags=["usage"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class CounterOut(BaseModel):
    used: int
    limit: int | None  # None = unlimited
    percent: float


class PeriodOut(BaseModel):
    start: date
    end: date
    resets_at: datetime


class RateLimitOut(BaseModel):
    daily_limit: int
    daily_used: int
    monthly_limit: int
    monthly_used: int


class UsageOut(BaseModel):
    tier: str
    periods: dict[str, PeriodOut]
    usage: dict[str, dict[str, CounterOut]]
    warning_level: str
    warning_message: str | None = None
    upgrade_url: str = UPGRADE_URL
    rate_limit: RateLimitOut

    @classmethod
    def from_report(cls, report: UsageReport, rate_limit: RateLimitOut) -> UsageOut:
        usage: dict[str, dict[str, CounterOut]] = {}
        for usage_type in UsageType:
            usage[usage_type.value] = {
                period_type.value: CounterOut(
                    used=report.count(usage_type, period_type),
                    limit=report.limit(usage_type, period_type).value,
                    percent=round(report.percent(usage_type, period_type), 1),
                )
                for period_type in PeriodType
            }
        return cls(
            tier=report.tier.name,
            periods={
                p.value: PeriodOut(start=period.start, end=period.end, resets_at=period.resets_at)
                for p, period in report.periods.items()
            },
            usage=usage,
            warning_level=report.warning_level,
            warning_message=report.warning_message,
            rate_limit=rate_limit,
        )


class UsageHistoryEntry(BaseModel):
    period_start: date
    period_end: date
    check_count: int
    register_count: int
    party_check_count: int
    party_register_count: int
    quota_exceeded_count: int

    @classmethod
    def from_model(cls, record: UsageRecord) -> UsageHistoryEntry:
        return cls(
            period_start=record.period_start,
            period_end=record.period_end,
            check_count=record.check_count,
            register_count=record.register_count,
            party_check_count=record.party_check_count,
            party_register_count=record.party_register_count,
            quota_exceeded_count=record.quota_exceeded_count,
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=UsageOut)
async def get_usage(ctx: RequestContext = Depends(get_request_context)) -> UsageOut:
    await ctx.admit()
    report = await QuotaTracker(ctx.db).report(ctx.tenant)
    rate = await ctx.limiter.usage(ctx.tenant)
    await ctx.commit()
    return UsageOut.from_report(
        report,
        RateLimitOut(
            daily_limit=rate.daily_limit,
            daily_used=rate.daily_used,
            monthly_limit=rate.monthly_limit,
            monthly_used=rate.monthly_used,
        ),
    )


@router.get("/history", response_model=list[UsageHistoryEntry])
async def get_usage_history(
    months: int = Query(default=6, ge=1, le=24),
    ctx: RequestContext = Depends(get_request_context),
) -> list[UsageHistoryEntry]:
    await ctx.admit()
    records = await QuotaTracker(ctx.db).history(ctx.tenant.id, months)
    await ctx.commit()
    return [UsageHistoryEntry.from_model(r) for r in records]
