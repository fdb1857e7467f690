"""Quota tracker — per-tenant usage counters checked against tier limits.

Each tenant has one ``UsageRecord`` per daily and per monthly period,
created lazily the first time the period is touched.  Creation is an
insert-or-ignore followed by a re-read, and every counter change is a single
``UPDATE … SET col = col + 1`` statement, so concurrent requests never lose
increments or create duplicate records.

Order of operations for a metered call (see ``admit``):

1. read current usage, daily before monthly;
2. record the attempt in both periods, whatever the outcome;
3. raise ``QuotaExceeded`` if step 1 found a counter already at its limit.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.config import settings
from factorguard.database import dialect_insert
from factorguard.errors import QuotaExceeded
from factorguard.metering.limits import USAGE_COLUMNS, Bounded, Limit, UsageType, tier_limit
from factorguard.metering.periods import Period, PeriodType, current_period, period_zone
from factorguard.models.base import utcnow
from factorguard.models.subscription_tier import SubscriptionTier
from factorguard.models.tenant import Tenant
from factorguard.models.usage import UsageNotification, UsageRecord

logger = logging.getLogger(__name__)

_records = UsageRecord.__table__
_markers = UsageNotification.__table__

# Dimensions that feed the displayed warning level.
WARNING_DIMENSIONS = (
    (UsageType.CHECK, PeriodType.DAILY),
    (UsageType.REGISTER, PeriodType.DAILY),
    (UsageType.CHECK, PeriodType.MONTHLY),
    (UsageType.REGISTER, PeriodType.MONTHLY),
)

# Highest first: a tenant past 90% is warned at 90 before 80 is considered.
WARNING_THRESHOLDS = (
    (90.0, "critical", "usage_warning_90"),
    (80.0, "warning", "usage_warning_80"),
)

WARNING_MESSAGES = {
    "critical": "You have used over 90% of your quota. Upgrade now to avoid interruption.",
    "warning": "You have used over 80% of your quota. Consider upgrading your plan.",
}

UPGRADE_URL = "/v1/subscription-tiers"


@dataclass
class QuotaViolation:
    usage_type: UsageType
    period: Period
    current_usage: int
    limit: int

    def to_error(self) -> QuotaExceeded:
        label = self.period.type.value.capitalize()
        return QuotaExceeded(
            f"{label} {self.usage_type.value} quota exceeded "
            f"({self.current_usage}/{self.limit}). Upgrade your plan for higher limits.",
            quota_type=self.usage_type.value,
            period_type=self.period.type.value,
            current_usage=self.current_usage,
            limit=self.limit,
            resets_at=self.period.resets_at,
        )


@dataclass
class UsageReport:
    tier: SubscriptionTier
    periods: dict[PeriodType, Period]
    records: dict[PeriodType, UsageRecord]

    def count(self, usage_type: UsageType, period_type: PeriodType) -> int:
        return getattr(self.records[period_type], USAGE_COLUMNS[usage_type].counter)

    def limit(self, usage_type: UsageType, period_type: PeriodType) -> Limit:
        return tier_limit(self.tier, usage_type, period_type)

    def percent(self, usage_type: UsageType, period_type: PeriodType) -> float:
        return self.limit(usage_type, period_type).percent(self.count(usage_type, period_type))

    @property
    def max_percent(self) -> float:
        return max(self.percent(u, p) for u, p in WARNING_DIMENSIONS)

    @property
    def warning_level(self) -> str:
        peak = self.max_percent
        for threshold, level, _ in WARNING_THRESHOLDS:
            if peak >= threshold:
                return level
        return "none"

    @property
    def warning_message(self) -> str | None:
        return WARNING_MESSAGES.get(self.warning_level)


class QuotaTracker:
    def __init__(self, db: AsyncSession, tz: tzinfo | None = None) -> None:
        self.db = db
        self.tz = tz or period_zone()

    async def resolve_tier(self, tenant: Tenant) -> SubscriptionTier:
        """The tenant's tier, or the configured default tier when none is assigned."""
        if tenant.subscription_tier_id is not None:
            stmt = select(SubscriptionTier).where(SubscriptionTier.id == tenant.subscription_tier_id)
        else:
            stmt = select(SubscriptionTier).where(SubscriptionTier.name == settings.default_tier)
        tier = (await self.db.execute(stmt)).scalar_one_or_none()
        if tier is None:
            raise RuntimeError(
                f"Subscription tier for tenant {tenant.id} not found; is the catalogue seeded?"
            )
        return tier

    async def _record_for(self, tenant_id: uuid.UUID, period: Period) -> UsageRecord:
        stmt = (
            dialect_insert(self.db, _records)
            .values(
                id=uuid.uuid4(),
                tenant_id=tenant_id,
                period_type=period.type.value,
                period_start=period.start,
                period_end=period.end,
                check_count=0,
                register_count=0,
                party_check_count=0,
                party_register_count=0,
                quota_exceeded_count=0,
                created_at=utcnow(),
                updated_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["tenant_id", "period_type", "period_start"])
        )
        await self.db.execute(stmt)

        result = await self.db.execute(
            select(UsageRecord)
            .where(
                UsageRecord.tenant_id == tenant_id,
                UsageRecord.period_type == period.type.value,
                UsageRecord.period_start == period.start,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    def _periods(self, now: datetime) -> dict[PeriodType, Period]:
        return {p: current_period(p, now, self.tz) for p in PeriodType}

    async def report(self, tenant: Tenant, now: datetime | None = None) -> UsageReport:
        periods = self._periods(now or utcnow())
        tier = await self.resolve_tier(tenant)
        records = {p: await self._record_for(tenant.id, period) for p, period in periods.items()}
        return UsageReport(tier=tier, periods=periods, records=records)

    async def check(
        self,
        tenant: Tenant,
        usage_type: UsageType,
        now: datetime | None = None,
    ) -> QuotaViolation | None:
        """First period (daily, then monthly) whose counter is already at its limit."""
        report = await self.report(tenant, now)
        for period_type in (PeriodType.DAILY, PeriodType.MONTHLY):
            limit = report.limit(usage_type, period_type)
            used = report.count(usage_type, period_type)
            if isinstance(limit, Bounded) and not limit.allows(used):
                return QuotaViolation(
                    usage_type=usage_type,
                    period=report.periods[period_type],
                    current_usage=used,
                    limit=limit.value,
                )
        return None

    async def record(
        self,
        tenant_id: uuid.UUID,
        usage_type: UsageType,
        now: datetime | None = None,
        *,
        exceeded: bool = False,
    ) -> None:
        now = now or utcnow()
        counter = _records.c[USAGE_COLUMNS[usage_type].counter]
        values = {counter.name: counter + 1, "updated_at": now}
        if exceeded:
            values["quota_exceeded_count"] = _records.c.quota_exceeded_count + 1

        for period in self._periods(now).values():
            record = await self._record_for(tenant_id, period)
            await self.db.execute(update(_records).where(_records.c.id == record.id).values(**values))

    async def admit(
        self,
        tenant: Tenant,
        usage_type: UsageType,
        now: datetime | None = None,
    ) -> None:
        """Check, record, and raise ``QuotaExceeded`` on a breach."""
        now = now or utcnow()
        violation = await self.check(tenant, usage_type, now)
        await self.record(tenant.id, usage_type, now, exceeded=violation is not None)
        if violation is not None:
            logger.warning(
                "Tenant %s over %s %s quota (%d/%d)",
                tenant.id,
                violation.period.type.value,
                usage_type.value,
                violation.current_usage,
                violation.limit,
            )
            raise violation.to_error()

    async def history(self, tenant_id: uuid.UUID, months: int = 6) -> list[UsageRecord]:
        """Monthly records, newest first."""
        result = await self.db.execute(
            select(UsageRecord)
            .where(
                UsageRecord.tenant_id == tenant_id,
                UsageRecord.period_type == PeriodType.MONTHLY.value,
            )
            .order_by(UsageRecord.period_start.desc())
            .limit(months)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def claim_notification(
        self,
        tenant_id: uuid.UUID,
        notification_type: str,
        period_start: date,
    ) -> bool:
        """Insert the one-per-period marker; False if it was already claimed."""
        stmt = (
            dialect_insert(self.db, _markers)
            .values(
                id=uuid.uuid4(),
                tenant_id=tenant_id,
                notification_type=notification_type,
                period_start=period_start,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(
                index_elements=["tenant_id", "notification_type", "period_start"]
            )
            .returning(_markers.c.id)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none() is not None

    async def evaluate_thresholds(
        self,
        tenant: Tenant,
        now: datetime | None = None,
    ) -> tuple[str, UsageReport] | None:
        """Claim the highest unclaimed warning threshold the tenant has crossed this month."""
        report = await self.report(tenant, now)
        peak = report.max_percent
        month_start = report.periods[PeriodType.MONTHLY].start
        for threshold, level, notification_type in WARNING_THRESHOLDS:
            if peak < threshold:
                continue
            if await self.claim_notification(tenant.id, notification_type, month_start):
                return level, report
        return None
