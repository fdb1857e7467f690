"""Calendar periods that usage counters and rate-limit keys are bucketed by."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from factorguard.config import settings
from factorguard.models.base import utcnow


class PeriodType(str, enum.Enum):
    DAILY = "daily"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class Period:
    type: PeriodType
    start: date
    end: date
    tz: tzinfo

    @property
    def resets_at(self) -> datetime:
        return datetime.combine(self.end, time.min, tzinfo=self.tz)

    def seconds_remaining(self, now: datetime) -> int:
        remaining = (self.resets_at - now).total_seconds()
        return max(1, int(remaining + 0.999))


def period_zone(name: str | None = None) -> tzinfo:
    name = name or settings.period_timezone
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def current_period(
    period_type: PeriodType,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> Period:
    tz = tz or period_zone()
    today = (now or utcnow()).astimezone(tz).date()
    if period_type is PeriodType.DAILY:
        return Period(period_type, today, today + timedelta(days=1), tz)
    start = today.replace(day=1)
    end = (start + timedelta(days=32)).replace(day=1)
    return Period(period_type, start, end, tz)
