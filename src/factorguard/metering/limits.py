"""Usage types, tier limit lookup, and the bounded/unbounded limit type."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union

from factorguard.metering.periods import PeriodType
from factorguard.models.subscription_tier import SubscriptionTier


class UsageType(str, enum.Enum):
    CHECK = "check"
    REGISTER = "register"
    PARTY_CHECK = "party_check"
    PARTY_REGISTER = "party_register"


@dataclass(frozen=True)
class Unbounded:
    def allows(self, used: int) -> bool:
        return True

    def percent(self, used: int) -> float:
        return 0.0

    @property
    def value(self) -> None:
        return None


@dataclass(frozen=True)
class Bounded:
    value: int

    def allows(self, used: int) -> bool:
        return used < self.value

    def percent(self, used: int) -> float:
        if self.value <= 0:
            return 100.0
        return used / self.value * 100


Limit = Union[Bounded, Unbounded]


def limit_from(value: int | None) -> Limit:
    """NULL tier columns mean unbounded."""
    return Unbounded() if value is None else Bounded(value)


@dataclass(frozen=True)
class UsageColumns:
    counter: str
    daily_limit: str
    monthly_limit: str | None


USAGE_COLUMNS: dict[UsageType, UsageColumns] = {
    UsageType.CHECK: UsageColumns("check_count", "check_limit_daily", "check_limit_monthly"),
    UsageType.REGISTER: UsageColumns(
        "register_count", "register_limit_daily", "register_limit_monthly"
    ),
    # Both party counters are capped by the same daily column; no monthly cap.
    UsageType.PARTY_CHECK: UsageColumns("party_check_count", "party_query_limit_daily", None),
    UsageType.PARTY_REGISTER: UsageColumns(
        "party_register_count", "party_query_limit_daily", None
    ),
}


def tier_limit(tier: SubscriptionTier, usage_type: UsageType, period_type: PeriodType) -> Limit:
    columns = USAGE_COLUMNS[usage_type]
    column = columns.daily_limit if period_type is PeriodType.DAILY else columns.monthly_limit
    if column is None:
        return Unbounded()
    return limit_from(getattr(tier, column))
