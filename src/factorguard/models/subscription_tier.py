"""Subscription tier model — per-tier quota limits (NULL = unbounded)."""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from factorguard.models.base import Base, UUIDPrimaryKeyMixin


class SubscriptionTier(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "subscription_tiers"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    check_limit_daily: Mapped[int | None] = mapped_column(Integer, nullable=True)
    check_limit_monthly: Mapped[int | None] = mapped_column(Integer, nullable=True)
    register_limit_daily: Mapped[int | None] = mapped_column(Integer, nullable=True)
    register_limit_monthly: Mapped[int | None] = mapped_column(Integer, nullable=True)
    party_query_limit_daily: Mapped[int | None] = mapped_column(Integer, nullable=True)
    party_lookback_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    notification_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notification_webhook: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notification_priority: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
