"""Usage models — per-period counters and one-shot threshold markers."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from factorguard.models.base import Base, UUIDPrimaryKeyMixin, utcnow


class UsageRecord(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "usage_records"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "period_type", "period_start", name="uq_usage_records_tenant_period"
        ),
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    period_type: Mapped[str] = mapped_column(String(10), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    check_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    register_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    party_check_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    party_register_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quota_exceeded_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class UsageNotification(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "usage_notifications"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "notification_type",
            "period_start",
            name="uq_usage_notifications_tenant_type_period",
        ),
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(32), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
