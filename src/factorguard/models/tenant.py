"""Tenant model — a funder organisation using the registry."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from factorguard.config import settings
from factorguard.models.base import Base, UUIDPrimaryKeyMixin


class Tenant(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    # NULL means the default tier from settings
    subscription_tier_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("subscription_tiers.id"), nullable=True
    )
    # Default consent for storing this tenant's id against fingerprints
    track_attribution: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rate_limit_daily: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.default_rate_limit_daily
    )
    rate_limit_monthly: Mapped[int] = mapped_column(
        Integer, nullable=False, default=lambda: settings.default_rate_limit_monthly
    )
    notification_webhook_url: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
