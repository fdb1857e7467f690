"""Party fingerprint model — L0 supplier/buyer activity counters."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from factorguard.models.base import Base, UUIDPrimaryKeyMixin, utcnow

ROLES = ("buyer", "supplier")


class PartyFingerprint(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "party_fingerprints"
    __table_args__ = (
        UniqueConstraint("hash_value", "role", name="uq_party_fingerprints_hash_role"),
    )

    hash_value: Mapped[str] = mapped_column(String(64), nullable=False)
    role: Mapped[str] = mapped_column(String(10), nullable=False)

    first_checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    first_registered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_registered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    check_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    register_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    first_checker_tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("tenants.id"), nullable=True
    )
    first_registerer_tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("tenants.id"), nullable=True
    )
