"""Document fingerprint model — one registered L1/L2/L3 hash."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from factorguard.models.base import Base, UUIDPrimaryKeyMixin


class DocumentFingerprint(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "document_fingerprints"

    hash_value: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    disclosure_level: Mapped[int] = mapped_column(Integer, nullable=False)
    document_type: Mapped[str] = mapped_column(String(10), nullable=False, default="INV")
    funded_at: Mapped[date] = mapped_column(Date, nullable=False)
    # Set only when the owner consented to attribution
    owner_tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("tenants.id"), nullable=True, index=True
    )
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
