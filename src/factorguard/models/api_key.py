"""API key model — salted key digests for tenant authentication."""

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from factorguard.models.base import Base, UUIDPrimaryKeyMixin

KEY_PREFIX = "fg_"


class ApiKey(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "api_keys"

    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    key_hash: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="default")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    @staticmethod
    def generate_key() -> str:
        """Generate a new API key in the format ``fg_<hex>``."""
        return f"{KEY_PREFIX}{secrets.token_hex(24)}"

    @staticmethod
    def hash_key(raw_key: str, salt: str) -> str:
        """Produce a SHA-256 hash of the raw key with the given salt."""
        return hashlib.sha256(f"{salt}:{raw_key}".encode()).hexdigest()
