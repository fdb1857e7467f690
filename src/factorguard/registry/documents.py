"""Document fingerprint registry — register, look up, unregister, purge."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.database import dialect_insert
from factorguard.errors import Forbidden, NotFound, UnregisterWindowExpired
from factorguard.hashchain import level_for_index
from factorguard.models.base import as_utc, utcnow
from factorguard.models.document_fingerprint import DocumentFingerprint

logger = logging.getLogger(__name__)

_table = DocumentFingerprint.__table__


@dataclass
class RegistrationResult:
    registered_at: datetime
    levels_registered: list[int] = field(default_factory=list)


def is_expired(row: DocumentFingerprint, now: datetime) -> bool:
    return row.expires_at is not None and as_utc(row.expires_at) <= now


class DocumentRegistry:
    """Persistent set of registered L1..L3 fingerprints."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def find_active(
        self,
        hashes: Sequence[str],
        now: datetime | None = None,
    ) -> dict[str, DocumentFingerprint]:
        """Map each registered, non-expired fingerprint in ``hashes`` to its row."""
        if not hashes:
            return {}
        now = now or utcnow()
        result = await self.db.execute(
            select(DocumentFingerprint)
            .where(DocumentFingerprint.hash_value.in_(list(hashes)))
            .execution_options(populate_existing=True)
        )
        return {
            row.hash_value: row
            for row in result.scalars()
            if not is_expired(row, now)
        }

    async def register(
        self,
        fingerprints: Sequence[str],
        *,
        document_type: str,
        funded_at: date,
        owner_id: uuid.UUID,
        track_attribution: bool,
        expires_in_days: int | None = None,
        now: datetime | None = None,
    ) -> RegistrationResult:
        """Insert each fingerprint unless an active row already holds it.

        Index ``i`` in ``fingerprints`` is disclosure level ``i + 1``.  A
        fingerprint whose previous registration has expired is taken over by
        the new registration.  Concurrent callers racing on one fingerprint
        leave exactly one row; the losers see the level omitted from
        ``levels_registered``.
        """
        now = now or utcnow()
        expires_at = now + timedelta(days=expires_in_days) if expires_in_days else None
        owner = owner_id if track_attribution else None

        result = RegistrationResult(registered_at=now)
        for index, fingerprint in enumerate(fingerprints):
            level = level_for_index(index)
            values = {
                "hash_value": fingerprint,
                "disclosure_level": level,
                "document_type": document_type,
                "funded_at": funded_at,
                "owner_tenant_id": owner,
                "expires_at": expires_at,
                "created_at": now,
            }
            stmt = dialect_insert(self.db, _table).values(id=uuid.uuid4(), **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["hash_value"],
                set_=values,
                where=_table.c.expires_at.is_not(None) & (_table.c.expires_at <= now),
            ).returning(_table.c.id)
            inserted = (await self.db.execute(stmt)).scalar_one_or_none()
            if inserted is not None:
                result.levels_registered.append(level)
            else:
                logger.debug("Fingerprint %s… already registered, skipping", fingerprint[:8])

        logger.info(
            "Registered levels %s (%s) for tenant %s",
            result.levels_registered,
            document_type,
            owner_id,
        )
        return result

    async def unregister(
        self,
        fingerprint: str,
        tenant_id: uuid.UUID,
        *,
        window: timedelta,
        now: datetime | None = None,
    ) -> None:
        """Remove a fingerprint the caller owns, within ``window`` of registration."""
        now = now or utcnow()
        row = (await self.find_active([fingerprint], now)).get(fingerprint)
        if row is None:
            raise NotFound("Fingerprint is not registered.")
        if row.owner_tenant_id is None or row.owner_tenant_id != tenant_id:
            raise Forbidden("Only the attributed owner can unregister this fingerprint.")
        if now - as_utc(row.created_at) > window:
            raise UnregisterWindowExpired(
                f"Fingerprints can only be unregistered within "
                f"{int(window.total_seconds() // 3600)} hours of registration."
            )

        await self.db.execute(delete(DocumentFingerprint).where(DocumentFingerprint.id == row.id))
        logger.info("Unregistered fingerprint %s… for tenant %s", fingerprint[:8], tenant_id)

    async def purge_expired(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        result = await self.db.execute(
            delete(DocumentFingerprint).where(
                DocumentFingerprint.expires_at.is_not(None),
                DocumentFingerprint.expires_at <= now,
            ).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_owned_by(self, tenant_id: uuid.UUID) -> int:
        """Account cleanup: drop every fingerprint attributed to ``tenant_id``."""
        result = await self.db.execute(
            delete(DocumentFingerprint).where(DocumentFingerprint.owner_tenant_id == tenant_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def count(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        result = await self.db.execute(
            select(func.count()).select_from(DocumentFingerprint).where(
                or_(DocumentFingerprint.expires_at.is_(None), DocumentFingerprint.expires_at > now)
            )
        )
        return result.scalar_one()
