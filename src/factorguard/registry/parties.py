"""Party registry — L0 supplier/buyer activity counters.

Rows are keyed by (hash_value, role).  The same tax id seen as a supplier and
as a buyer is tracked separately.  All counter updates are single SQL
statements (``col = col + 1``) so concurrent checks never lose increments.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.database import dialect_insert
from factorguard.models.base import as_utc, utcnow
from factorguard.models.party_fingerprint import PartyFingerprint

logger = logging.getLogger(__name__)

_table = PartyFingerprint.__table__


@dataclass
class PartyCheckResult:
    found: bool
    status: str  # new | checked | registered
    check_count: int
    register_count: int
    first_checked_at: datetime
    checked_by_others: bool = False
    registered_by_others: bool = False


@dataclass
class PartyRegisterResult:
    is_new: bool
    register_count: int
    first_registered_at: datetime


@dataclass
class PartyHistoryResult:
    found: bool
    lookback_days: int
    check_count: int = 0
    register_count: int = 0
    other_tenants_checked: int = 0
    other_tenants_registered: int = 0


def _by_other(first_actor: uuid.UUID | None, caller: uuid.UUID) -> bool:
    return first_actor is not None and first_actor != caller


class PartyRegistry:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def probe(self, hash_value: str, role: str) -> PartyFingerprint | None:
        """Read-only lookup."""
        result = await self.db.execute(
            select(PartyFingerprint)
            .where(PartyFingerprint.hash_value == hash_value, PartyFingerprint.role == role)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _insert_if_absent(self, values: dict) -> bool:
        stmt = (
            dialect_insert(self.db, _table)
            .values(id=uuid.uuid4(), **values)
            .on_conflict_do_nothing(index_elements=["hash_value", "role"])
            .returning(_table.c.id)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none() is not None

    async def check(
        self,
        hash_value: str,
        role: str,
        tenant_id: uuid.UUID,
        *,
        track_attribution: bool,
        now: datetime | None = None,
    ) -> PartyCheckResult:
        now = now or utcnow()
        attributed = tenant_id if track_attribution else None

        existing = await self.probe(hash_value, role)
        if existing is None:
            created = await self._insert_if_absent(
                {
                    "hash_value": hash_value,
                    "role": role,
                    "first_checked_at": now,
                    "last_checked_at": now,
                    "check_count": 1,
                    "register_count": 0,
                    "first_checker_tenant_id": attributed,
                    "created_at": now,
                }
            )
            if created:
                return PartyCheckResult(
                    found=False,
                    status="new",
                    check_count=1,
                    register_count=0,
                    first_checked_at=now,
                )
            # Lost the insert race; the row exists now.
            existing = await self.probe(hash_value, role)

        status = "registered" if existing.register_count > 0 else "checked"
        checked_by_others = _by_other(existing.first_checker_tenant_id, tenant_id)
        registered_by_others = _by_other(existing.first_registerer_tenant_id, tenant_id)

        result = await self.db.execute(
            update(_table)
            .where(_table.c.id == existing.id)
            .values(
                check_count=_table.c.check_count + 1,
                last_checked_at=now,
            )
            .returning(_table.c.check_count, _table.c.register_count)
        )
        check_count, register_count = result.one()

        return PartyCheckResult(
            found=True,
            status=status,
            check_count=check_count,
            register_count=register_count,
            first_checked_at=as_utc(existing.first_checked_at),
            checked_by_others=checked_by_others,
            registered_by_others=registered_by_others,
        )

    async def register(
        self,
        hash_value: str,
        role: str,
        tenant_id: uuid.UUID,
        *,
        track_attribution: bool,
        now: datetime | None = None,
    ) -> PartyRegisterResult:
        now = now or utcnow()
        attributed = tenant_id if track_attribution else None

        created = await self._insert_if_absent(
            {
                "hash_value": hash_value,
                "role": role,
                "first_checked_at": now,
                "last_checked_at": now,
                "first_registered_at": now,
                "last_registered_at": now,
                "check_count": 1,
                "register_count": 1,
                "first_checker_tenant_id": attributed,
                "first_registerer_tenant_id": attributed,
                "created_at": now,
            }
        )
        if created:
            logger.info("New %s party registered by tenant %s", role, tenant_id)
            return PartyRegisterResult(is_new=True, register_count=1, first_registered_at=now)

        result = await self.db.execute(
            update(_table)
            .where(_table.c.hash_value == hash_value, _table.c.role == role)
            .values(
                register_count=_table.c.register_count + 1,
                last_registered_at=now,
                first_registered_at=func.coalesce(_table.c.first_registered_at, now),
                first_registerer_tenant_id=func.coalesce(
                    _table.c.first_registerer_tenant_id, attributed
                ),
            )
            .returning(_table.c.register_count, _table.c.first_registered_at)
        )
        register_count, first_registered_at = result.one()
        return PartyRegisterResult(
            is_new=False,
            register_count=register_count,
            first_registered_at=as_utc(first_registered_at),
        )

    async def history(
        self,
        hash_value: str,
        role: str,
        tenant_id: uuid.UUID,
        *,
        lookback_days: int,
        now: datetime | None = None,
    ) -> PartyHistoryResult:
        """Activity summary, visible only if the party was touched within the lookback.

        Other-tenant counts are approximated from the first checker and first
        registerer: when either is a different tenant the full counter is
        attributed to others.
        """
        now = now or utcnow()
        row = await self.probe(hash_value, role)
        if row is None:
            return PartyHistoryResult(found=False, lookback_days=lookback_days)

        cutoff = now - timedelta(days=lookback_days)
        recent = as_utc(row.last_checked_at) >= cutoff or (
            row.last_registered_at is not None and as_utc(row.last_registered_at) >= cutoff
        )
        if not recent:
            return PartyHistoryResult(found=False, lookback_days=lookback_days)

        return PartyHistoryResult(
            found=True,
            lookback_days=lookback_days,
            check_count=row.check_count,
            register_count=row.register_count,
            other_tenants_checked=(
                row.check_count if _by_other(row.first_checker_tenant_id, tenant_id) else 0
            ),
            other_tenants_registered=(
                row.register_count if _by_other(row.first_registerer_tenant_id, tenant_id) else 0
            ),
        )
