"""Seed development database with the catalogue, a tenant, and an API key.

Usage:
    factorguard-admin seed
    # or: python -m factorguard.scripts.seed_dev
"""

from __future__ import annotations

import asyncio
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.catalog import seed_catalog
from factorguard.config import settings
from factorguard.database import async_session_factory
from factorguard.models.api_key import ApiKey
from factorguard.models.tenant import Tenant

# Fixed dev API key — known to local tooling
DEV_API_KEY = "fg_dev_test_key_abc123"
DEV_TENANT_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")


async def seed() -> None:
    async with async_session_factory() as db:
        tiers, types = await seed_catalog(db)
        print(f"  catalogue  {tiers} tiers, {types} document types added")
        await _seed_tenant(db)
        await _seed_api_key(db)
        await db.commit()
    print("\nSeed complete.")


async def _seed_tenant(db: AsyncSession) -> None:
    result = await db.execute(select(Tenant).where(Tenant.id == DEV_TENANT_ID))
    if result.scalar_one_or_none():
        print(f"  tenant     {DEV_TENANT_ID} already exists, skipping")
        return

    db.add(
        Tenant(
            id=DEV_TENANT_ID,
            name="factorguard Dev",
            slug="factorguard-dev",
            track_attribution=True,
        )
    )
    await db.flush()
    print(f"  tenant     {DEV_TENANT_ID} created (factorguard Dev)")


async def _seed_api_key(db: AsyncSession) -> None:
    key_hash = ApiKey.hash_key(DEV_API_KEY, settings.api_key_salt)
    result = await db.execute(select(ApiKey).where(ApiKey.key_hash == key_hash))
    if result.scalar_one_or_none():
        print("  api key    dev key already exists, skipping")
        return

    db.add(ApiKey(tenant_id=DEV_TENANT_ID, key_hash=key_hash, name="dev"))
    await db.flush()
    print(f"  api key    {DEV_API_KEY}")


if __name__ == "__main__":
    asyncio.run(seed())
