"""Reference data: default subscription tiers and document types.

Definitions live in ``data/catalog.yaml``.  ``seed_catalog`` is idempotent:
existing rows (matched by tier name / document-type code) are left alone.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.models.document_type import DocumentType
from factorguard.models.subscription_tier import SubscriptionTier

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).resolve().parent / "data" / "catalog.yaml"


def load_catalog(path: Path = CATALOG_PATH) -> dict[str, list[dict[str, Any]]]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return {
        "subscription_tiers": data.get("subscription_tiers", []),
        "document_types": data.get("document_types", []),
    }


async def seed_catalog(db: AsyncSession, path: Path = CATALOG_PATH) -> tuple[int, int]:
    """Insert missing tiers and document types. Returns (tiers_added, types_added)."""
    catalog = load_catalog(path)

    existing_tiers = set((await db.execute(select(SubscriptionTier.name))).scalars())
    tiers_added = 0
    for spec in catalog["subscription_tiers"]:
        if spec["name"] in existing_tiers:
            continue
        db.add(SubscriptionTier(**spec))
        tiers_added += 1

    existing_types = set((await db.execute(select(DocumentType.code))).scalars())
    types_added = 0
    for spec in catalog["document_types"]:
        if spec["code"] in existing_types:
            continue
        db.add(DocumentType(**spec))
        types_added += 1

    await db.flush()
    if tiers_added or types_added:
        logger.info("Seeded %d tiers and %d document types", tiers_added, types_added)
    return tiers_added, types_added


async def is_known_document_type(db: AsyncSession, code: str) -> bool:
    result = await db.execute(
        select(DocumentType.code).where(DocumentType.code == code, DocumentType.is_active.is_(True))
    )
    return result.scalar_one_or_none() is not None
