"""Public reference data — subscription tiers and document types."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.database import get_db
from factorguard.models.document_type import DocumentType
from factorguard.models.subscription_tier import SubscriptionTier

router = APIRouter(prefix="/v1", tags=["catalog"])


class TierOut(BaseModel):
    name: str
    display_name: str
    description: str | None
    check_limit_daily: int | None
    check_limit_monthly: int | None
    register_limit_daily: int | None
    register_limit_monthly: int | None
    party_query_limit_daily: int | None
    party_lookback_days: int
    notification_email: bool
    notification_webhook: bool

    @classmethod
    def from_model(cls, tier: SubscriptionTier) -> TierOut:
        return cls(
            name=tier.name,
            display_name=tier.display_name,
            description=tier.description,
            check_limit_daily=tier.check_limit_daily,
            check_limit_monthly=tier.check_limit_monthly,
            register_limit_daily=tier.register_limit_daily,
            register_limit_monthly=tier.register_limit_monthly,
            party_query_limit_daily=tier.party_query_limit_daily,
            party_lookback_days=tier.party_lookback_days,
            notification_email=tier.notification_email,
            notification_webhook=tier.notification_webhook,
        )


class DocumentTypeOut(BaseModel):
    code: str
    name: str
    description: str | None


@router.get("/subscription-tiers", response_model=list[TierOut])
async def list_subscription_tiers(db: AsyncSession = Depends(get_db)) -> list[TierOut]:
    result = await db.execute(
        select(SubscriptionTier)
        .where(SubscriptionTier.is_active.is_(True))
        .order_by(SubscriptionTier.display_order)
    )
    return [TierOut.from_model(t) for t in result.scalars().all()]


@router.get("/document-types", response_model=list[DocumentTypeOut])
async def list_document_types(db: AsyncSession = Depends(get_db)) -> list[DocumentTypeOut]:
    result = await db.execute(
        select(DocumentType).where(DocumentType.is_active.is_(True)).order_by(DocumentType.code)
    )
    return [
        DocumentTypeOut(code=t.code, name=t.name, description=t.description)
        for t in result.scalars().all()
    ]
