"""Tenant profile — attribution consent and notification webhook."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from factorguard.api.deps import RequestContext, get_request_context
from factorguard.metering.quota import QuotaTracker
from factorguard.models.tenant import Tenant

router = APIRouter(prefix="/v1/tenants", tags=["tenants"])


class TenantOut(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    tier: str
    track_attribution: bool
    rate_limit_daily: int
    rate_limit_monthly: int
    notification_webhook_url: str | None

    @classmethod
    def from_model(cls, tenant: Tenant, tier_name: str) -> TenantOut:
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            tier=tier_name,
            track_attribution=tenant.track_attribution,
            rate_limit_daily=tenant.rate_limit_daily,
            rate_limit_monthly=tenant.rate_limit_monthly,
            notification_webhook_url=tenant.notification_webhook_url,
        )


class TenantUpdateIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    track_attribution: bool | None = None
    notification_webhook_url: HttpUrl | None = Field(default=None)
    clear_webhook: bool = False


@router.get("/me", response_model=TenantOut)
async def get_me(ctx: RequestContext = Depends(get_request_context)) -> TenantOut:
    await ctx.admit()
    tier = await QuotaTracker(ctx.db).resolve_tier(ctx.tenant)
    await ctx.commit()
    return TenantOut.from_model(ctx.tenant, tier.name)


@router.patch("/me", response_model=TenantOut)
async def update_me(
    payload: TenantUpdateIn,
    ctx: RequestContext = Depends(get_request_context),
) -> TenantOut:
    await ctx.admit()
    tenant = ctx.tenant
    if payload.track_attribution is not None:
        tenant.track_attribution = payload.track_attribution
    if payload.clear_webhook:
        tenant.notification_webhook_url = None
    elif payload.notification_webhook_url is not None:
        tenant.notification_webhook_url = str(payload.notification_webhook_url)
    await ctx.db.flush()

    tier = await QuotaTracker(ctx.db).resolve_tier(ctx.tenant)
    await ctx.commit()
    return TenantOut.from_model(tenant, tier.name)
