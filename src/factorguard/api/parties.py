"""Party (L0) endpoints — check, register, history."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from factorguard.api.deps import RequestContext, get_hash_chain, get_request_context
from factorguard.errors import ValidationError
from factorguard.hashchain import HashChain
from factorguard.metering.limits import UsageType
from factorguard.metering.quota import QuotaTracker
from factorguard.registry.parties import PartyRegistry

router = APIRouter(prefix="/v1/parties", tags=["parties"])


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------

class PartyIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tax_id: str = Field(max_length=64)
    country: str = Field(max_length=8)
    role: Literal["buyer", "supplier"]

    def fingerprint(self, chain: HashChain) -> str:
        value = chain.party(self.tax_id, self.country)
        if value is None:
            raise ValidationError("tax_id and country must be non-empty.")
        return value


class PartyRegisterIn(PartyIn):
    track_attribution: bool | None = None


class PartyHistoryIn(PartyIn):
    lookback_days: int | None = Field(default=None, ge=1)


class PartyCheckOut(BaseModel):
    found: bool
    status: str
    check_count: int
    register_count: int
    first_checked_at: datetime
    checked_by_others: bool
    registered_by_others: bool


class PartyRegisterOut(BaseModel):
    success: bool = True
    is_new: bool
    register_count: int
    first_registered_at: datetime


class PartyHistoryOut(BaseModel):
    found: bool
    lookback_days: int
    check_count: int
    register_count: int
    other_tenants_checked: int
    other_tenants_registered: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/check", response_model=PartyCheckOut)
async def party_check(
    payload: PartyIn,
    ctx: RequestContext = Depends(get_request_context),
    chain: HashChain = Depends(get_hash_chain),
) -> PartyCheckOut:
    fingerprint = payload.fingerprint(chain)
    await ctx.admit(UsageType.PARTY_CHECK)
    result = await PartyRegistry(ctx.db).check(
        fingerprint,
        payload.role,
        ctx.tenant.id,
        track_attribution=ctx.tenant.track_attribution,
    )
    await ctx.commit()
    return PartyCheckOut(**vars(result))


@router.post("/register", response_model=PartyRegisterOut)
async def party_register(
    payload: PartyRegisterIn,
    ctx: RequestContext = Depends(get_request_context),
    chain: HashChain = Depends(get_hash_chain),
) -> PartyRegisterOut:
    fingerprint = payload.fingerprint(chain)
    await ctx.admit(UsageType.PARTY_REGISTER)
    track = payload.track_attribution
    result = await PartyRegistry(ctx.db).register(
        fingerprint,
        payload.role,
        ctx.tenant.id,
        track_attribution=ctx.tenant.track_attribution if track is None else track,
    )
    await ctx.commit()
    return PartyRegisterOut(**vars(result))


@router.post("/history", response_model=PartyHistoryOut)
async def party_history(
    payload: PartyHistoryIn,
    ctx: RequestContext = Depends(get_request_context),
    chain: HashChain = Depends(get_hash_chain),
) -> PartyHistoryOut:
    fingerprint = payload.fingerprint(chain)
    await ctx.admit(UsageType.PARTY_CHECK)

    tier = await QuotaTracker(ctx.db).resolve_tier(ctx.tenant)
    lookback = min(payload.lookback_days or tier.party_lookback_days, tier.party_lookback_days)

    result = await PartyRegistry(ctx.db).history(
        fingerprint, payload.role, ctx.tenant.id, lookback_days=lookback
    )
    await ctx.commit()
    return PartyHistoryOut(**vars(result))
