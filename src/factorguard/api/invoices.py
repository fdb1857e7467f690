"""Invoice fingerprint endpoints — check, register, unregister."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, field_validator

from factorguard.api.deps import RequestContext, get_hash_chain, get_request_context
from factorguard.catalog import is_known_document_type
from factorguard.config import settings
from factorguard.errors import ValidationError
from factorguard.hashchain import FINGERPRINT_RE, HashChain
from factorguard.metering.limits import UsageType
from factorguard.normalization import (
    InvoiceFields,
    normalize_code,
    resolve_document_id,
    resolve_supplier_country,
    resolve_supplier_tax_id,
)
from factorguard.registry.documents import DocumentRegistry, RegistrationResult
from factorguard.registry.matching import MatchEngine, MatchResult

router = APIRouter(prefix="/v1/invoices", tags=["invoices"])


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------

def _validate_fingerprints(values: list[str]) -> list[str]:
    if not values:
        raise ValueError("at least one fingerprint is required")
    if len(values) > settings.max_fingerprints:
        raise ValueError(f"at most {settings.max_fingerprints} fingerprints (L1..L3) are accepted")
    cleaned = [v.strip().lower() for v in values]
    for value in cleaned:
        if not FINGERPRINT_RE.match(value):
            raise ValueError("fingerprints must be 64 hexadecimal characters")
    return cleaned


class FingerprintCheckIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    fingerprints: list[str]

    @field_validator("fingerprints")
    @classmethod
    def validate_fingerprints(cls, v: list[str]) -> list[str]:
        return _validate_fingerprints(v)


class RegistrationOptions(BaseModel):
    model_config = ConfigDict(extra="ignore")

    document_type: str = Field(default="INV", max_length=10)
    funding_date: date
    track_attribution: bool | None = None
    expires_in_days: int | None = Field(default=None, ge=1, le=3650)


class FingerprintRegisterIn(RegistrationOptions):
    fingerprints: list[str]

    @field_validator("fingerprints")
    @classmethod
    def validate_fingerprints(cls, v: list[str]) -> list[str]:
        return _validate_fingerprints(v)


class RawInvoiceIn(BaseModel):
    """Raw invoice fields.  Legacy names are accepted and resolved once here."""

    model_config = ConfigDict(extra="ignore")

    supplier_tax_id: str | None = Field(default=None, max_length=64)
    supplier_country: str | None = Field(default=None, max_length=8)
    buyer_tax_id: str | None = Field(default=None, max_length=64)
    buyer_country: str | None = Field(default=None, max_length=8)
    document_type: str | None = Field(default=None, max_length=10)
    document_id: str | None = Field(default=None, max_length=128)
    amount: float | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, max_length=8)

    # Legacy aliases
    invoice_number: str | None = Field(default=None, max_length=128)
    issuer_tax_id: str | None = Field(default=None, max_length=64)
    issuer_country: str | None = Field(default=None, max_length=8)
    invoice_date: str | None = None  # accepted, unused

    def to_fields(self) -> InvoiceFields:
        fields = InvoiceFields(
            supplier_tax_id=resolve_supplier_tax_id(self.supplier_tax_id, self.issuer_tax_id),
            supplier_country=resolve_supplier_country(self.supplier_country, self.issuer_country),
            buyer_tax_id=self.buyer_tax_id or "",
            buyer_country=self.buyer_country or "",
            document_type=self.document_type or "",
            document_id=resolve_document_id(self.document_id, self.invoice_number),
            amount=self.amount,
            currency=self.currency or "",
        )
        if not fields.normalized().has_parties():
            raise ValidationError(
                "supplier_tax_id, supplier_country, buyer_tax_id and buyer_country are required."
            )
        return fields


class RawCheckIn(RawInvoiceIn):
    include_parties: bool = True


class RawRegisterIn(RawInvoiceIn):
    funding_date: date
    track_attribution: bool | None = None
    expires_in_days: int | None = Field(default=None, ge=1, le=3650)


class MatchDetailOut(BaseModel):
    status: str
    first_seen: datetime
    registered_at: datetime | date | None = None


class CheckOut(BaseModel):
    found: bool
    matched_levels: list[str] = Field(default_factory=list)
    details: dict[str, MatchDetailOut] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: MatchResult) -> CheckOut:
        return cls(
            found=result.found,
            matched_levels=result.matched_levels,
            details={
                level: MatchDetailOut(
                    status=d.status, first_seen=d.first_seen, registered_at=d.registered_at
                )
                for level, d in result.details.items()
            },
        )


class RegisterOut(BaseModel):
    success: bool = True
    registered_at: datetime
    levels_registered: list[int]

    @classmethod
    def from_result(cls, result: RegistrationResult) -> RegisterOut:
        return cls(registered_at=result.registered_at, levels_registered=result.levels_registered)


class UnregisterOut(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

async def _register(
    ctx: RequestContext,
    fingerprints: list[str],
    document_type: str | None,
    funding_date: date,
    track_attribution: bool | None,
    expires_in_days: int | None,
) -> RegisterOut:
    code = normalize_code(document_type) or settings.default_document_type
    if not await is_known_document_type(ctx.db, code):
        raise ValidationError(f"Unknown document type {code!r}.")
    if not fingerprints:
        raise ValidationError("Not enough invoice data to derive a fingerprint.")

    await ctx.admit(UsageType.REGISTER)
    result = await DocumentRegistry(ctx.db).register(
        fingerprints,
        document_type=code,
        funded_at=funding_date,
        owner_id=ctx.tenant.id,
        track_attribution=(
            ctx.tenant.track_attribution if track_attribution is None else track_attribution
        ),
        expires_in_days=expires_in_days,
    )
    await ctx.commit()
    return RegisterOut.from_result(result)


@router.post("/check", response_model=CheckOut)
async def check_fingerprints(
    payload: FingerprintCheckIn,
    ctx: RequestContext = Depends(get_request_context),
    chain: HashChain = Depends(get_hash_chain),
) -> CheckOut:
    await ctx.admit(UsageType.CHECK)
    result = await MatchEngine(ctx.db, chain).check_fingerprints(payload.fingerprints)
    await ctx.commit()
    return CheckOut.from_result(result)


@router.post("/check-raw", response_model=CheckOut)
async def check_raw(
    payload: RawCheckIn,
    ctx: RequestContext = Depends(get_request_context),
    chain: HashChain = Depends(get_hash_chain),
) -> CheckOut:
    fields = payload.to_fields()
    await ctx.admit(UsageType.CHECK)
    result, _ = await MatchEngine(ctx.db, chain).check_raw(
        fields, include_parties=payload.include_parties
    )
    await ctx.commit()
    return CheckOut.from_result(result)


@router.post("/register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
async def register_fingerprints(
    payload: FingerprintRegisterIn,
    ctx: RequestContext = Depends(get_request_context),
) -> RegisterOut:
    return await _register(
        ctx,
        payload.fingerprints,
        payload.document_type,
        payload.funding_date,
        payload.track_attribution,
        payload.expires_in_days,
    )


@router.post("/register-raw", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
async def register_raw(
    payload: RawRegisterIn,
    ctx: RequestContext = Depends(get_request_context),
    chain: HashChain = Depends(get_hash_chain),
) -> RegisterOut:
    fields = payload.to_fields()
    fingerprints = chain.generate(fields).document_levels()
    return await _register(
        ctx,
        fingerprints,
        fields.document_type,
        payload.funding_date,
        payload.track_attribution,
        payload.expires_in_days,
    )


@router.delete("/{fingerprint}", response_model=UnregisterOut)
async def unregister(
    fingerprint: str,
    ctx: RequestContext = Depends(get_request_context),
) -> UnregisterOut:
    fingerprint = fingerprint.strip().lower()
    if not FINGERPRINT_RE.match(fingerprint):
        raise ValidationError("Fingerprint must be 64 hexadecimal characters.")

    await ctx.admit()
    await DocumentRegistry(ctx.db).unregister(
        fingerprint,
        ctx.tenant.id,
        window=timedelta(hours=settings.unregister_window_hours),
    )
    await ctx.commit()
    return UnregisterOut()
