"""Tests for party endpoints — /v1/parties/{check,register,history}."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.models.tenant import Tenant
from tests.conftest import get_tier, make_api_key, make_tenant

SUPPLIER = {"tax_id": "DE123456789", "country": "DE", "role": "supplier"}


@pytest.mark.asyncio
async def test_first_check_is_new(client: AsyncClient, auth: dict):
    resp = await client.post("/v1/parties/check", json=SUPPLIER, headers=auth)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["found"] is False
    assert body["status"] == "new"
    assert body["check_count"] == 1


@pytest.mark.asyncio
async def test_check_seen_by_another_tenant(client: AsyncClient, auth: dict, other_auth: dict):
    await client.post("/v1/parties/check", json=SUPPLIER, headers=auth)

    resp = await client.post("/v1/parties/check", json=SUPPLIER, headers=other_auth)
    body = resp.json()
    assert body["found"] is True
    assert body["status"] == "checked"
    assert body["check_count"] == 2
    assert body["checked_by_others"] is True
    assert body["registered_by_others"] is False


@pytest.mark.asyncio
async def test_roles_are_tracked_separately(client: AsyncClient, auth: dict):
    await client.post("/v1/parties/register", json=SUPPLIER, headers=auth)
    resp = await client.post("/v1/parties/check", json={**SUPPLIER, "role": "buyer"}, headers=auth)
    assert resp.json()["status"] == "new"


@pytest.mark.asyncio
async def test_register_counts(client: AsyncClient, auth: dict, other_auth: dict):
    first = await client.post("/v1/parties/register", json=SUPPLIER, headers=auth)
    assert first.status_code == 200, first.text
    assert first.json()["is_new"] is True

    second = await client.post("/v1/parties/register", json=SUPPLIER, headers=other_auth)
    body = second.json()
    assert body["is_new"] is False
    assert body["register_count"] == 2
    assert body["first_registered_at"] == first.json()["first_registered_at"]

    resp = await client.post("/v1/parties/check", json=SUPPLIER, headers=other_auth)
    assert resp.json()["status"] == "registered"
    assert resp.json()["registered_by_others"] is True


@pytest.mark.asyncio
async def test_tax_id_formatting_is_ignored(client: AsyncClient, auth: dict):
    await client.post("/v1/parties/register", json=SUPPLIER, headers=auth)
    resp = await client.post(
        "/v1/parties/check",
        json={"tax_id": " de-123.456.789 ", "country": "de", "role": "supplier"},
        headers=auth,
    )
    assert resp.json()["status"] == "registered"


@pytest.mark.asyncio
async def test_invalid_role(client: AsyncClient, auth: dict):
    resp = await client.post("/v1/parties/check", json={**SUPPLIER, "role": "broker"}, headers=auth)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_empty_tax_id(client: AsyncClient, auth: dict):
    resp = await client.post("/v1/parties/check", json={**SUPPLIER, "tax_id": "--"}, headers=auth)
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_history_unknown_party(client: AsyncClient, auth: dict):
    resp = await client.post("/v1/parties/history", json=SUPPLIER, headers=auth)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["found"] is False
    assert body["lookback_days"] == 365


@pytest.mark.asyncio
async def test_history_reports_other_tenants(client: AsyncClient, auth: dict, other_auth: dict):
    await client.post("/v1/parties/check", json=SUPPLIER, headers=other_auth)
    await client.post("/v1/parties/register", json=SUPPLIER, headers=other_auth)

    resp = await client.post("/v1/parties/history", json=SUPPLIER, headers=auth)
    body = resp.json()
    assert body["found"] is True
    # Registering an already checked party does not count as another check.
    assert body["check_count"] == 1
    assert body["register_count"] == 1
    assert body["other_tenants_checked"] == 1
    assert body["other_tenants_registered"] == 1

    resp = await client.post("/v1/parties/history", json=SUPPLIER, headers=other_auth)
    assert resp.json()["other_tenants_checked"] == 0


@pytest.mark.asyncio
async def test_history_lookback_capped_by_tier(client: AsyncClient, db_session: AsyncSession):
    tenant = await make_tenant(db_session, "small-funder", tier=await get_tier(db_session, "free"))
    key = await make_api_key(db_session, tenant, "fg_small_key_123")
    headers = {"Authorization": f"Bearer {key}"}

    resp = await client.post(
        "/v1/parties/history", json={**SUPPLIER, "lookback_days": 400}, headers=headers
    )
    assert resp.json()["lookback_days"] == 30

    resp = await client.post(
        "/v1/parties/history", json={**SUPPLIER, "lookback_days": 7}, headers=headers
    )
    assert resp.json()["lookback_days"] == 7


@pytest.mark.asyncio
async def test_party_queries_share_the_daily_limit(client: AsyncClient, db_session: AsyncSession):
    """The free tier allows ten party queries a day across check and history."""
    tenant: Tenant = await make_tenant(
        db_session, "small-funder", tier=await get_tier(db_session, "free")
    )
    key = await make_api_key(db_session, tenant, "fg_small_key_123")
    headers = {"Authorization": f"Bearer {key}"}

    for _ in range(5):
        await client.post("/v1/parties/check", json=SUPPLIER, headers=headers)
        await client.post("/v1/parties/history", json=SUPPLIER, headers=headers)

    resp = await client.post("/v1/parties/check", json=SUPPLIER, headers=headers)
    assert resp.status_code == 429
    body = resp.json()
    assert body["error"] == "quota_exceeded"
    assert body["quota_type"] == "party_check"
    assert body["limit"] == 10
