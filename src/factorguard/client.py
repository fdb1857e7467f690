"""factorguard client — thin synchronous wrapper over the HTTP API.

Usage::

    from factorguard.client import RegistryClient

    with RegistryClient(api_key="fg_...", base_url="https://registry.example.com") as fg:
        invoice = dict(
            supplier_tax_id="DE123456", supplier_country="DE",
            buyer_tax_id="FR998877", buyer_country="FR",
            document_id="INV-2024-001", amount=1500.0, currency="EUR",
        )
        result = fg.check_raw(**invoice)
        if not result["found"]:
            fg.register_raw(funding_date="2024-03-01", **invoice)

Error responses are raised as the matching ``factorguard.errors`` class.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

import httpx

from factorguard import __version__
from factorguard.errors import (
    Forbidden,
    InvalidCredentials,
    NotFound,
    QuotaExceeded,
    RateLimitExceeded,
    RegistryError,
    StorageUnavailable,
    UnregisterWindowExpired,
    ValidationError,
)

logger = logging.getLogger("factorguard.client")

_SIMPLE_ERRORS: dict[str, type[RegistryError]] = {
    cls.code: cls
    for cls in (
        ValidationError,
        NotFound,
        Forbidden,
        UnregisterWindowExpired,
        InvalidCredentials,
        StorageUnavailable,
    )
}


def _error_from_response(resp: httpx.Response) -> RegistryError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    code = body.get("error")
    message = body.get("message") or str(body.get("detail") or resp.text[:200])

    if code in (QuotaExceeded.code, RateLimitExceeded.code):
        detail = {
            "quota_type": body.get("quota_type", ""),
            "period_type": body.get("period_type", ""),
            "current_usage": body.get("current_usage", 0),
            "limit": body.get("limit", 0),
            "resets_at": datetime.fromisoformat(body["resets_at"]),
        }
        if code == RateLimitExceeded.code:
            return RateLimitExceeded(message, retry_after=body.get("retry_after", 0), **detail)
        return QuotaExceeded(message, **detail)

    if code in _SIMPLE_ERRORS:
        return _SIMPLE_ERRORS[code](message)
    if resp.status_code == 422:
        return ValidationError(message)

    err = RegistryError(message)
    err.status_code = resp.status_code
    return err


class RegistryClient:
    """Synchronous client for one tenant's API key."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "http://localhost:8000",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "User-Agent": f"factorguard-python/{__version__}",
            },
        )

    def __enter__(self) -> RegistryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = self._http.request(method, path, **kwargs)
        if resp.is_success:
            return resp.json()
        logger.debug("%s %s failed (status=%d)", method, path, resp.status_code)
        raise _error_from_response(resp)

    # --- invoices ---------------------------------------------------------

    def check(self, fingerprints: list[str]) -> dict[str, Any]:
        return self._request("POST", "/v1/invoices/check", json={"fingerprints": fingerprints})

    def check_raw(self, *, include_parties: bool = True, **fields: Any) -> dict[str, Any]:
        payload = {**fields, "include_parties": include_parties}
        return self._request("POST", "/v1/invoices/check-raw", json=payload)

    def register(
        self,
        fingerprints: list[str],
        funding_date: date | str,
        *,
        document_type: str = "INV",
        track_attribution: bool | None = None,
        expires_in_days: int | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fingerprints": fingerprints,
            "funding_date": str(funding_date),
            "document_type": document_type,
        }
        if track_attribution is not None:
            payload["track_attribution"] = track_attribution
        if expires_in_days is not None:
            payload["expires_in_days"] = expires_in_days
        return self._request("POST", "/v1/invoices/register", json=payload)

    def register_raw(self, funding_date: date | str, **fields: Any) -> dict[str, Any]:
        payload = {**fields, "funding_date": str(funding_date)}
        return self._request("POST", "/v1/invoices/register-raw", json=payload)

    def unregister(self, fingerprint: str) -> dict[str, Any]:
        return self._request("DELETE", f"/v1/invoices/{fingerprint}")

    # --- parties ----------------------------------------------------------

    def party_check(self, tax_id: str, country: str, role: str) -> dict[str, Any]:
        payload = {"tax_id": tax_id, "country": country, "role": role}
        return self._request("POST", "/v1/parties/check", json=payload)

    def party_register(
        self,
        tax_id: str,
        country: str,
        role: str,
        *,
        track_attribution: bool | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"tax_id": tax_id, "country": country, "role": role}
        if track_attribution is not None:
            payload["track_attribution"] = track_attribution
        return self._request("POST", "/v1/parties/register", json=payload)

    def party_history(
        self,
        tax_id: str,
        country: str,
        role: str,
        *,
        lookback_days: int | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"tax_id": tax_id, "country": country, "role": role}
        if lookback_days is not None:
            payload["lookback_days"] = lookback_days
        return self._request("POST", "/v1/parties/history", json=payload)

    # --- usage ------------------------------------------------------------

    def usage(self) -> dict[str, Any]:
        return self._request("GET", "/v1/usage")

    def usage_history(self, months: int = 6) -> list[dict[str, Any]]:
        return self._request("GET", "/v1/usage/history", params={"months": months})
