"""Tests for factorguard.client — RegistryClient requests and error mapping."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from factorguard.client import RegistryClient
from factorguard.errors import (
    Forbidden,
    InvalidCredentials,
    NotFound,
    QuotaExceeded,
    RateLimitExceeded,
    RegistryError,
    UnregisterWindowExpired,
    ValidationError,
)

RESETS_AT = datetime(2024, 3, 16, tzinfo=timezone.utc)


def _client(handler) -> RegistryClient:
    return RegistryClient(
        api_key="fg_test_key",
        base_url="https://registry.example.com/",
        transport=httpx.MockTransport(handler),
    )


def _error(exc: RegistryError):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(exc.status_code, json=exc.to_dict())

    return handler


class TestRequests:
    """Each method hits the right route with the right body."""

    def test_headers_and_base_url(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"found": False, "matched_levels": [], "details": {}})

        with _client(handler) as fg:
            result = fg.check(["ab" * 32])

        assert result["found"] is False
        request = seen[0]
        assert str(request.url) == "https://registry.example.com/v1/invoices/check"
        assert request.headers["Authorization"] == "Bearer fg_test_key"
        assert request.headers["User-Agent"].startswith("factorguard-python/")
        assert json.loads(request.content) == {"fingerprints": ["ab" * 32]}

    def test_register_optional_fields(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"success": True, "levels_registered": [1]})

        with _client(handler) as fg:
            fg.register(["ab" * 32], "2024-03-01")
            fg.register(["ab" * 32], "2024-03-01", track_attribution=False, expires_in_days=90)

        assert "track_attribution" not in bodies[0]
        assert bodies[0]["document_type"] == "INV"
        assert bodies[1]["track_attribution"] is False
        assert bodies[1]["expires_in_days"] == 90

    def test_unregister_and_usage_history(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[] if "history" in request.url.path else {"success": True})

        with _client(handler) as fg:
            fg.unregister("ab" * 32)
            fg.usage_history(months=3)

        assert seen[0].method == "DELETE"
        assert seen[0].url.path == f"/v1/invoices/{'ab' * 32}"
        assert seen[1].url.params["months"] == "3"

    def test_party_history_lookback(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"found": False})

        with _client(handler) as fg:
            fg.party_history("DE123", "DE", "supplier", lookback_days=7)

        assert bodies[0] == {"tax_id": "DE123", "country": "DE", "role": "supplier", "lookback_days": 7}


class TestErrorMapping:
    """Error bodies come back as the matching exception class."""

    @pytest.mark.parametrize(
        "exc",
        [
            ValidationError("bad"),
            NotFound("missing"),
            Forbidden("not yours"),
            UnregisterWindowExpired("too late"),
            InvalidCredentials("who are you"),
        ],
    )
    def test_simple_errors(self, exc: RegistryError) -> None:
        with _client(_error(exc)) as fg:
            with pytest.raises(type(exc)) as excinfo:
                fg.unregister("ab" * 32)
        assert excinfo.value.message == exc.message

    def test_quota_exceeded(self) -> None:
        exc = QuotaExceeded(
            "Daily register quota exceeded",
            quota_type="register",
            period_type="daily",
            current_usage=2,
            limit=2,
            resets_at=RESETS_AT,
        )
        with _client(_error(exc)) as fg:
            with pytest.raises(QuotaExceeded) as excinfo:
                fg.register(["ab" * 32], "2024-03-01")
        err = excinfo.value
        assert err.quota_type == "register"
        assert err.limit == 2
        assert err.resets_at == RESETS_AT

    def test_rate_limit_exceeded(self) -> None:
        exc = RateLimitExceeded(
            "Daily request limit exceeded",
            retry_after=120,
            quota_type="requests",
            period_type="daily",
            current_usage=1000,
            limit=1000,
            resets_at=RESETS_AT,
        )
        with _client(_error(exc)) as fg:
            with pytest.raises(RateLimitExceeded) as excinfo:
                fg.usage()
        assert excinfo.value.retry_after == 120

    def test_framework_validation_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(422, json={"detail": [{"msg": "field required"}]})

        with _client(handler) as fg:
            with pytest.raises(ValidationError):
                fg.check([])

    def test_unknown_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        with _client(handler) as fg:
            with pytest.raises(RegistryError) as excinfo:
                fg.usage()
        assert excinfo.value.status_code == 502
        assert "Bad Gateway" in excinfo.value.message
