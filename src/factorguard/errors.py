"""Error taxonomy shared by the registry, metering layer, and HTTP surface.

Every error carries a stable machine-readable ``code`` and the HTTP status it
maps to.  ``main.py`` registers a single exception handler that renders
``to_dict()`` as the response body.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class RegistryError(Exception):
    """Base class for all factorguard errors."""

    code = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(RegistryError, ValueError):
    code = "validation_error"
    status_code = 422


class NotFound(RegistryError):
    code = "not_found"
    status_code = 404


class Forbidden(RegistryError, PermissionError):
    code = "forbidden"
    status_code = 403


class UnregisterWindowExpired(RegistryError):
    code = "unregister_window_expired"
    status_code = 410


class InvalidCredentials(RegistryError):
    code = "invalid_credentials"
    status_code = 401


class StorageUnavailable(RegistryError):
    code = "storage_unavailable"
    status_code = 503


class LimitExceeded(RegistryError):
    """A bounded counter was already at its limit for the current period."""

    status_code = 429

    def __init__(
        self,
        message: str,
        *,
        quota_type: str,
        period_type: str,
        current_usage: int,
        limit: int,
        resets_at: datetime,
    ) -> None:
        super().__init__(message)
        self.quota_type = quota_type
        self.period_type = period_type
        self.current_usage = current_usage
        self.limit = limit
        self.resets_at = resets_at

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body.update(
            quota_type=self.quota_type,
            period_type=self.period_type,
            current_usage=self.current_usage,
            limit=self.limit,
            resets_at=self.resets_at.isoformat(),
        )
        return body


class QuotaExceeded(LimitExceeded):
    """Tier quota breach for one usage type in one period."""

    code = "quota_exceeded"


class RateLimitExceeded(LimitExceeded):
    """Request-volume throttle breach; carries the seconds until the counter expires."""

    code = "rate_limit_exceeded"

    def __init__(self, message: str, *, retry_after: int, **detail: Any) -> None:
        super().__init__(message, **detail)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["retry_after"] = self.retry_after
        return body
