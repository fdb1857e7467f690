"""Webhook delivery — fire-and-forget usage-threshold notifications.

Runs after the response has been sent, in its own DB session.  Nothing here
raises: failures are logged and swallowed because the usage that triggered
the check is already committed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.config import settings
from factorguard.metering.limits import UsageType
from factorguard.metering.periods import PeriodType
from factorguard.metering.quota import UPGRADE_URL, QuotaTracker, UsageReport
from factorguard.models.tenant import Tenant

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


def _format_usage_warning(tenant: Tenant, level: str, report: UsageReport) -> dict[str, Any]:
    """Format a threshold crossing as a plain JSON payload."""
    usage = {}
    for usage_type in (UsageType.CHECK, UsageType.REGISTER):
        for period_type in PeriodType:
            usage[f"{usage_type.value}_{period_type.value}"] = {
                "used": report.count(usage_type, period_type),
                "limit": report.limit(usage_type, period_type).value,
            }
    return {
        "event": "usage_warning",
        "tenant_id": str(tenant.id),
        "level": level,
        "percent": round(report.max_percent, 1),
        "message": report.warning_message,
        "tier": report.tier.name,
        "usage": usage,
        "upgrade_url": UPGRADE_URL,
    }


async def send_webhook(
    url: str,
    payload: dict[str, Any],
    timeout: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """POST a JSON payload to a webhook URL.

    Returns True on success (2xx), False otherwise.  Never raises — failures
    are logged and swallowed because webhook delivery is fire-and-forget.
    """
    _timeout = timeout or settings.webhook_timeout_seconds
    try:
        async with httpx.AsyncClient(timeout=_timeout, transport=transport) as client:
            resp = await client.post(url, json=payload)
            if resp.is_success:
                logger.info("Webhook delivered to %s (status=%d)", url, resp.status_code)
                return True
            logger.warning(
                "Webhook delivery failed to %s (status=%d body=%s)",
                url,
                resp.status_code,
                resp.text[:200],
            )
            return False
    except Exception:
        logger.exception("Webhook delivery error for %s", url)
        return False


async def notify_usage_thresholds(
    session_factory: SessionFactory,
    tenant_id: uuid.UUID,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str | None:
    """Warn a tenant once per month per threshold crossed.

    Intended for ``BackgroundTasks.add_task``.  Returns the level that was
    claimed, if any.
    """
    try:
        async with session_factory() as db:
            tenant = (
                await db.execute(select(Tenant).where(Tenant.id == tenant_id))
            ).scalar_one_or_none()
            if tenant is None:
                return None

            claimed = await QuotaTracker(db).evaluate_thresholds(tenant)
            await db.commit()
    except Exception:
        logger.exception("Usage threshold check failed for tenant %s", tenant_id)
        return None

    if claimed is None:
        return None

    level, report = claimed
    if not (report.tier.notification_webhook and tenant.notification_webhook_url):
        logger.info(
            "Tenant %s crossed %s usage threshold (no webhook channel)", tenant_id, level
        )
        return level

    await send_webhook(
        tenant.notification_webhook_url,
        _format_usage_warning(tenant, level, report),
        transport=transport,
    )
    return level
