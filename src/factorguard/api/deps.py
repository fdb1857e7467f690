"""Shared FastAPI dependencies — authentication, hash chain, metering."""

from __future__ import annotations

from functools import lru_cache

import redis.asyncio as aioredis
from fastapi import BackgroundTasks, Depends, Header, Response
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from factorguard.config import settings
from factorguard.database import get_db, get_session_factory
from factorguard.errors import InvalidCredentials, QuotaExceeded
from factorguard.hashchain import HashChain
from factorguard.metering.limits import UsageType
from factorguard.metering.quota import QuotaTracker
from factorguard.metering.ratelimit import RateLimiter, get_redis
from factorguard.models.api_key import KEY_PREFIX, ApiKey
from factorguard.models.base import utcnow
from factorguard.models.tenant import Tenant
from factorguard.webhooks.sender import notify_usage_thresholds


@lru_cache
def get_hash_chain() -> HashChain:
    """The process-wide fingerprint generator, keyed once from settings."""
    return HashChain(settings.hmac_key)


async def get_current_tenant(
    authorization: str | None = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> Tenant:
    """Validate the ``Authorization: Bearer fg_...`` header and return the tenant.

    Raises ``InvalidCredentials`` if the key is missing, malformed, or
    inactive, or if its tenant is deactivated.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise InvalidCredentials("Authorization header must start with 'Bearer '.")

    raw_key = authorization.removeprefix("Bearer ").strip()
    if not raw_key.startswith(KEY_PREFIX):
        raise InvalidCredentials(f"Invalid API key format. Keys must start with '{KEY_PREFIX}'.")

    key_hash = ApiKey.hash_key(raw_key, settings.api_key_salt)

    result = await db.execute(
        select(ApiKey).where(ApiKey.key_hash == key_hash, ApiKey.is_active.is_(True))
    )
    api_key = result.scalar_one_or_none()

    if api_key is None:
        raise InvalidCredentials("Invalid or inactive API key.")

    await db.execute(
        update(ApiKey)
        .where(ApiKey.id == api_key.id)
        .values(last_used_at=utcnow())
    )

    result = await db.execute(select(Tenant).where(Tenant.id == api_key.tenant_id))
    tenant = result.scalar_one_or_none()

    if tenant is None or not tenant.is_active:
        raise InvalidCredentials("Tenant account is not active.")

    return tenant


class RequestContext:
    """Per-request handle on the caller, its session, and the metering layer.

    Endpoints call ``admit`` once, after the request body has been validated,
    so malformed requests never consume rate-limit or quota allowance, and
    finish with ``commit`` before returning.
    """

    def __init__(
        self,
        tenant: Tenant,
        db: AsyncSession,
        limiter: RateLimiter,
        response: Response,
        background_tasks: BackgroundTasks,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.tenant = tenant
        self.db = db
        self.limiter = limiter
        self.response = response
        self.background_tasks = background_tasks
        self.session_factory = session_factory
        self._metered = False

    async def admit(self, usage_type: UsageType | None = None) -> None:
        status = await self.limiter.hit(self.tenant)
        self.response.headers.update(status.headers())
        if usage_type is None:
            return

        try:
            await QuotaTracker(self.db).admit(self.tenant, usage_type)
        except QuotaExceeded:
            # The rejected attempt is still counted.
            await self.db.commit()
            raise

        self._metered = True

    async def commit(self) -> None:
        """Commit the request's work, then queue the threshold check.

        Background tasks run before ``get_db`` tears down, and the check reads
        usage through its own session.
        """
        await self.db.commit()
        if self._metered:
            self.background_tasks.add_task(
                notify_usage_thresholds, self.session_factory, self.tenant.id
            )


async def get_request_context(
    response: Response,
    background_tasks: BackgroundTasks,
    tenant: Tenant = Depends(get_current_tenant),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> RequestContext:
    return RequestContext(
        tenant=tenant,
        db=db,
        limiter=RateLimiter(redis),
        response=response,
        background_tasks=background_tasks,
        session_factory=session_factory,
    )
