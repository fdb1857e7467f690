"""FastAPI application entrypoint for factorguard."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from factorguard import __version__
from factorguard.catalog import seed_catalog
from factorguard.config import settings
from factorguard.database import async_session_factory, dispose_engine, init_db
from factorguard.errors import RateLimitExceeded, RegistryError, StorageUnavailable
from factorguard.metering.ratelimit import close_redis

logger = logging.getLogger("factorguard")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown lifecycle handler."""
    logging.basicConfig(level=settings.log_level)
    logger.info("factorguard %s starting (env=%s)", __version__, settings.environment)

    if settings.environment == "dev":
        await init_db()
        async with async_session_factory() as db:
            await seed_catalog(db)
            await db.commit()
        logger.info("Dev mode: tables created via init_db() and catalogue seeded")

    yield

    await close_redis()
    await dispose_engine()
    logger.info("factorguard shut down.")


app = FastAPI(
    title="factorguard",
    version=__version__,
    description="Privacy-preserving invoice double-funding registry.",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Include API routers
# ---------------------------------------------------------------------------
from factorguard.api.invoices import router as invoices_router  # noqa: E402
from factorguard.api.parties import router as parties_router  # noqa: E402
from factorguard.api.usage import router as usage_router  # noqa: E402
from factorguard.api.catalog import router as catalog_router  # noqa: E402
from factorguard.api.tenants import router as tenants_router  # noqa: E402

app.include_router(invoices_router)
app.include_router(parties_router)
app.include_router(usage_router)
app.include_router(catalog_router)
app.include_router(tenants_router)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------
@app.get("/health", tags=["meta"])
async def health_check() -> dict:
    return {
        "status": "ok",
        "version": __version__,
        "environment": settings.environment,
    }


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------
@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimitExceeded):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(OperationalError)
async def storage_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Database unavailable: %s", exc.orig)
    err = StorageUnavailable("Registry storage is unavailable.")
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(PermissionError)
async def permission_error_handler(request: Request, exc: PermissionError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})
