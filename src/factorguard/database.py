"""SQLAlchemy async engine and session setup."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from factorguard.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=(settings.environment == "dev"),
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async DB session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency for work that outlives the request session."""
    return async_session_factory


def dialect_insert(db: AsyncSession, model: Any):
    """Return an INSERT construct that supports ``ON CONFLICT`` for the bound dialect.

    Both PostgreSQL and SQLite expose ``on_conflict_do_nothing`` /
    ``on_conflict_do_update`` with the same signature.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upserts are not supported on {dialect!r}")
    return insert(model)


async def init_db() -> None:
    """Create all tables. Intended for dev/test only — use Alembic in production."""
    from factorguard.models.base import Base  # noqa: F811

    # Import all models so they register with Base.metadata
    import factorguard.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose of the connection pool."""
    await engine.dispose()
