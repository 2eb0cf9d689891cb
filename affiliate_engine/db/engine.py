"""Async SQLAlchemy engine + session factory.

SQLite in development, PostgreSQL (asyncpg) in production with pool settings.
"""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config.settings import settings


def normalize_url(url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return url.replace(prefix, "postgresql+asyncpg://", 1)
    return url


def build_engine(url: str) -> AsyncEngine:
    url = normalize_url(url)
    kwargs: dict = {"echo": False, "future": True}
    if not url.startswith("sqlite"):
        kwargs.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_timeout": 30,
            "pool_recycle": 1800,  # 30 min
            "pool_pre_ping": True,
        })
    return create_async_engine(url, **kwargs)


engine = build_engine(settings.DATABASE_URL)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(target: AsyncEngine = engine) -> None:
    """Create any missing tables. Alembic owns the schema in production."""
    from affiliate_engine.db.tables import Base

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
