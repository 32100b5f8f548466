"""Database engine and session factory for the persistent meeting store."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..models.base import Base


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for ``database_url``."""

    return create_async_engine(database_url, echo=False, pool_pre_ping=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_schema(engine: AsyncEngine) -> None:
    """Create any missing tables."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
