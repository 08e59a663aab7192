"""Async SQLAlchemy engine and session factory."""

from __future__ import annotations

from pathlib import Path
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ckflow.config import get_settings

_settings = get_settings()

_db_path = _settings.database_url.replace("sqlite+aiosqlite:///", "")
if _db_path and _db_path != ":memory:":
    Path(_db_path).parent.mkdir(parents=True, exist_ok=True)

engine = create_async_engine(_settings.database_url, echo=False)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with async_session_factory() as session:
        yield session


async def create_tables(eng: AsyncEngine = engine):
    """Create every table that does not exist yet."""
    from ckflow.models import Base

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
