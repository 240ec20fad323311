"""
ProspectFlow — async SQLAlchemy setup for the prospect store.

SQLite (aiosqlite) is the default backend. An in-memory SQLite URL gets a
single shared connection so every session sees the same tables.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from prospectflow.config import settings

SERVER_POOL = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_recycle": 300,
}


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Engine with pool options that suit the backend behind ``url``."""
    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, **SERVER_POOL)

    options = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in url:
        options["poolclass"] = StaticPool
    return create_async_engine(url, echo=echo, **options)


engine = build_engine(settings.database_url)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """FastAPI dependency — yields an async session."""
    async with async_session() as session:
        yield session


async def init_db() -> None:
    """Create the prospect tables if missing."""
    import prospectflow.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
