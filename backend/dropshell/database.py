"""Async SQLAlchemy engine and session factory.

Only used when METADATA_STORE is "database". Usage:
    from dropshell.database import build_engine, build_session_factory

    engine = build_engine(settings.DATABASE_URL)
    async_session = build_session_factory(engine)
    async with async_session() as session:
        ...
"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine. SQLite picks its own pool, so sizing is skipped there."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False)
    return create_async_engine(
        database_url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
