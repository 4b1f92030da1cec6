"""
Trade Dashboard - Database Connection

One async engine per process; routes get a session per request through
the get_db dependency.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from dashboard_api.config import settings

ASYNC_DRIVER = "postgresql+asyncpg"


def async_database_url(url: str) -> str:
    """Rewrite a plain Postgres URL (postgres:// or postgresql://) for asyncpg."""
    scheme, sep, rest = url.partition("://")
    if not sep or "+" in scheme:
        return url
    if scheme in ("postgres", "postgresql"):
        return f"{ASYNC_DRIVER}://{rest}"
    return url


engine = create_async_engine(
    async_database_url(settings.database_url),
    echo=settings.db_echo,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for ORM models
Base = declarative_base()


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Create the dashboard schema and any missing tables."""
    # Register ORM tables on Base.metadata before create_all
    import dashboard_api.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {settings.db_schema}"))
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db():
    """Close pooled connections on shutdown."""
    await engine.dispose()
