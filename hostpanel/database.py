"""Database connection and session management."""

from typing import AsyncGenerator

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from hostpanel.config import settings


def _async_url(url: str) -> str:
    """Map a plain PostgreSQL URL onto the asyncpg driver."""
    return url.replace("postgresql://", "postgresql+asyncpg://")


async_database_url = _async_url(settings.DATABASE_URL)

engine_kwargs = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
if not async_database_url.startswith("sqlite"):
    engine_kwargs.update(pool_size=10, max_overflow=20)

async_engine = create_async_engine(async_database_url, **engine_kwargs)

# Create async session factory
async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def create_db_and_tables() -> None:
    """Create all database tables. Used for testing and initial setup."""
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session for FastAPI endpoints."""
    async with async_session_maker() as session:
        yield session
