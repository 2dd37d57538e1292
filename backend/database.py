"""
Database connection and session management for the IT Asset Tracker.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel.ext.asyncio.session import AsyncSession

from config import DATABASE_URL, SQL_ECHO


engine_options = {
    "echo": SQL_ECHO,
    "future": True,
    "pool_pre_ping": True,  # Verify connections before using
}

# SQLite (tests, local runs) gets a fresh connection per checkout so sessions
# opened from different event loops never share one
if DATABASE_URL.startswith("sqlite"):
    engine_options["poolclass"] = NullPool

# Create async engine
engine = create_async_engine(DATABASE_URL, **engine_options)

# Create async session maker
async_session = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI to get database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()
