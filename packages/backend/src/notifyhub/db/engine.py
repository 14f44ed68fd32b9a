"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession per unit of work. The notification store and the job
journal each open short-lived sessions from the same factory.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from notifyhub.config import settings
from notifyhub.db.models import Base

# Connection pool sized for the worker pool plus API traffic.
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.worker_concurrency,
    max_overflow=10,
)

# Session factory — each request / job gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create any missing tables."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
