"""Database engines for background tasks."""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from payplan.config.settings import settings


def create_task_engine() -> AsyncEngine:
    """Create engine for a single task run (NullPool, no cross-loop reuse)."""
    return create_async_engine(
        settings.async_database_url,
        echo=False,
        poolclass=NullPool,
    )


def create_task_session_maker(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Create session maker for a task."""
    if engine is None:
        engine = create_task_engine()
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
