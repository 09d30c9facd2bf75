"""Async Session Factory — provides async DB sessions for direct usage outside FastAPI.

Invariants:
    - Engine options come from infrastructure.database.engine_options (same
      lock timeouts as the running service)
    - Meant for scripts, migrations, and test fixtures

Design Decisions:
    - Separate from infrastructure/database.py: a convenience for non-FastAPI
      contexts (alembic, seed scripts, concurrency test fixtures)
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from marketcore.infrastructure.database import engine_options


def create_session_factory(
    database_url: str, lock_timeout_seconds: float = 5.0, **engine_kwargs: Any,
) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory for the given database URL."""
    options = engine_options(database_url, lock_timeout_seconds=lock_timeout_seconds)
    options.update(engine_kwargs)
    engine = create_async_engine(database_url, echo=False, **options)
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )
