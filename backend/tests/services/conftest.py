"""Service test fixtures — dispatcher and contended file databases.

Invariants:
    - Concurrency tests get a fresh FILE-backed SQLite database (one connection
      per session via NullPool), so sessions really contend for locks
    - Callers are built explicitly with the capabilities each test needs

Design Decisions:
    - SQLite in-memory for the bulk (root conftest): fast, no external dependency
    - The exclusion constraint is PostgreSQL-only; the SQLite suite exercises
      the row-lock path that guards both backends
"""

import pytest
from sqlalchemy.pool import NullPool

from marketcore.db.base import Base
from marketcore.db.session import create_session_factory
from marketcore.services.side_effect_dispatcher import SideEffectDispatcher


@pytest.fixture
def dispatcher(test_session_factory):
    return SideEffectDispatcher(test_session_factory)


@pytest.fixture
async def race_session_factory(tmp_path):
    """File-backed database for tests that run sessions concurrently."""
    factory = create_session_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}",
        lock_timeout_seconds=30.0,
        poolclass=NullPool,
    )
    engine = factory.kw["bind"]
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()
