"""Root conftest — shared test configuration and database fixtures.

Invariants:
    - Environment set before any marketcore module reads settings
    - Every test gets a fresh in-memory SQLite database
    - Parties are seeded through their own session, never the one under test
"""

import os

# Tests never reach a real database server
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("LOG_FORMAT", "text")

from dataclasses import dataclass  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession, create_async_engine, async_sessionmaker,
)

from marketcore.core.identity import Caller, Capability  # noqa: E402
from marketcore.db.base import Base  # noqa: E402
from marketcore.models.party import Party  # noqa: E402

ALL_CAPABILITIES = frozenset(Capability)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@dataclass
class Parties:
    owner: UUID
    requester: UUID
    other: UUID
    outsider: UUID


async def add_parties(factory, names: list[str]) -> list[UUID]:
    async with factory() as db:
        parties = [Party(username=n, display_name=n.capitalize()) for n in names]
        db.add_all(parties)
        await db.commit()
        return [p.id for p in parties]


@pytest.fixture
async def parties(test_session_factory) -> Parties:
    ids = await add_parties(
        test_session_factory, ["owner", "requester", "other", "outsider"],
    )
    return Parties(*ids)


def caller(party_id: UUID, *capabilities: Capability) -> Caller:
    """Caller with the given capabilities, or all of them when none are named."""
    return Caller(party_id, frozenset(capabilities) or ALL_CAPABILITIES)


@pytest.fixture
def as_caller():
    return caller
