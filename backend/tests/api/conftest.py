"""API test fixtures — FastAPI app over the in-memory database.

Invariants:
    - get_db overridden: every request session comes from the test engine
    - db_manager patched: readiness probes and fallback dispatchers use it directly
    - app.state.dispatcher reset per test, so counters never leak between tests
"""

import pytest
from httpx import ASGITransport, AsyncClient

import marketcore.infrastructure.database as db_module
from marketcore.core.identity import Capability
from marketcore.infrastructure.database import DatabaseSessionManager, get_db
from marketcore.main import app
from marketcore.services.side_effect_dispatcher import SideEffectDispatcher


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager
    app.state.dispatcher = SideEffectDispatcher(test_session_factory)

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    app.state.dispatcher = None
    db_module.db_manager = original_manager


def headers(party_id, *capabilities: Capability) -> dict[str, str]:
    """Gateway headers; every capability when none are named."""
    granted = capabilities or tuple(Capability)
    return {
        "X-Party-Id": str(party_id),
        "X-Capabilities": ",".join(c.value for c in granted),
    }


@pytest.fixture
def as_headers():
    return headers
